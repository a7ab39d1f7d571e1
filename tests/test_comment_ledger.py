from datetime import datetime, timedelta, timezone

import pytest

from app.models.appraisal import ReviewRole
from app.models.appraisal_comment import AppraisalComment, LedgerImmutableError
from app.services.comment_ledger import CommentLedger


def test_append_assigns_sequence_per_role(db_session, org_chart, draft_appraisal):
    ledger = CommentLedger(db_session, draft_appraisal)

    first = ledger.append(ReviewRole.SUPERVISOR, org_chart.supervisor, "comment", "Looks good so far")
    second = ledger.append(ReviewRole.SUPERVISOR, org_chart.supervisor, "approve")
    reviewer_first = ledger.append(ReviewRole.REVIEWER, org_chart.reviewer, "comment", "Noted")
    db_session.commit()

    assert (first.sequence, second.sequence) == (1, 2)
    assert reviewer_first.sequence == 1
    assert ledger.count(ReviewRole.SUPERVISOR) == 2
    assert ledger.count(ReviewRole.REVIEWER) == 1


def test_entries_record_true_author(db_session, org_chart, draft_appraisal):
    entry = CommentLedger(db_session, draft_appraisal).append(
        ReviewRole.SUPERVISOR, org_chart.hr, "comment", "HR note", via_hr_override=True
    )
    assert entry.author_id == org_chart.hr.id
    assert entry.author_name == "Hank HR"
    assert entry.via_hr_override is True


def test_list_returns_append_order(db_session, org_chart, draft_appraisal):
    ledger = CommentLedger(db_session, draft_appraisal)
    for text in ("one", "two", "three"):
        ledger.append(ReviewRole.REVIEWER, org_chart.reviewer, "comment", text)
    db_session.commit()

    entries = ledger.list(ReviewRole.REVIEWER)
    assert [e.comment_text for e in entries] == ["one", "two", "three"]
    assert ledger.list(ReviewRole.SUPERVISOR) == []


def test_timestamps_never_go_backwards(db_session, org_chart, draft_appraisal):
    ledger = CommentLedger(db_session, draft_appraisal)
    now = datetime.now(timezone.utc)
    ledger.append(ReviewRole.SUPERVISOR, org_chart.supervisor, "comment", "later", timestamp=now)
    earlier = ledger.append(
        ReviewRole.SUPERVISOR, org_chart.supervisor, "comment", "skewed clock", timestamp=now - timedelta(minutes=5)
    )
    db_session.commit()

    entries = ledger.list(ReviewRole.SUPERVISOR)
    stamps = [e.created_at.replace(tzinfo=None) for e in entries]
    assert stamps == sorted(stamps)
    assert earlier.sequence == 2


def test_entries_cannot_be_modified(db_session, org_chart, draft_appraisal):
    entry = CommentLedger(db_session, draft_appraisal).append(
        ReviewRole.SUPERVISOR, org_chart.supervisor, "comment", "original"
    )
    db_session.commit()

    entry.comment_text = "rewritten"
    with pytest.raises(LedgerImmutableError):
        db_session.flush()
    db_session.rollback()


def test_entries_cannot_be_deleted(db_session, org_chart, draft_appraisal):
    entry = CommentLedger(db_session, draft_appraisal).append(
        ReviewRole.REVIEWER, org_chart.reviewer, "comment", "keep me"
    )
    db_session.commit()

    db_session.delete(entry)
    with pytest.raises(LedgerImmutableError):
        db_session.flush()
    db_session.rollback()
    assert db_session.query(AppraisalComment).count() == 1
