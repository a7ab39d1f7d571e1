from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.appraisal import Appraisal, ReviewRole
from app.models.appraisal_comment import AppraisalComment
from app.models.user import User


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class CommentLedger:
    """
    Append-only, role-partitioned log of review actions for one appraisal.

    No update or delete operation exists. Callers authorize the role
    before appending; the caller's transaction holds the appraisal row, which
    serializes appends.
    """

    def __init__(self, db: Session, appraisal: Appraisal):
        self.db = db
        self.appraisal = appraisal

    def _last(self, role: ReviewRole) -> Optional[AppraisalComment]:
        return (
            self.db.query(AppraisalComment)
            .filter(
                AppraisalComment.appraisal_id == self.appraisal.id,
                AppraisalComment.role == role.value,
            )
            .order_by(AppraisalComment.sequence.desc())
            .first()
        )

    def append(
        self,
        role: ReviewRole,
        author: User,
        action: str,
        comment_text: Optional[str] = None,
        via_hr_override: bool = False,
        timestamp: Optional[datetime] = None,
    ) -> AppraisalComment:
        role = ReviewRole(role)
        last = self._last(role)
        timestamp = timestamp or datetime.now(timezone.utc)
        # Append order and timestamp order must agree within a partition
        if last is not None and _aware(last.created_at) > _aware(timestamp):
            timestamp = _aware(last.created_at)

        entry = AppraisalComment(
            appraisal_id=self.appraisal.id,
            role=role.value,
            sequence=(last.sequence + 1) if last else 1,
            action=action,
            comment_text=comment_text or "",
            author_id=author.id,
            author_name=author.display_name,
            via_hr_override=via_hr_override,
            created_at=timestamp,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list(self, role: ReviewRole) -> List[AppraisalComment]:
        return (
            self.db.query(AppraisalComment)
            .filter(
                AppraisalComment.appraisal_id == self.appraisal.id,
                AppraisalComment.role == ReviewRole(role).value,
            )
            .order_by(AppraisalComment.sequence.asc())
            .all()
        )

    def count(self, role: ReviewRole) -> int:
        return (
            self.db.query(func.count(AppraisalComment.id))
            .filter(
                AppraisalComment.appraisal_id == self.appraisal.id,
                AppraisalComment.role == ReviewRole(role).value,
            )
            .scalar()
        )

    def partitions(self) -> Dict[str, List[AppraisalComment]]:
        return {role.value: self.list(role) for role in ReviewRole}
