"""
Appraisal Workflow Engine.

Owns the appraisal lifecycle:

    draft --submit--> submitted --approve--> supervisor_approved --final_approve--> completed
                         |   ^                      |
             request_changes |                request_changes (resets supervisor approval)
                         v   |                      v
                     revision_requested <-----------+

Every mutating operation is one unit of work: the appraisal row is read
FOR UPDATE, guards are evaluated against that row, and the write is
conditional on the row version (SQLAlchemy version_id_col). Ledger entries,
audit rows and notifications are written in the same transaction.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    AccessDeniedError,
    DirectoryLookupError,
    InvalidTransitionError,
    NotFoundError,
    StaleStateError,
    ValidationFailedError,
)
from app.models.appraisal import (
    ActorRole,
    Appraisal,
    AppraisalSection,
    AppraisalStatus,
    ApprovalState,
    ReviewAction,
    ReviewRole,
    TERMINAL_STATUSES,
)
from app.models.appraisal_comment import AppraisalComment, LEDGER_SEQUENCE_CONSTRAINT
from app.models.user import User
from app.schemas.appraisal import (
    AppraisalCreate,
    AppraisalResponse,
    CapabilitiesResponse,
    CategoryInput,
    CommentEntryResponse,
    CommentLedgers,
    RatingPreviewResponse,
    SectionUpdate,
    WorkflowHistoryResponse,
)
from app.services.audit import AuditService
from app.services.base import BaseService
from app.services.comment_ledger import CommentLedger
from app.services.directory_resolver import AppraisalCapabilities, DirectoryResolver
from app.services.employee_directory import DirectoryEmployee, EmployeeDirectory
from app.services.notification import NotificationService
from app.services.rating import calculate_overall_rating, rating_label, total_weight

# Never says which check failed; hierarchy details stay server-side
GENERIC_DENIAL = "You are not authorized to perform this action on this appraisal"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def can_edit(section, actor_role, appraisal: Appraisal) -> bool:
    """
    Which actor may mutate which logical section. Pure; called before every mutation.
    """
    section = AppraisalSection(section)
    actor_role = ActorRole(actor_role)
    status = appraisal.status

    if status in TERMINAL_STATUSES:
        return False
    if status == AppraisalStatus.DRAFT.value:
        # The employee authors the whole draft, categories included
        return actor_role == ActorRole.EMPLOYEE

    if status == AppraisalStatus.REVISION_REQUESTED.value:
        if section == AppraisalSection.RATINGS:
            return actor_role == ActorRole.SUPERVISOR and appraisal.supervisor_approved_at is None
        return actor_role == ActorRole.EMPLOYEE

    if actor_role == ActorRole.EMPLOYEE:
        return False
    if actor_role == ActorRole.SUPERVISOR and section == AppraisalSection.RATINGS:
        return appraisal.supervisor_approved_at is None
    return False


@dataclass(frozen=True)
class Transition:
    sources: Tuple[str, ...]
    target: Optional[str]  # None keeps the current status
    requires_comment: bool = False


_SUPERVISOR_STAGE = (AppraisalStatus.SUBMITTED.value, AppraisalStatus.REVISION_REQUESTED.value)
_REVIEWER_STAGE = (AppraisalStatus.SUPERVISOR_APPROVED.value,)

TRANSITIONS: Dict[Tuple[ReviewRole, ReviewAction], Transition] = {
    (ReviewRole.SUPERVISOR, ReviewAction.COMMENT): Transition(_SUPERVISOR_STAGE, None),
    (ReviewRole.SUPERVISOR, ReviewAction.APPROVE): Transition(
        _SUPERVISOR_STAGE, AppraisalStatus.SUPERVISOR_APPROVED.value
    ),
    (ReviewRole.SUPERVISOR, ReviewAction.REQUEST_CHANGES): Transition(
        _SUPERVISOR_STAGE, AppraisalStatus.REVISION_REQUESTED.value, requires_comment=True
    ),
    (ReviewRole.REVIEWER, ReviewAction.COMMENT): Transition(_REVIEWER_STAGE, None),
    (ReviewRole.REVIEWER, ReviewAction.FINAL_APPROVE): Transition(
        _REVIEWER_STAGE, AppraisalStatus.COMPLETED.value
    ),
    (ReviewRole.REVIEWER, ReviewAction.REQUEST_CHANGES): Transition(
        _REVIEWER_STAGE, AppraisalStatus.REVISION_REQUESTED.value, requires_comment=True
    ),
}

# Fields each employee-owned section writes
SECTION_FIELDS: Dict[AppraisalSection, Tuple[str, ...]] = {
    AppraisalSection.EMPLOYEE_DETAILS: ("period_start", "period_end"),
    AppraisalSection.ACHIEVEMENTS: ("achievements",),
    AppraisalSection.DEVELOPMENT: ("development_plans",),
    AppraisalSection.COMMENTS: ("employee_comments",),
}


def normalize_categories(categories: Sequence[Any]) -> List[dict]:
    """Validates category payloads and returns plain dicts for the JSON column."""
    normalized = []
    errors: Dict[str, str] = {}
    for index, category in enumerate(categories or []):
        raw = category.model_dump() if hasattr(category, "model_dump") else category
        try:
            normalized.append(CategoryInput.model_validate(raw).model_dump())
        except ValidationError as e:
            for err in e.errors():
                field = ".".join(str(p) for p in err["loc"]) or "category"
                errors[f"categories[{index}].{field}"] = err["msg"]
    if errors:
        raise ValidationFailedError("Invalid category data", details=errors)
    return normalized


def _is_ledger_sequence_conflict(error: IntegrityError) -> bool:
    # PostgreSQL names the constraint; SQLite only lists the columns
    message = str(error.orig)
    return (
        LEDGER_SEQUENCE_CONSTRAINT in message
        or "appraisal_comments.appraisal_id, appraisal_comments.role, appraisal_comments.sequence" in message
    )


def _period_errors(period_start, period_end) -> Dict[str, str]:
    if period_start and period_end and period_end < period_start:
        return {"period_end": "must not precede period_start"}
    return {}


class AppraisalWorkflowService(BaseService):
    def __init__(self, db: Session, directory: EmployeeDirectory):
        super().__init__(db)
        self.directory = directory
        self.resolver = DirectoryResolver(directory)
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------
    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            self.log_warning(f"Concurrent modification rejected: {e}")
            raise StaleStateError() from e
        except IntegrityError as e:
            self.db.rollback()
            if not _is_ledger_sequence_conflict(e):
                raise
            self.log_warning(f"Concurrent ledger append rejected: {e}")
            raise StaleStateError() from e
        except Exception:
            self.db.rollback()
            raise

    def _load(self, appraisal_id: int, for_update: bool = False) -> Appraisal:
        query = self.db.query(Appraisal).filter(Appraisal.id == appraisal_id)
        if for_update:
            # Guards must see the row as stored, not a cached copy
            query = query.with_for_update().populate_existing()
        appraisal = query.first()
        if appraisal is None:
            raise NotFoundError("Appraisal not found")
        return appraisal

    @staticmethod
    def _check_version(appraisal: Appraisal, expected_version: Optional[int]):
        if expected_version is not None and expected_version != appraisal.version:
            raise StaleStateError()

    def _deny(self, actor: User, appraisal: Optional[Appraisal], reason: str):
        self.log_warning(
            f"Appraisal access denied: {reason}",
            user_id=actor.id,
            appraisal_id=appraisal.id if appraisal is not None else None,
        )
        raise AccessDeniedError(GENERIC_DENIAL)

    def _resolve_account(self, lookup: Callable[[int], Optional[DirectoryEmployee]], employee_id: int) -> Optional[int]:
        """User account behind a directory lookup, or None if it cannot be resolved."""
        try:
            employee = lookup(employee_id)
        except DirectoryLookupError:
            return None
        return employee.user_id if employee else None

    def _employee_account(self, appraisal: Appraisal) -> Optional[int]:
        return self._resolve_account(self.directory.get_employee, appraisal.employee_id)

    def _supervisor_account(self, appraisal: Appraisal) -> Optional[int]:
        return appraisal.supervisor_id or self._resolve_account(self.directory.get_manager_of, appraisal.employee_id)

    def _reviewer_account(self, appraisal: Appraisal) -> Optional[int]:
        return appraisal.reviewer_id or self._resolve_account(self.directory.get_reviewer_of, appraisal.employee_id)

    @staticmethod
    def _editor_role(section: AppraisalSection, capabilities: AppraisalCapabilities,
                     appraisal: Appraisal) -> Optional[ActorRole]:
        for role in capabilities.held_roles():
            if can_edit(section, role, appraisal):
                return role
        return None

    # ------------------------------------------------------------------
    # authoring
    # ------------------------------------------------------------------
    def create_appraisal(self, actor: User, payload: AppraisalCreate) -> Appraisal:
        employee_id = payload.employee_id
        if employee_id is None or not actor.is_hr:
            own = self.directory.find_by_user(actor.id)
            if own is None:
                raise ValidationFailedError(
                    "No employee record is linked to your account",
                    details={"employee_id": "required"}
                )
            if employee_id is not None and employee_id != own.id:
                self._deny(actor, None, "creating an appraisal for another employee without HR role")
            employee_id = own.id

        subject = self.directory.get_employee(employee_id)
        if subject is None:
            raise NotFoundError("Employee not found")

        errors = _period_errors(payload.period_start, payload.period_end)
        if errors:
            raise ValidationFailedError("Invalid appraisal period", details=errors)
        categories = normalize_categories(payload.categories)

        appraisal = Appraisal(
            employee_id=employee_id,
            period_start=payload.period_start,
            period_end=payload.period_end,
            status=AppraisalStatus.DRAFT.value,
            supervisor_id=payload.supervisor_id or self._resolve_account(self.directory.get_manager_of, employee_id),
            reviewer_id=payload.reviewer_id or self._resolve_account(self.directory.get_reviewer_of, employee_id),
            supervisor_approval=ApprovalState.PENDING.value,
            reviewer_approval=ApprovalState.PENDING.value,
            categories=categories,
            overall_rating=calculate_overall_rating(categories),
            achievements=payload.achievements,
            development_plans=payload.development_plans,
            employee_comments=payload.employee_comments,
            created_by_id=actor.id,
        )
        with self._transaction():
            self.db.add(appraisal)
            self.db.flush()
            self.audit.log_action(
                action="appraisal_created",
                entity_type="appraisal",
                entity_id=appraisal.id,
                user_id=actor.id,
                user_role=ActorRole.EMPLOYEE.value if subject.user_id == actor.id else "hr",
                details={"employee_id": employee_id},
                after_state=appraisal.snapshot()
            )
        self.log_info(f"Appraisal {appraisal.id} created for employee {employee_id}")
        return appraisal

    def save_section(self, appraisal_id: int, actor: User, section, update: SectionUpdate) -> Appraisal:
        try:
            section = AppraisalSection(section)
        except ValueError:
            raise ValidationFailedError("Unknown section", details={"section": str(section)})
        if section == AppraisalSection.RATINGS:
            raise ValidationFailedError(
                "Ratings are saved through the ratings operation",
                details={"section": "use ratings"}
            )
        fields = SECTION_FIELDS.get(section)
        if fields is None:
            raise ValidationFailedError("This section has no editable fields", details={"section": "read-only"})
        values = {f: getattr(update, f) for f in fields if f in update.model_fields_set}
        if not values:
            raise ValidationFailedError(
                "No fields supplied for this section",
                details={f: "required" for f in fields}
            )

        with self._transaction():
            appraisal = self._load(appraisal_id, for_update=True)
            self._check_version(appraisal, update.expected_version)
            capabilities = self.resolver.resolve(actor, appraisal)
            role = self._editor_role(section, capabilities, appraisal)
            if role is None:
                self._deny(actor, appraisal, f"section {section.value} not editable in {appraisal.status}")

            if section == AppraisalSection.EMPLOYEE_DETAILS:
                errors = _period_errors(
                    values.get("period_start", appraisal.period_start),
                    values.get("period_end", appraisal.period_end),
                )
                if errors:
                    raise ValidationFailedError("Invalid appraisal period", details=errors)

            before = {f: getattr(appraisal, f) for f in values}
            for field, value in values.items():
                setattr(appraisal, field, value)
            appraisal.updated_at = utcnow()
            self.audit.log_action(
                action=f"appraisal_section_{section.value}_saved",
                entity_type="appraisal",
                entity_id=appraisal.id,
                user_id=actor.id,
                user_role=role.value,
                details={"section": section.value},
                before_state=before,
                after_state=values
            )
        return appraisal

    def save_ratings(
        self,
        appraisal_id: int,
        actor: User,
        categories: Sequence[Any],
        manager_comments: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Appraisal:
        """
        Persists the categories and the derived overall rating together.
        Does not change status.
        """
        normalized = normalize_categories(categories)

        with self._transaction():
            appraisal = self._load(appraisal_id, for_update=True)
            self._check_version(appraisal, expected_version)
            capabilities = self.resolver.resolve(actor, appraisal)
            role = self._editor_role(AppraisalSection.RATINGS, capabilities, appraisal)
            if role is None:
                self._deny(actor, appraisal, f"ratings not editable in {appraisal.status}")

            if not normalized and appraisal.status != AppraisalStatus.DRAFT.value:
                raise ValidationFailedError(
                    "At least one category is required once the appraisal is submitted",
                    details={"categories": "required"}
                )
            if manager_comments is not None and role != ActorRole.SUPERVISOR:
                raise ValidationFailedError(
                    "Only the supervisor may set manager comments",
                    details={"manager_comments": "supervisor only"}
                )

            before = appraisal.snapshot()
            appraisal.categories = normalized
            appraisal.overall_rating = calculate_overall_rating(normalized)
            if manager_comments is not None:
                appraisal.manager_comments = manager_comments
            appraisal.updated_at = utcnow()
            self.audit.log_action(
                action="appraisal_ratings_saved",
                entity_type="appraisal",
                entity_id=appraisal.id,
                user_id=actor.id,
                user_role=role.value,
                via_hr_override=capabilities.via_override(role),
                details={"categories": len(normalized)},
                before_state=before,
                after_state=appraisal.snapshot()
            )
        self.log_info(f"Appraisal {appraisal_id} ratings saved, overall {appraisal.overall_rating}")
        return appraisal

    @staticmethod
    def preview_rating(categories: Sequence[Any]) -> RatingPreviewResponse:
        normalized = normalize_categories(categories)
        overall = calculate_overall_rating(normalized)
        return RatingPreviewResponse(
            overall_rating=overall,
            rating_label=rating_label(overall),
            total_weight=total_weight(normalized),
        )

    # ------------------------------------------------------------------
    # state machine
    # ------------------------------------------------------------------
    @staticmethod
    def _missing_submit_fields(appraisal: Appraisal) -> Dict[str, str]:
        missing: Dict[str, str] = {}
        if appraisal.period_start is None:
            missing["period_start"] = "required"
        if appraisal.period_end is None:
            missing["period_end"] = "required"
        missing.update(_period_errors(appraisal.period_start, appraisal.period_end))
        if not appraisal.categories:
            missing["categories"] = "at least one category is required"
        return missing

    def submit_appraisal(self, appraisal_id: int, actor: User, expected_version: Optional[int] = None) -> Appraisal:
        with self._transaction():
            appraisal = self._load(appraisal_id, for_update=True)
            self._check_version(appraisal, expected_version)
            capabilities = self.resolver.resolve(actor, appraisal)
            if not capabilities.is_employee:
                self._deny(actor, appraisal, "only the appraised employee may submit")
            if appraisal.status != AppraisalStatus.DRAFT.value:
                raise InvalidTransitionError(
                    f"Only draft appraisals can be submitted (current status: {appraisal.status})"
                )
            missing = self._missing_submit_fields(appraisal)
            if missing:
                raise ValidationFailedError("Appraisal is incomplete", details=missing)

            before = appraisal.snapshot()
            now = utcnow()
            appraisal.status = AppraisalStatus.SUBMITTED.value
            appraisal.supervisor_approval = ApprovalState.PENDING.value
            appraisal.reviewer_approval = ApprovalState.PENDING.value
            appraisal.submitted_at = now
            appraisal.updated_at = now
            self.audit.log_action(
                action="appraisal_submitted",
                entity_type="appraisal",
                entity_id=appraisal.id,
                user_id=actor.id,
                user_role=ActorRole.EMPLOYEE.value,
                details={},
                before_state=before,
                after_state=appraisal.snapshot()
            )
            NotificationService.queue_notification(
                self.db,
                self._supervisor_account(appraisal),
                event="submitted",
                title="Appraisal submitted",
                message="An appraisal has been submitted and is awaiting your review.",
                appraisal_id=appraisal.id
            )
        self.log_info(f"Appraisal {appraisal_id} submitted")
        return appraisal

    @staticmethod
    def _guard(transition: Transition, role: ReviewRole, action: ReviewAction, appraisal: Appraisal):
        if appraisal.is_terminal:
            raise InvalidTransitionError(f"Appraisal is {appraisal.status}; no further actions are accepted")
        if action == ReviewAction.APPROVE and appraisal.supervisor_approval == ApprovalState.APPROVED.value:
            raise InvalidTransitionError("Supervisor approval is already recorded")
        if action == ReviewAction.FINAL_APPROVE and appraisal.reviewer_approval == ApprovalState.APPROVED.value:
            raise InvalidTransitionError("Final approval is already recorded")
        if appraisal.status not in transition.sources:
            raise InvalidTransitionError(
                f"Cannot {action.value.replace('_', ' ')} as {role.value} while the appraisal is {appraisal.status}"
            )
        if role == ReviewRole.REVIEWER and not appraisal.reviewer_stage_open:
            raise InvalidTransitionError("The reviewer stage is not open for this appraisal")

    @staticmethod
    def _apply(role: ReviewRole, action: ReviewAction, transition: Transition, appraisal: Appraisal, now: datetime):
        if transition.target is not None:
            appraisal.status = transition.target

        if role == ReviewRole.SUPERVISOR and action == ReviewAction.APPROVE:
            appraisal.supervisor_approval = ApprovalState.APPROVED.value
            appraisal.supervisor_approved_at = now
        elif role == ReviewRole.SUPERVISOR and action == ReviewAction.REQUEST_CHANGES:
            appraisal.supervisor_approval = ApprovalState.PENDING.value
        elif role == ReviewRole.REVIEWER and action == ReviewAction.FINAL_APPROVE:
            appraisal.reviewer_approval = ApprovalState.APPROVED.value
            appraisal.reviewer_approved_at = now
        elif role == ReviewRole.REVIEWER and action == ReviewAction.REQUEST_CHANGES:
            # Reopens the supervisor stage
            appraisal.supervisor_approval = ApprovalState.PENDING.value
            appraisal.supervisor_approved_at = None

        # Always touch the row so the version advances, comments included
        appraisal.updated_at = now

    def _notify(self, role: ReviewRole, action: ReviewAction, appraisal: Appraisal):
        if action == ReviewAction.COMMENT:
            return
        if role == ReviewRole.SUPERVISOR and action == ReviewAction.APPROVE:
            recipient = self._reviewer_account(appraisal)
            title, message, kind = ("Appraisal awaiting final review",
                                    "The supervisor approved an appraisal assigned to you for review.", "info")
        elif role == ReviewRole.SUPERVISOR:
            recipient = self._employee_account(appraisal)
            title, message, kind = ("Changes requested",
                                    "Your supervisor requested changes to your appraisal.", "warning")
        elif action == ReviewAction.REQUEST_CHANGES:
            recipient = self._supervisor_account(appraisal)
            title, message, kind = ("Reviewer requested changes",
                                    "The reviewer sent an appraisal back for your revision.", "warning")
        else:
            recipient = self._employee_account(appraisal)
            title, message, kind = ("Appraisal completed",
                                    "Your appraisal received final approval.", "success")
        NotificationService.queue_notification(
            self.db, recipient, event=action.value, title=title, message=message,
            type=kind, appraisal_id=appraisal.id
        )

    def record_action(
        self,
        appraisal_id: int,
        actor: User,
        role,
        action,
        comment_text: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Tuple[Appraisal, AppraisalComment]:
        try:
            role = ReviewRole(role)
            action = ReviewAction(action)
        except ValueError:
            raise ValidationFailedError(
                "Unknown role or action",
                details={"role": str(role), "action": str(action)}
            )

        with self._transaction():
            appraisal = self._load(appraisal_id, for_update=True)
            self._check_version(appraisal, expected_version)
            capabilities = self.resolver.resolve(actor, appraisal)
            if not capabilities.can_act_as(role.value):
                self._deny(actor, appraisal, f"role claim {role.value} not held")

            transition = TRANSITIONS.get((role, action))
            if transition is None:
                raise InvalidTransitionError(f"'{action.value}' is not available to the {role.value}")
            self._guard(transition, role, action, appraisal)

            text = (comment_text or "").strip()
            if transition.requires_comment and not text:
                raise ValidationFailedError(
                    "A comment is required when requesting changes",
                    details={"comment": "required"}
                )

            before = appraisal.snapshot()
            now = utcnow()
            self._apply(role, action, transition, appraisal, now)
            via_override = capabilities.via_override(role.value)
            entry = CommentLedger(self.db, appraisal).append(
                role, actor, action.value, text, via_hr_override=via_override, timestamp=now
            )
            self.audit.log_action(
                action=f"appraisal_{role.value}_{action.value}",
                entity_type="appraisal",
                entity_id=appraisal.id,
                user_id=actor.id,
                user_role=role.value,
                via_hr_override=via_override,
                details={"comment_entry_id": entry.id, "comment": text},
                before_state=before,
                after_state=appraisal.snapshot()
            )
            self._notify(role, action, appraisal)

        self.log_info(
            f"Appraisal {appraisal_id}: {role.value} {action.value} -> {appraisal.status}",
            user_id=actor.id,
            via_hr_override=via_override
        )
        return appraisal, entry

    def cancel_appraisal(self, appraisal_id: int, actor: User, reason: str,
                         expected_version: Optional[int] = None) -> Appraisal:
        with self._transaction():
            appraisal = self._load(appraisal_id, for_update=True)
            self._check_version(appraisal, expected_version)
            if not actor.is_hr:
                self._deny(actor, appraisal, "cancel requires HR override")
            if appraisal.is_terminal:
                raise InvalidTransitionError(f"Appraisal is already {appraisal.status}")
            reason = (reason or "").strip()
            if not reason:
                raise ValidationFailedError("A cancellation reason is required", details={"reason": "required"})

            before = appraisal.snapshot()
            now = utcnow()
            appraisal.status = AppraisalStatus.CANCELLED.value
            appraisal.cancelled_at = now
            appraisal.cancellation_reason = reason
            appraisal.updated_at = now
            self.audit.log_action(
                action="appraisal_cancelled",
                entity_type="appraisal",
                entity_id=appraisal.id,
                user_id=actor.id,
                user_role="hr",
                via_hr_override=True,
                details={"reason": reason},
                before_state=before,
                after_state=appraisal.snapshot()
            )
        self.log_info(f"Appraisal {appraisal_id} cancelled")
        return appraisal

    # ------------------------------------------------------------------
    # read model
    # ------------------------------------------------------------------
    def _authorize_view(self, actor: User, appraisal: Appraisal) -> AppraisalCapabilities:
        capabilities = self.resolver.resolve(actor, appraisal)
        if not capabilities.can_view:
            self._deny(actor, appraisal, "no role on appraisal")
        return capabilities

    def build_view(self, appraisal: Appraisal, capabilities: AppraisalCapabilities) -> AppraisalResponse:
        ledgers = CommentLedger(self.db, appraisal).partitions()
        held = capabilities.held_roles()
        editable = {
            section.value: any(can_edit(section, role, appraisal) for role in held)
            for section in AppraisalSection
        }
        return AppraisalResponse(
            id=appraisal.id,
            employee_id=appraisal.employee_id,
            period_start=appraisal.period_start,
            period_end=appraisal.period_end,
            status=appraisal.status,
            supervisor_id=appraisal.supervisor_id,
            reviewer_id=appraisal.reviewer_id,
            supervisor_approval=appraisal.supervisor_approval,
            reviewer_approval=appraisal.reviewer_approval,
            supervisor_approved_at=appraisal.supervisor_approved_at,
            reviewer_approved_at=appraisal.reviewer_approved_at,
            submitted_at=appraisal.submitted_at,
            cancelled_at=appraisal.cancelled_at,
            cancellation_reason=appraisal.cancellation_reason,
            overall_rating=appraisal.overall_rating,
            rating_label=rating_label(appraisal.overall_rating),
            categories=appraisal.categories or [],
            achievements=appraisal.achievements or [],
            development_plans=appraisal.development_plans or [],
            employee_comments=appraisal.employee_comments,
            manager_comments=appraisal.manager_comments,
            comments=CommentLedgers(
                supervisor=[CommentEntryResponse.model_validate(e) for e in ledgers[ReviewRole.SUPERVISOR.value]],
                reviewer=[CommentEntryResponse.model_validate(e) for e in ledgers[ReviewRole.REVIEWER.value]],
            ),
            reviewer_stage_open=appraisal.reviewer_stage_open,
            capabilities=CapabilitiesResponse(**capabilities.as_flags()),
            editable_sections=editable,
            version=appraisal.version,
            created_at=appraisal.created_at,
            updated_at=appraisal.updated_at,
        )

    def get_appraisal(self, appraisal_id: int, actor: User) -> AppraisalResponse:
        appraisal = self._load(appraisal_id)
        capabilities = self._authorize_view(actor, appraisal)
        return self.build_view(appraisal, capabilities)

    def view_for(self, appraisal: Appraisal, actor: User) -> AppraisalResponse:
        """Re-render an appraisal the actor just mutated."""
        return self.build_view(appraisal, self.resolver.resolve(actor, appraisal))

    def get_workflow(self, appraisal_id: int, actor: User) -> WorkflowHistoryResponse:
        appraisal = self._load(appraisal_id)
        self._authorize_view(actor, appraisal)
        ledger = CommentLedger(self.db, appraisal)
        return WorkflowHistoryResponse(
            appraisal_id=appraisal.id,
            status=appraisal.status,
            supervisor_comments=[CommentEntryResponse.model_validate(e) for e in ledger.list(ReviewRole.SUPERVISOR)],
            reviewer_comments=[CommentEntryResponse.model_validate(e) for e in ledger.list(ReviewRole.REVIEWER)],
            supervisor_approved_at=appraisal.supervisor_approved_at,
            reviewer_approved_at=appraisal.reviewer_approved_at,
            created_at=appraisal.created_at,
            updated_at=appraisal.updated_at,
        )

    def list_appraisals(self, actor: User, status: Optional[str] = None) -> List[Appraisal]:
        query = self.db.query(Appraisal)
        if not actor.is_hr:
            conditions = [Appraisal.supervisor_id == actor.id, Appraisal.reviewer_id == actor.id]
            try:
                own = self.directory.find_by_user(actor.id)
            except DirectoryLookupError:
                self.log_warning("Directory unavailable; listing assigned appraisals only", user_id=actor.id)
                own = None
            if own is not None:
                conditions.append(Appraisal.employee_id == own.id)
            query = query.filter(or_(*conditions))
        if status:
            query = query.filter(Appraisal.status == status)
        return query.order_by(Appraisal.created_at.desc(), Appraisal.id.desc()).all()
