from sqlalchemy import Column, Integer, String, Date, Float, Text, ForeignKey, DateTime, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum


class AppraisalStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    SUPERVISOR_APPROVED = "supervisor_approved"
    REVISION_REQUESTED = "revision_requested"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = (AppraisalStatus.COMPLETED.value, AppraisalStatus.CANCELLED.value)


class ApprovalState(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"


class ReviewRole(str, enum.Enum):
    """Roles that own a comment ledger partition."""
    SUPERVISOR = "supervisor"
    REVIEWER = "reviewer"


class ActorRole(str, enum.Enum):
    EMPLOYEE = "employee"
    SUPERVISOR = "supervisor"
    REVIEWER = "reviewer"


class ReviewAction(str, enum.Enum):
    COMMENT = "comment"
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    FINAL_APPROVE = "final_approve"


class AppraisalSection(str, enum.Enum):
    EMPLOYEE_DETAILS = "employee_details"
    ACHIEVEMENTS = "achievements"
    DEVELOPMENT = "development"
    RATINGS = "ratings"
    COMMENTS = "comments"
    FINAL_REVIEW = "final_review"


class Appraisal(Base):
    __tablename__ = "appraisals"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=True)
    period_end = Column(Date, nullable=True)
    status = Column(String, default=AppraisalStatus.DRAFT.value, nullable=False, index=True)

    # Assigned actors (user account ids); may be absent and resolved via hierarchy
    supervisor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    supervisor_approval = Column(String, default=ApprovalState.PENDING.value, nullable=False)
    reviewer_approval = Column(String, default=ApprovalState.PENDING.value, nullable=False)
    # Null is the authoritative "not yet approved" signal
    supervisor_approved_at = Column(DateTime(timezone=True), nullable=True)
    reviewer_approved_at = Column(DateTime(timezone=True), nullable=True)

    overall_rating = Column(Float, default=0.0, nullable=False)
    categories = Column(JSON, default=list, nullable=False)
    achievements = Column(JSON, default=list, nullable=False)
    development_plans = Column(JSON, default=list, nullable=False)
    employee_comments = Column(Text, nullable=True)
    manager_comments = Column(Text, nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Optimistic concurrency token; every UPDATE is conditional on it
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    employee = relationship("Employee")
    comments = relationship(
        "AppraisalComment",
        back_populates="appraisal",
        order_by="AppraisalComment.id",
    )

    def __repr__(self):
        return f"<Appraisal {self.id} employee={self.employee_id} ({self.status})>"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def reviewer_stage_open(self) -> bool:
        """
        Derived read model: the reviewer may act once the supervisor has approved,
        or when a previously supervisor-approved cycle is being re-opened.
        """
        if self.supervisor_approval == ApprovalState.APPROVED.value:
            return True
        return (
            self.status == AppraisalStatus.REVISION_REQUESTED.value
            and self.supervisor_approved_at is not None
        )

    def snapshot(self) -> dict:
        """State fields recorded in the audit trail."""
        return {
            "status": self.status,
            "supervisor_approval": self.supervisor_approval,
            "reviewer_approval": self.reviewer_approval,
            "supervisor_approved_at": self.supervisor_approved_at.isoformat() if self.supervisor_approved_at else None,
            "reviewer_approved_at": self.reviewer_approved_at.isoformat() if self.reviewer_approved_at else None,
            "overall_rating": self.overall_rating,
        }
