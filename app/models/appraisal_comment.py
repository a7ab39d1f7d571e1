from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Boolean, UniqueConstraint, event
from sqlalchemy.orm import relationship
from app.database import Base


LEDGER_SEQUENCE_CONSTRAINT = "uq_appraisal_comment_sequence"


class AppraisalComment(Base):
    """
    One entry of a role's comment ledger.
    Strictly append-only: rows are never updated or deleted.
    """
    __tablename__ = "appraisal_comments"
    __table_args__ = (
        UniqueConstraint("appraisal_id", "role", "sequence", name=LEDGER_SEQUENCE_CONSTRAINT),
    )

    id = Column(Integer, primary_key=True, index=True)
    appraisal_id = Column(Integer, ForeignKey("appraisals.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # supervisor | reviewer, the authorial role used
    sequence = Column(Integer, nullable=False)  # 1-based position within the role partition
    action = Column(String, nullable=False)
    comment_text = Column(Text, nullable=False, default="")

    # True identity of the actor
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    author_name = Column(String, nullable=False)
    # Acted through the HR override rather than a hierarchy assignment
    via_hr_override = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)

    appraisal = relationship("Appraisal", back_populates="comments")

    def __repr__(self):
        return f"<AppraisalComment {self.role}#{self.sequence} {self.action}>"


class LedgerImmutableError(RuntimeError):
    pass


@event.listens_for(AppraisalComment, "before_update")
def _reject_update(mapper, connection, target):
    raise LedgerImmutableError("Comment ledger entries cannot be modified")


@event.listens_for(AppraisalComment, "before_delete")
def _reject_delete(mapper, connection, target):
    raise LedgerImmutableError("Comment ledger entries cannot be deleted")
