from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from app.models.appraisal import ReviewAction, ReviewRole


class CategoryInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    rating: float = Field(0, ge=0, le=5, allow_inf_nan=False)
    # Percentage share of the overall rating
    weight: float = Field(0, ge=0, le=100, allow_inf_nan=False)
    comment: Optional[str] = ""
    description: Optional[str] = ""


class CategoryResponse(CategoryInput):
    pass


class AppraisalCreate(BaseModel):
    # Defaults to the caller's own employee record; other employees need HR
    employee_id: Optional[int] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    supervisor_id: Optional[int] = None
    reviewer_id: Optional[int] = None
    categories: List[CategoryInput] = []
    achievements: List[Dict[str, Any]] = []
    development_plans: List[Dict[str, Any]] = []
    employee_comments: Optional[str] = None


class SectionUpdate(BaseModel):
    """Payload for one logical section; only the fields of that section are read."""
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    achievements: Optional[List[Dict[str, Any]]] = None
    development_plans: Optional[List[Dict[str, Any]]] = None
    employee_comments: Optional[str] = None
    expected_version: Optional[int] = None


class RatingsSave(BaseModel):
    categories: List[CategoryInput]
    manager_comments: Optional[str] = None
    expected_version: Optional[int] = None


class RatingPreviewRequest(BaseModel):
    categories: List[CategoryInput] = []


class RatingPreviewResponse(BaseModel):
    overall_rating: float
    rating_label: str
    total_weight: float


class SubmitRequest(BaseModel):
    expected_version: Optional[int] = None


class WorkflowActionRequest(BaseModel):
    role: ReviewRole
    action: ReviewAction
    comment: Optional[str] = None
    expected_version: Optional[int] = None


class CancelRequest(BaseModel):
    reason: str
    expected_version: Optional[int] = None


class CommentEntryResponse(BaseModel):
    id: int
    sequence: int
    author_id: int
    author_name: str
    role: str
    action: str
    comment_text: str
    via_hr_override: bool
    timestamp: datetime

    @model_validator(mode="before")
    @classmethod
    def _from_entry(cls, data: Any) -> Any:
        # ORM rows carry created_at; the wire name is timestamp
        if hasattr(data, "created_at") and not isinstance(data, dict):
            return {
                "id": data.id,
                "sequence": data.sequence,
                "author_id": data.author_id,
                "author_name": data.author_name,
                "role": data.role,
                "action": data.action,
                "comment_text": data.comment_text,
                "via_hr_override": data.via_hr_override,
                "timestamp": data.created_at,
            }
        return data


class CommentLedgers(BaseModel):
    supervisor: List[CommentEntryResponse] = []
    reviewer: List[CommentEntryResponse] = []


class CapabilitiesResponse(BaseModel):
    is_employee: bool
    is_supervisor: bool
    is_reviewer: bool
    is_hr_override: bool
    directory_available: bool


class AppraisalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    status: str
    supervisor_id: Optional[int] = None
    reviewer_id: Optional[int] = None
    supervisor_approval: str
    reviewer_approval: str
    supervisor_approved_at: Optional[datetime] = None
    reviewer_approved_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    overall_rating: float
    rating_label: str
    categories: List[CategoryResponse] = []
    achievements: List[Dict[str, Any]] = []
    development_plans: List[Dict[str, Any]] = []
    employee_comments: Optional[str] = None
    manager_comments: Optional[str] = None
    comments: CommentLedgers
    reviewer_stage_open: bool
    capabilities: CapabilitiesResponse
    editable_sections: Dict[str, bool]
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppraisalSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    status: str
    supervisor_id: Optional[int] = None
    reviewer_id: Optional[int] = None
    supervisor_approval: str
    reviewer_approval: str
    overall_rating: float
    version: int


class RatingsSaveResponse(BaseModel):
    appraisal_id: int
    overall_rating: float
    rating_label: str
    categories: List[CategoryResponse]
    version: int


class WorkflowActionResponse(BaseModel):
    success: bool = True
    message: str
    entry: CommentEntryResponse
    appraisal: AppraisalResponse


class WorkflowHistoryResponse(BaseModel):
    appraisal_id: int
    status: str
    supervisor_comments: List[CommentEntryResponse]
    reviewer_comments: List[CommentEntryResponse]
    supervisor_approved_at: Optional[datetime] = None
    reviewer_approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
