from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.limiter import limiter, WORKFLOW_ACTION_LIMIT
from app.database import get_db
from app.models.appraisal import AppraisalSection, AppraisalStatus
from app.models.user import User
from app.routers.auth_deps import get_current_user, get_directory
from app.schemas.appraisal import (
    AppraisalCreate,
    AppraisalResponse,
    AppraisalSummary,
    CancelRequest,
    CommentEntryResponse,
    RatingPreviewRequest,
    RatingPreviewResponse,
    RatingsSave,
    RatingsSaveResponse,
    SectionUpdate,
    SubmitRequest,
    WorkflowActionRequest,
    WorkflowActionResponse,
    WorkflowHistoryResponse,
)
from app.services.appraisal_workflow import AppraisalWorkflowService
from app.services.employee_directory import EmployeeDirectory
from app.services.rating import rating_label

router = APIRouter(prefix="/appraisals", tags=["Appraisals"])


def get_workflow_service(
    db: Session = Depends(get_db),
    directory: EmployeeDirectory = Depends(get_directory),
) -> AppraisalWorkflowService:
    return AppraisalWorkflowService(db, directory)


@router.post("", response_model=AppraisalResponse, status_code=201)
def create_appraisal(
    payload: AppraisalCreate,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    appraisal = service.create_appraisal(current_user, payload)
    return service.view_for(appraisal, current_user)


@router.get("", response_model=List[AppraisalSummary])
def list_appraisals(
    status: Optional[AppraisalStatus] = None,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    return service.list_appraisals(current_user, status.value if status else None)


@router.post("/ratings/preview", response_model=RatingPreviewResponse)
def preview_rating(
    payload: RatingPreviewRequest,
    current_user: User = Depends(get_current_user)
):
    """Live overall rating for unsaved categories; same calculation as the save path."""
    return AppraisalWorkflowService.preview_rating(payload.categories)


@router.get("/{appraisal_id}", response_model=AppraisalResponse)
def get_appraisal(
    appraisal_id: int,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    return service.get_appraisal(appraisal_id, current_user)


@router.put("/{appraisal_id}/sections/{section}", response_model=AppraisalResponse)
def save_section(
    appraisal_id: int,
    section: AppraisalSection,
    payload: SectionUpdate,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    appraisal = service.save_section(appraisal_id, current_user, section, payload)
    return service.view_for(appraisal, current_user)


@router.post("/{appraisal_id}/submit", response_model=AppraisalResponse)
def submit_appraisal(
    appraisal_id: int,
    payload: Optional[SubmitRequest] = None,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    expected_version = payload.expected_version if payload else None
    appraisal = service.submit_appraisal(appraisal_id, current_user, expected_version)
    return service.view_for(appraisal, current_user)


@router.put("/{appraisal_id}/ratings", response_model=RatingsSaveResponse)
def save_ratings(
    appraisal_id: int,
    payload: RatingsSave,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    appraisal = service.save_ratings(
        appraisal_id,
        current_user,
        payload.categories,
        manager_comments=payload.manager_comments,
        expected_version=payload.expected_version,
    )
    return RatingsSaveResponse(
        appraisal_id=appraisal.id,
        overall_rating=appraisal.overall_rating,
        rating_label=rating_label(appraisal.overall_rating),
        categories=appraisal.categories,
        version=appraisal.version,
    )


@router.post("/{appraisal_id}/workflow", response_model=WorkflowActionResponse)
@limiter.limit(WORKFLOW_ACTION_LIMIT)
def record_workflow_action(
    request: Request,
    appraisal_id: int,
    payload: WorkflowActionRequest,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    appraisal, entry = service.record_action(
        appraisal_id,
        current_user,
        payload.role,
        payload.action,
        comment_text=payload.comment,
        expected_version=payload.expected_version,
    )
    return WorkflowActionResponse(
        message=f"{payload.role.value.capitalize()} {payload.action.value.replace('_', ' ')} recorded",
        entry=CommentEntryResponse.model_validate(entry),
        appraisal=service.view_for(appraisal, current_user),
    )


@router.get("/{appraisal_id}/workflow", response_model=WorkflowHistoryResponse)
def get_workflow(
    appraisal_id: int,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    return service.get_workflow(appraisal_id, current_user)


@router.post("/{appraisal_id}/cancel", response_model=AppraisalResponse)
def cancel_appraisal(
    appraisal_id: int,
    payload: CancelRequest,
    service: AppraisalWorkflowService = Depends(get_workflow_service),
    current_user: User = Depends(get_current_user)
):
    appraisal = service.cancel_appraisal(
        appraisal_id, current_user, payload.reason, expected_version=payload.expected_version
    )
    return service.view_for(appraisal, current_user)
