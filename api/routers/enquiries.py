"""
Enquiry API Endpoints.

Capture, lifecycle updates, manual assignment, bulk operations, import and
export of customer enquiries.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import audited, get_current_user, get_enquiry_service, get_sla_settings, require_roles
from api.models import (
    AssignRequest,
    BulkAssignRequest,
    BulkCounts,
    BulkResultResponse,
    BulkStatusRequest,
    CallLogRequest,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    EnquiryEnvelope,
    EnquiryFields,
    EnquiryListResponse,
    EnquiryResponse,
    FilterOptions,
    FilterOptionsResponse,
    ImportRequest,
    ImportResponse,
    MessageResponse,
    PaginationInfo,
    PriorityUpdateRequest,
    RemarkEnvelope,
    RemarkListResponse,
    RemarkRequest,
    RemarkResponse,
    StatusUpdateRequest,
)
from domain.enquiry import EnquiryStage, EnquiryStatus, Priority, SourceType, TypeOfLead
from domain.errors import ValidationError
from domain.time import as_utc
from domain.user import CurrentUser, ENQUIRY_EDITOR_ROLES, MANAGER_ROLES, Role
from repositories.enquiry_repository import EnquiryFilters
from services.csv_export_service import generate_import_template
from services.enquiry_service import EnquiryService
from services.sla_settings import SlaSettings

router = APIRouter()

managers = require_roles(*MANAGER_ROLES)
editors = require_roles(*ENQUIRY_EDITOR_ROLES)
audit_enquiry = [Depends(audited("enquiry"))]


def _enum_filter(enum_cls, raw: Optional[str], label: str):
    if raw is None or raw == "":
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise ValidationError([f"Invalid {label}: {raw}"]) from None


def build_filters(
    status: Optional[str],
    stage: Optional[str],
    source_type: Optional[str],
    priority: Optional[str],
    type_of_lead: Optional[str],
    assigned_to: Optional[str],
    created_from: Optional[datetime],
    created_to: Optional[datetime],
) -> EnquiryFilters:
    """Translate list query parameters. `assigned_to=null` selects unassigned enquiries."""

    status_value = _enum_filter(EnquiryStatus, status, "status")
    assignee = None
    unassigned_only = False
    if assigned_to == "null":
        unassigned_only = True
    elif assigned_to:
        try:
            assignee = UUID(assigned_to)
        except ValueError:
            raise ValidationError([f"Invalid assigned_to: {assigned_to}"]) from None

    return EnquiryFilters(
        statuses=[status_value] if status_value else None,
        stage=_enum_filter(EnquiryStage, stage, "stage"),
        source_type=_enum_filter(SourceType, source_type, "source_type"),
        priority=_enum_filter(Priority, priority, "priority"),
        type_of_lead=_enum_filter(TypeOfLead, type_of_lead, "type_of_lead"),
        assigned_to=assignee,
        unassigned_only=unassigned_only,
        created_from=as_utc(created_from),
        created_to=as_utc(created_to),
    )


def list_filters(
    status: Optional[str] = Query(None, description="Filter by status (e.g., 'New')"),
    stage: Optional[str] = Query(None, description="Filter by stage"),
    source_type: Optional[str] = Query(None, description="Filter by source type"),
    priority: Optional[str] = Query(None, description="HIGH, MEDIUM or LOW"),
    type_of_lead: Optional[str] = Query(None, description="B2B or B2C"),
    assigned_to: Optional[str] = Query(None, description="User id, or 'null' for unassigned"),
    created_from: Optional[datetime] = Query(None, description="Created at or after (UTC)"),
    created_to: Optional[datetime] = Query(None, description="Created at or before (UTC)"),
) -> EnquiryFilters:
    return build_filters(status, stage, source_type, priority, type_of_lead, assigned_to, created_from, created_to)


@router.get(
    "/enquiries",
    response_model=EnquiryListResponse,
    summary="List Enquiries",
    description="Paginated enquiries, newest first. Telecallers only see enquiries assigned to them."
)
def list_enquiries(
    filters: EnquiryFilters = Depends(list_filters),
    page: int = Query(1, description="Page number (1-based)"),
    limit: int = Query(10, description="Page size (max 500)"),
    user: CurrentUser = Depends(get_current_user),
    service: EnquiryService = Depends(get_enquiry_service),
):
    """
    **Example usage:**
    - `GET /api/v1/enquiries?status=New&priority=HIGH`
    - `GET /api/v1/enquiries?assigned_to=null&page=2&limit=50`
    """
    result = service.list_enquiries(user, filters, page, limit)
    return EnquiryListResponse(
        data=[EnquiryResponse.from_domain(e) for e in result.items],
        pagination=PaginationInfo.from_page(result),
    )


@router.get(
    "/enquiries/filters",
    response_model=FilterOptionsResponse,
    summary="Filter Options",
)
def get_filter_options(
    user: CurrentUser = Depends(get_current_user),
    service: EnquiryService = Depends(get_enquiry_service),
):
    """Distinct statuses (Unknown last), sources, priorities and assignees."""
    return FilterOptionsResponse(data=FilterOptions(**service.filter_options()))


@router.get(
    "/enquiries/telecaller-queue",
    response_model=EnquiryListResponse,
    summary="Telecaller Queue",
)
def get_telecaller_queue(
    page: int = Query(1),
    limit: int = Query(10),
    user: CurrentUser = Depends(require_roles(Role.TELECALLER)),
    service: EnquiryService = Depends(get_enquiry_service),
):
    """Open enquiries that are unassigned or currently held by a telecaller."""
    result = service.telecaller_queue(page, limit)
    return EnquiryListResponse(
        data=[EnquiryResponse.from_domain(e) for e in result.items],
        pagination=PaginationInfo.from_page(result),
    )


@router.get(
    "/enquiries/export",
    summary="Export Enquiries (CSV)",
    description="Download the filtered enquiries as CSV.",
)
def export_enquiries(
    filters: EnquiryFilters = Depends(list_filters),
    user: CurrentUser = Depends(managers),
    service: EnquiryService = Depends(get_enquiry_service),
):
    csv_content = service.export_enquiries(user, filters)
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=enquiries.csv"},
    )


@router.get(
    "/enquiries/import-template",
    summary="Download Import Template (CSV)",
)
def download_import_template(user: CurrentUser = Depends(managers)):
    return Response(
        content=generate_import_template(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=enquiry_import_template.csv"},
    )


@router.post(
    "/enquiries/import",
    response_model=ImportResponse,
    status_code=201,
    summary="Bulk Import Enquiries",
    description="All-or-nothing import: any invalid row rejects the whole batch.",
    dependencies=audit_enquiry,
)
def import_enquiries(
    request: ImportRequest,
    user: CurrentUser = Depends(managers),
    service: EnquiryService = Depends(get_enquiry_service),
    settings: SlaSettings = Depends(get_sla_settings),
):
    """
    **Failure response (row validation):**
    ```json
    {
      "success": false,
      "error": "import_aborted",
      "message": "Validation errors in uploaded file (1 row(s) rejected)",
      "details": [{"row": 3, "errors": ["Mobile number must be 10 digits"]}]
    }
    ```
    """
    created = service.import_enquiries(request.rows, user, settings.current)
    return ImportResponse(
        message=f"{len(created)} enquiries imported successfully",
        data=[EnquiryResponse.from_domain(e) for e in created],
    )


@router.post(
    "/enquiries/check-duplicate",
    response_model=DuplicateCheckResponse,
    summary="Check Duplicate",
)
def check_duplicate(
    request: DuplicateCheckRequest,
    user: CurrentUser = Depends(get_current_user),
    service: EnquiryService = Depends(get_enquiry_service),
):
    """Look for an enquiry with the same mobile or email in the duplicate window."""
    match = service.check_duplicate(mobile=request.mobile, email=request.email)
    return DuplicateCheckResponse(
        is_duplicate=match is not None,
        data=EnquiryResponse.from_domain(match) if match else None,
    )


@router.put(
    "/enquiries/bulk/status",
    response_model=BulkResultResponse,
    summary="Bulk Status Update",
    dependencies=audit_enquiry,
)
def bulk_update_status(
    request: BulkStatusRequest,
    user: CurrentUser = Depends(managers),
    service: EnquiryService = Depends(get_enquiry_service),
):
    result = service.bulk_update_status(request.ids, request.status, user)
    return BulkResultResponse(
        message=f"{result.modified} enquiries updated",
        data=BulkCounts(matched=result.matched, modified=result.modified),
    )


@router.put(
    "/enquiries/bulk/assign",
    response_model=BulkResultResponse,
    summary="Bulk Assign",
    dependencies=audit_enquiry,
)
def bulk_assign(
    request: BulkAssignRequest,
    user: CurrentUser = Depends(managers),
    service: EnquiryService = Depends(get_enquiry_service),
):
    result = service.bulk_assign(request.ids, request.assigned_to, user)
    return BulkResultResponse(
        message=f"{result.modified} enquiries assigned",
        data=BulkCounts(matched=result.matched, modified=result.modified),
    )


@router.post(
    "/enquiries",
    response_model=EnquiryEnvelope,
    status_code=201,
    summary="Create Enquiry",
    description="Capture a new enquiry. Duplicates are flagged; identified profiles are auto-assigned.",
    dependencies=audit_enquiry,
)
def create_enquiry(
    request: EnquiryFields,
    user: CurrentUser = Depends(editors),
    service: EnquiryService = Depends(get_enquiry_service),
    settings: SlaSettings = Depends(get_sla_settings),
):
    enquiry = service.create_enquiry(request.model_dump(exclude_unset=True), user, settings.current)
    return EnquiryEnvelope(data=EnquiryResponse.from_domain(enquiry))


@router.get(
    "/enquiries/{enquiry_id}",
    response_model=EnquiryEnvelope,
    summary="Get Enquiry",
    description="Fetch by id or by enquiry code (e.g. ENQ-20240115-0001), with current SLA state."
)
def get_enquiry(
    enquiry_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: EnquiryService = Depends(get_enquiry_service),
    settings: SlaSettings = Depends(get_sla_settings),
):
    enquiry = service.get_enquiry(enquiry_id)
    return EnquiryEnvelope(
        data=EnquiryResponse.from_domain(enquiry, sla_config=settings.current, as_of=service.now())
    )


@router.put(
    "/enquiries/{enquiry_id}",
    response_model=EnquiryEnvelope,
    summary="Update Enquiry",
    dependencies=audit_enquiry,
)
def update_enquiry(
    enquiry_id: UUID,
    request: EnquiryFields,
    user: CurrentUser = Depends(editors),
    service: EnquiryService = Depends(get_enquiry_service),
    settings: SlaSettings = Depends(get_sla_settings),
):
    """
    Partial update. When the profile moves off Unknown the enquiry is
    auto-assigned before any status change in the same request is applied.
    """
    enquiry = service.update_enquiry(enquiry_id, request.model_dump(exclude_unset=True), user, settings.current)
    return EnquiryEnvelope(data=EnquiryResponse.from_domain(enquiry))


@router.delete(
    "/enquiries/{enquiry_id}",
    response_model=MessageResponse,
    summary="Delete Enquiry",
    dependencies=audit_enquiry,
)
def delete_enquiry(
    enquiry_id: UUID,
    user: CurrentUser = Depends(require_roles(Role.ADMIN)),
    service: EnquiryService = Depends(get_enquiry_service),
):
    service.delete_enquiry(enquiry_id, user)
    return MessageResponse(message="Enquiry deleted")


@router.put(
    "/enquiries/{enquiry_id}/status",
    response_model=EnquiryEnvelope,
    summary="Update Status",
    dependencies=audit_enquiry,
)
def update_status(
    enquiry_id: UUID,
    request: StatusUpdateRequest,
    user: CurrentUser = Depends(editors),
    service: EnquiryService = Depends(get_enquiry_service),
):
    enquiry = service.update_status(enquiry_id, request.status, user)
    return EnquiryEnvelope(data=EnquiryResponse.from_domain(enquiry))


@router.put(
    "/enquiries/{enquiry_id}/priority",
    response_model=EnquiryEnvelope,
    summary="Update Priority",
    description="Changes priority and recomputes SLA deadlines from the creation time.",
    dependencies=audit_enquiry,
)
def update_priority(
    enquiry_id: UUID,
    request: PriorityUpdateRequest,
    user: CurrentUser = Depends(editors),
    service: EnquiryService = Depends(get_enquiry_service),
    settings: SlaSettings = Depends(get_sla_settings),
):
    enquiry = service.update_priority(enquiry_id, request.priority, user, settings.current)
    return EnquiryEnvelope(data=EnquiryResponse.from_domain(enquiry))


@router.put(
    "/enquiries/{enquiry_id}/assign",
    response_model=EnquiryEnvelope,
    summary="Assign Enquiry",
    dependencies=audit_enquiry,
)
def assign_enquiry(
    enquiry_id: UUID,
    request: AssignRequest,
    user: CurrentUser = Depends(managers),
    service: EnquiryService = Depends(get_enquiry_service),
):
    enquiry = service.assign_enquiry(
        enquiry_id,
        request.assigned_to,
        user,
        team=request.assigned_team,
        reason=request.assignment_reason,
        method=request.assignment_method,
        assignment_type=request.assignment_type,
        remarks=request.remarks,
    )
    return EnquiryEnvelope(data=EnquiryResponse.from_domain(enquiry))


@router.get(
    "/enquiries/{enquiry_id}/remarks",
    response_model=RemarkListResponse,
    summary="List Remarks",
)
def get_remarks(
    enquiry_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: EnquiryService = Depends(get_enquiry_service),
):
    remarks = service.get_remarks(enquiry_id)
    return RemarkListResponse(data=[RemarkResponse.from_domain(r) for r in remarks])


@router.post(
    "/enquiries/{enquiry_id}/remarks",
    response_model=RemarkEnvelope,
    status_code=201,
    summary="Add Remark",
    dependencies=audit_enquiry,
)
def add_remark(
    enquiry_id: str,
    request: RemarkRequest,
    user: CurrentUser = Depends(editors),
    service: EnquiryService = Depends(get_enquiry_service),
):
    remark = service.add_remark(enquiry_id, request.text, user)
    return RemarkEnvelope(data=RemarkResponse.from_domain(remark))


@router.post(
    "/enquiries/{enquiry_id}/calls",
    response_model=EnquiryEnvelope,
    summary="Log Call",
    dependencies=audit_enquiry,
)
def log_call(
    enquiry_id: UUID,
    request: CallLogRequest,
    user: CurrentUser = Depends(editors),
    service: EnquiryService = Depends(get_enquiry_service),
):
    enquiry = service.log_call(enquiry_id, request.call_status, user, next_follow_up=as_utc(request.next_follow_up))
    return EnquiryEnvelope(data=EnquiryResponse.from_domain(enquiry))
