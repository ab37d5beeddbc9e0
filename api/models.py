"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.

Enquiry request bodies are deliberately loose (plain strings for enumerated
fields): the domain validator reports every problem at once with its own
messages, which the clients display verbatim.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.assignment_log import AssignmentLog, AssignmentMethod, AssignmentReason, AssignmentType
from domain.assignment_rule import AssignmentRule, ConditionOperator, RuleType
from domain.enquiry import Enquiry, Remark
from domain.sla import SlaConfig, SlaState, sla_state
from repositories.pagination import Page


# ============================================================================
# Shared
# ============================================================================

class PaginationInfo(BaseModel):
    page: int
    limit: int
    total_docs: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def from_page(cls, page: Page) -> "PaginationInfo":
        return cls(
            page=page.page,
            limit=page.limit,
            total_docs=page.total,
            total_pages=page.total_pages,
            has_next_page=page.has_next_page,
            has_prev_page=page.has_prev_page,
        )


class BulkCounts(BaseModel):
    matched: int
    modified: int


class BulkResultResponse(BaseModel):
    success: bool = True
    message: str
    data: BulkCounts


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    success: bool = False
    error: str
    message: str
    details: List[Any] = []


# ============================================================================
# Enquiry Models
# ============================================================================

class EnquiryFields(BaseModel):
    """Client-editable enquiry fields."""
    name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    company_name: Optional[str] = None
    type_of_lead: Optional[str] = Field(None, description="B2B or B2C")
    source_type: Optional[str] = None
    enquiry_profile: Optional[str] = None
    channel_type: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = Field(None, description="HIGH, MEDIUM or LOW")
    business_model: Optional[str] = None
    pv_capacity_kw: Optional[float] = None
    category: Optional[str] = None
    annual_revenue: Optional[float] = None
    employee_count: Optional[int] = None
    aadhaar_number: Optional[str] = None
    pan_number: Optional[str] = None
    need_loan: Optional[bool] = None
    aadhaar_file: Optional[str] = None
    electricity_bill_file: Optional[str] = None
    bank_statement_file: Optional[str] = None
    pan_file: Optional[str] = None
    project_proposal_file: Optional[str] = None
    project_location: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Asha Rao",
                "mobile": "9876543210",
                "email": "asha@example.com",
                "type_of_lead": "B2C",
                "source_type": "Website",
                "enquiry_profile": "Project",
                "pv_capacity_kw": 5,
                "category": "Residential",
                "priority": "HIGH"
            }
        }


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class PriorityUpdateRequest(BaseModel):
    priority: Optional[str] = None


class RemarkRequest(BaseModel):
    text: Optional[str] = None


class CallLogRequest(BaseModel):
    call_status: Optional[str] = None
    next_follow_up: Optional[datetime] = None


class AssignRequest(BaseModel):
    assigned_to: Optional[UUID] = None
    assigned_team: Optional[str] = None
    assignment_type: Optional[AssignmentType] = None
    assignment_reason: Optional[AssignmentReason] = None
    assignment_method: Optional[AssignmentMethod] = None
    remarks: Optional[str] = None


class BulkStatusRequest(BaseModel):
    ids: List[UUID] = []
    status: Optional[str] = None


class BulkAssignRequest(BaseModel):
    ids: List[UUID] = []
    assigned_to: Optional[UUID] = None


class DuplicateCheckRequest(BaseModel):
    mobile: Optional[str] = None
    email: Optional[str] = None


class ImportRequest(BaseModel):
    """Rows keyed by enquiry field name (e.g. parsed from the CSV template)."""
    rows: List[Dict[str, Any]] = []


class RemarkResponse(BaseModel):
    text: str
    added_by: Optional[UUID] = None
    added_at: datetime

    @classmethod
    def from_domain(cls, remark: Remark) -> "RemarkResponse":
        return cls(text=remark.text, added_by=remark.added_by, added_at=remark.added_at)


class SlaStatusResponse(BaseModel):
    response: Optional[SlaState] = None
    resolution: Optional[SlaState] = None


class EnquiryResponse(BaseModel):
    """Single enquiry in API response."""
    id: UUID
    enquiry_code: str
    name: str
    mobile: str
    email: Optional[str] = None
    company_name: Optional[str] = None
    type_of_lead: str
    source_type: str
    enquiry_profile: str
    channel_type: str
    status: str
    stage: str
    priority: str
    response_due: Optional[datetime] = None
    resolution_due: Optional[datetime] = None
    business_model: Optional[str] = None
    pv_capacity_kw: Optional[float] = None
    category: Optional[str] = None
    annual_revenue: Optional[float] = None
    employee_count: Optional[int] = None
    aadhaar_number: Optional[str] = None
    pan_number: Optional[str] = None
    need_loan: bool = False
    aadhaar_file: Optional[str] = None
    electricity_bill_file: Optional[str] = None
    bank_statement_file: Optional[str] = None
    pan_file: Optional[str] = None
    project_proposal_file: Optional[str] = None
    project_location: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None
    assigned_to: Optional[UUID] = None
    assigned_team: Optional[str] = None
    is_duplicate: bool = False
    duplicate_of: Optional[UUID] = None
    remarks: List[RemarkResponse] = []
    call_status: str
    last_called_at: Optional[datetime] = None
    next_follow_up: Optional[datetime] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    sla: Optional[SlaStatusResponse] = None

    @classmethod
    def from_domain(
        cls,
        enquiry: Enquiry,
        sla_config: Optional[SlaConfig] = None,
        as_of: Optional[datetime] = None,
    ) -> "EnquiryResponse":
        sla = None
        if sla_config is not None and as_of is not None:
            state = sla_state(enquiry, as_of, sla_config)
            sla = SlaStatusResponse(response=state.response, resolution=state.resolution)
        return cls(
            id=enquiry.id,
            enquiry_code=enquiry.enquiry_code,
            name=enquiry.name,
            mobile=enquiry.mobile,
            email=enquiry.email,
            company_name=enquiry.company_name,
            type_of_lead=enquiry.type_of_lead.value,
            source_type=enquiry.source_type.value,
            enquiry_profile=enquiry.enquiry_profile.value,
            channel_type=enquiry.channel_type.value,
            status=enquiry.status.value,
            stage=enquiry.stage.value,
            priority=enquiry.priority.value,
            response_due=enquiry.response_due,
            resolution_due=enquiry.resolution_due,
            business_model=enquiry.business_model.value if enquiry.business_model else None,
            pv_capacity_kw=enquiry.pv_capacity_kw,
            category=enquiry.category.value if enquiry.category else None,
            annual_revenue=enquiry.annual_revenue,
            employee_count=enquiry.employee_count,
            aadhaar_number=enquiry.aadhaar_number,
            pan_number=enquiry.pan_number,
            need_loan=enquiry.need_loan,
            aadhaar_file=enquiry.aadhaar_file,
            electricity_bill_file=enquiry.electricity_bill_file,
            bank_statement_file=enquiry.bank_statement_file,
            pan_file=enquiry.pan_file,
            project_proposal_file=enquiry.project_proposal_file,
            project_location=enquiry.project_location,
            state=enquiry.state,
            district=enquiry.district,
            pincode=enquiry.pincode,
            assigned_to=enquiry.assigned_to,
            assigned_team=enquiry.assigned_team,
            is_duplicate=enquiry.is_duplicate,
            duplicate_of=enquiry.duplicate_of,
            remarks=[RemarkResponse.from_domain(r) for r in enquiry.remarks],
            call_status=enquiry.call_status.value,
            last_called_at=enquiry.last_called_at,
            next_follow_up=enquiry.next_follow_up,
            created_by=enquiry.created_by,
            created_at=enquiry.created_at,
            updated_at=enquiry.updated_at,
            closed_at=enquiry.closed_at,
            sla=sla,
        )


class EnquiryEnvelope(BaseModel):
    success: bool = True
    data: EnquiryResponse


class EnquiryListResponse(BaseModel):
    success: bool = True
    data: List[EnquiryResponse]
    pagination: PaginationInfo


class RemarkEnvelope(BaseModel):
    success: bool = True
    data: RemarkResponse


class RemarkListResponse(BaseModel):
    success: bool = True
    data: List[RemarkResponse]


class DuplicateCheckResponse(BaseModel):
    success: bool = True
    is_duplicate: bool
    data: Optional[EnquiryResponse] = None


class FilterUser(BaseModel):
    id: UUID
    name: str


class FilterOptions(BaseModel):
    statuses: List[str]
    sources: List[str]
    priorities: List[str]
    users: List[FilterUser]


class FilterOptionsResponse(BaseModel):
    success: bool = True
    data: FilterOptions


class ImportResponse(BaseModel):
    success: bool = True
    message: str
    data: List[EnquiryResponse]


# ============================================================================
# Assignment Rule Models
# ============================================================================

class ConditionModel(BaseModel):
    field: str
    operator: ConditionOperator
    value: Any = None


class PoolMemberModel(BaseModel):
    user_id: UUID
    weight: float = 1
    max_daily_assignments: int = 0


class RuleCreateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    priority: int = 0
    rule_type: Optional[RuleType] = None
    conditions: List[ConditionModel] = []
    assignment_to: List[PoolMemberModel] = []
    fallback_user_id: Optional[UUID] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Website B2C round robin",
                "priority": 10,
                "rule_type": "round-robin",
                "conditions": [
                    {"field": "source_type", "operator": "equals", "value": "Website"},
                    {"field": "type_of_lead", "operator": "equals", "value": "B2C"}
                ],
                "assignment_to": [
                    {"user_id": "123e4567-e89b-12d3-a456-426614174000"},
                    {"user_id": "123e4567-e89b-12d3-a456-426614174001", "weight": 2}
                ]
            }
        }


class RuleUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    rule_type: Optional[RuleType] = None
    conditions: Optional[List[ConditionModel]] = None
    assignment_to: Optional[List[PoolMemberModel]] = None
    fallback_user_id: Optional[UUID] = None


class RuleResponse(BaseModel):
    rule_id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    priority: int
    rule_type: RuleType
    conditions: List[ConditionModel]
    assignment_to: List[PoolMemberModel]
    fallback_user_id: Optional[UUID] = None
    rr_cursor: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, rule: AssignmentRule) -> "RuleResponse":
        return cls(
            rule_id=rule.rule_id,
            name=rule.name,
            description=rule.description,
            is_active=rule.is_active,
            priority=rule.priority,
            rule_type=rule.rule_type,
            conditions=[ConditionModel(field=c.field, operator=c.operator, value=c.value) for c in rule.conditions],
            assignment_to=[
                PoolMemberModel(
                    user_id=m.user_id,
                    weight=m.weight,
                    max_daily_assignments=m.max_daily_assignments,
                )
                for m in rule.assignment_to
            ],
            fallback_user_id=rule.fallback_user_id,
            rr_cursor=rule.rr_cursor,
            created_at=rule.created_at,
            updated_at=rule.updated_at,
        )


class RuleEnvelope(BaseModel):
    success: bool = True
    data: RuleResponse


class RuleListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[RuleResponse]


# ============================================================================
# Assignment Log Models
# ============================================================================

class AssigneeModel(BaseModel):
    user_id: Optional[UUID] = None
    team: Optional[str] = None


class AssignmentLogResponse(BaseModel):
    assignment_log_id: str
    enquiry_id: UUID
    old_assignee: AssigneeModel
    new_assignee: AssigneeModel
    assigned_by: Optional[UUID] = None
    assignment_type: AssignmentType
    assignment_reason: AssignmentReason
    assignment_method: AssignmentMethod
    remarks: Optional[str] = None
    timestamp: datetime
    assignment_duration: Optional[int] = Field(None, description="Minutes until superseded")
    metadata: Dict[str, Any] = {}

    @classmethod
    def from_domain(cls, log: AssignmentLog) -> "AssignmentLogResponse":
        return cls(
            assignment_log_id=log.assignment_log_id,
            enquiry_id=log.enquiry_id,
            old_assignee=AssigneeModel(user_id=log.old_assignee.user_id, team=log.old_assignee.team),
            new_assignee=AssigneeModel(user_id=log.new_assignee.user_id, team=log.new_assignee.team),
            assigned_by=log.assigned_by,
            assignment_type=log.assignment_type,
            assignment_reason=log.assignment_reason,
            assignment_method=log.assignment_method,
            remarks=log.remarks,
            timestamp=log.timestamp,
            assignment_duration=log.assignment_duration,
            metadata=dict(log.metadata),
        )


class AssignmentHistoryResponse(BaseModel):
    success: bool = True
    data: List[AssignmentLogResponse]


class AssignmentLogListResponse(BaseModel):
    success: bool = True
    data: List[AssignmentLogResponse]
    pagination: PaginationInfo


class DailyCountModel(BaseModel):
    date: str
    assignment_type: str
    count: int
    average_duration_minutes: Optional[float] = None


class UserStatsResponse(BaseModel):
    success: bool = True
    data: List[DailyCountModel]


class BreakdownModel(BaseModel):
    assignment_type: str
    assignment_method: str
    count: int
    average_duration_minutes: Optional[float] = None


class AnalyticsResponse(BaseModel):
    success: bool = True
    data: List[BreakdownModel]


class WorkloadModel(BaseModel):
    user_id: UUID
    name: Optional[str] = None
    team: Optional[str] = None
    open_enquiries: int


class WorkloadResponse(BaseModel):
    success: bool = True
    data: List[WorkloadModel]


# ============================================================================
# SLA Models
# ============================================================================

class SlaConfigModel(BaseModel):
    response_times: Dict[str, float]
    resolution_times: Dict[str, float]
    warning_threshold: float = 0.25

    class Config:
        json_schema_extra = {
            "example": {
                "response_times": {"high": 2, "medium": 4, "low": 8},
                "resolution_times": {"high": 24, "medium": 48, "low": 72},
                "warning_threshold": 0.25
            }
        }


class SlaConfigUpdateRequest(BaseModel):
    response_times: Optional[Dict[str, Optional[float]]] = None
    resolution_times: Optional[Dict[str, Optional[float]]] = None
    warning_threshold: Optional[float] = None


class SlaConfigResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: SlaConfigModel
