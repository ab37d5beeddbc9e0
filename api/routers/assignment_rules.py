"""
Assignment Rule API Endpoints.

Management of the rules that drive automatic enquiry assignment. Restricted to
Admin and Sales Head.
"""

from fastapi import APIRouter, Depends

from api.dependencies import audited, get_rule_service, require_roles
from api.models import MessageResponse, RuleCreateRequest, RuleEnvelope, RuleListResponse, RuleResponse, RuleUpdateRequest
from domain.user import CurrentUser, MANAGER_ROLES
from services.rule_service import RuleService

router = APIRouter()

managers = require_roles(*MANAGER_ROLES)
audit_rule = [Depends(audited("assignment_rule"))]


@router.get(
    "/assignment-rules",
    response_model=RuleListResponse,
    summary="List Assignment Rules",
    description="All rules in evaluation order (highest priority first, then oldest)."
)
def list_rules(
    user: CurrentUser = Depends(managers),
    service: RuleService = Depends(get_rule_service),
):
    rules = service.list_rules()
    return RuleListResponse(count=len(rules), data=[RuleResponse.from_domain(r) for r in rules])


@router.get(
    "/assignment-rules/{rule_id}",
    response_model=RuleEnvelope,
    summary="Get Assignment Rule",
)
def get_rule(
    rule_id: str,
    user: CurrentUser = Depends(managers),
    service: RuleService = Depends(get_rule_service),
):
    return RuleEnvelope(data=RuleResponse.from_domain(service.get_rule(rule_id)))


@router.post(
    "/assignment-rules",
    response_model=RuleEnvelope,
    status_code=201,
    summary="Create Assignment Rule",
    dependencies=audit_rule,
)
def create_rule(
    request: RuleCreateRequest,
    user: CurrentUser = Depends(managers),
    service: RuleService = Depends(get_rule_service),
):
    """
    Conditions are ANDed; an empty list matches every enquiry.

    **Rule types:**
    - `round-robin`: rotate through `assignment_to`
    - `load-based`: lowest open workload per unit of weight, respecting daily caps
    - `manual`: leave matching enquiries in Assignment Pending
    - `fallback`: assign to `fallback_user_id`
    """
    rule = service.create_rule(request.model_dump(mode="json", exclude_unset=True), user)
    return RuleEnvelope(data=RuleResponse.from_domain(rule))


@router.put(
    "/assignment-rules/{rule_id}",
    response_model=RuleEnvelope,
    summary="Update Assignment Rule",
    dependencies=audit_rule,
)
def update_rule(
    rule_id: str,
    request: RuleUpdateRequest,
    user: CurrentUser = Depends(managers),
    service: RuleService = Depends(get_rule_service),
):
    rule = service.update_rule(rule_id, request.model_dump(mode="json", exclude_unset=True), user)
    return RuleEnvelope(data=RuleResponse.from_domain(rule))


@router.put(
    "/assignment-rules/{rule_id}/activate",
    response_model=RuleEnvelope,
    summary="Activate Assignment Rule",
    dependencies=audit_rule,
)
def activate_rule(
    rule_id: str,
    user: CurrentUser = Depends(managers),
    service: RuleService = Depends(get_rule_service),
):
    return RuleEnvelope(data=RuleResponse.from_domain(service.set_active(rule_id, True, user)))


@router.put(
    "/assignment-rules/{rule_id}/deactivate",
    response_model=RuleEnvelope,
    summary="Deactivate Assignment Rule",
    dependencies=audit_rule,
)
def deactivate_rule(
    rule_id: str,
    user: CurrentUser = Depends(managers),
    service: RuleService = Depends(get_rule_service),
):
    return RuleEnvelope(data=RuleResponse.from_domain(service.set_active(rule_id, False, user)))


@router.delete(
    "/assignment-rules/{rule_id}",
    response_model=MessageResponse,
    summary="Delete Assignment Rule",
    dependencies=audit_rule,
)
def delete_rule(
    rule_id: str,
    user: CurrentUser = Depends(managers),
    service: RuleService = Depends(get_rule_service),
):
    service.delete_rule(rule_id, user)
    return MessageResponse(message="Assignment rule deleted")
