"""
SLA Configuration API Endpoints.

Read and replace the response/resolution hour table used for new deadlines.
"""

from fastapi import APIRouter, Depends

from api.dependencies import audited, get_audit_trail, get_current_user, get_sla_settings, require_roles
from api.models import SlaConfigModel, SlaConfigResponse, SlaConfigUpdateRequest
from domain.sla import SlaConfig
from domain.user import CurrentUser, MANAGER_ROLES
from services.activity_service import AuditTrail
from services.side_effects import PostCommitHooks
from services.sla_settings import SlaSettings

router = APIRouter()


def _model(config: SlaConfig) -> SlaConfigModel:
    return SlaConfigModel(**config.to_mapping())


@router.get(
    "/sla/config",
    response_model=SlaConfigResponse,
    summary="Get SLA Configuration",
)
def get_sla_config(
    user: CurrentUser = Depends(get_current_user),
    settings: SlaSettings = Depends(get_sla_settings),
):
    return SlaConfigResponse(data=_model(settings.current))


@router.put(
    "/sla/config",
    response_model=SlaConfigResponse,
    summary="Update SLA Configuration",
    description="Replace the SLA table. Existing deadlines are not recomputed.",
    dependencies=[Depends(audited("sla_config"))],
)
def update_sla_config(
    request: SlaConfigUpdateRequest,
    user: CurrentUser = Depends(require_roles(*MANAGER_ROLES)),
    settings: SlaSettings = Depends(get_sla_settings),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """
    **Example request:**
    ```json
    {
      "response_times": {"high": 1, "medium": 4, "low": 8},
      "resolution_times": {"high": 12, "medium": 48, "low": 72}
    }
    ```
    """
    previous = settings.current
    config = settings.replace(request.model_dump(exclude_none=True))

    hooks = PostCommitHooks()
    hooks.add(
        "audit_sla",
        audit.record,
        user.id,
        "sla_config",
        "global",
        "update",
        {"from": previous.to_mapping(), "to": config.to_mapping()},
    )
    hooks.run()
    return SlaConfigResponse(message="SLA configuration updated", data=_model(config))
