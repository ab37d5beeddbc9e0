"""
Assignment Log API Endpoints.

Read-only access to the assignment audit trail: per-enquiry history, filtered
listing, per-user statistics, analytics and current workload.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_current_user, get_history_service, require_roles
from api.models import (
    AnalyticsResponse,
    AssignmentHistoryResponse,
    AssignmentLogListResponse,
    AssignmentLogResponse,
    BreakdownModel,
    DailyCountModel,
    PaginationInfo,
    UserStatsResponse,
    WorkloadModel,
    WorkloadResponse,
)
from domain.assignment_log import AssignmentMethod, AssignmentType
from domain.time import as_utc
from domain.user import CurrentUser, MANAGER_ROLES
from repositories.assignment_log_repository import AssignmentLogFilters
from services.assignment_history_service import AssignmentHistoryService

router = APIRouter()


@router.get(
    "/assignment-logs",
    response_model=AssignmentLogListResponse,
    summary="List Assignment Logs",
)
def list_logs(
    enquiry_id: Optional[UUID] = Query(None),
    assigned_to: Optional[UUID] = Query(None, description="New assignee"),
    assigned_by: Optional[UUID] = Query(None),
    assignment_type: Optional[AssignmentType] = Query(None),
    assignment_method: Optional[AssignmentMethod] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1),
    limit: int = Query(10),
    user: CurrentUser = Depends(require_roles(*MANAGER_ROLES)),
    service: AssignmentHistoryService = Depends(get_history_service),
):
    filters = AssignmentLogFilters(
        enquiry_id=enquiry_id,
        assigned_to=assigned_to,
        assigned_by=assigned_by,
        assignment_type=assignment_type,
        assignment_method=assignment_method,
        since=as_utc(start_date),
        until=as_utc(end_date),
    )
    result = service.list_logs(filters, page, limit)
    return AssignmentLogListResponse(
        data=[AssignmentLogResponse.from_domain(log) for log in result.items],
        pagination=PaginationInfo.from_page(result),
    )


@router.get(
    "/assignment-logs/enquiry/{enquiry_id}",
    response_model=AssignmentHistoryResponse,
    summary="Enquiry Assignment History",
    description="Every assignment of one enquiry, newest first."
)
def enquiry_history(
    enquiry_id: UUID,
    limit: Optional[int] = Query(None, ge=1),
    user: CurrentUser = Depends(get_current_user),
    service: AssignmentHistoryService = Depends(get_history_service),
):
    logs = service.enquiry_history(enquiry_id, limit)
    return AssignmentHistoryResponse(data=[AssignmentLogResponse.from_domain(log) for log in logs])


@router.get(
    "/assignment-logs/user/{user_id}/stats",
    response_model=UserStatsResponse,
    summary="User Assignment Stats",
    description="Assignments received per day and type within the window."
)
def user_stats(
    user_id: UUID,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    service: AssignmentHistoryService = Depends(get_history_service),
):
    rows = service.user_stats(user_id, as_utc(start_date), as_utc(end_date))
    return UserStatsResponse(
        data=[
            DailyCountModel(
                date=r.date,
                assignment_type=r.assignment_type,
                count=r.count,
                average_duration_minutes=r.average_duration_minutes,
            )
            for r in rows
        ]
    )


@router.get(
    "/assignment-logs/analytics",
    response_model=AnalyticsResponse,
    summary="Assignment Analytics",
)
def analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user: CurrentUser = Depends(require_roles(*MANAGER_ROLES)),
    service: AssignmentHistoryService = Depends(get_history_service),
):
    """
    Count and average assignment duration (minutes) grouped by assignment type
    and method.

    **Example usage:**
    - `GET /api/v1/assignment-logs/analytics?start_date=2024-01-01&end_date=2024-01-31`
    """
    rows = service.analytics(as_utc(start_date), as_utc(end_date))
    return AnalyticsResponse(
        data=[
            BreakdownModel(
                assignment_type=r.assignment_type,
                assignment_method=r.assignment_method,
                count=r.count,
                average_duration_minutes=r.average_duration_minutes,
            )
            for r in rows
        ]
    )


@router.get(
    "/assignment-logs/workload",
    response_model=WorkloadResponse,
    summary="Workload Distribution",
    description="Open (New / In Progress) enquiries per assignee."
)
def workload(
    user: CurrentUser = Depends(require_roles(*MANAGER_ROLES)),
    service: AssignmentHistoryService = Depends(get_history_service),
):
    return WorkloadResponse(
        data=[
            WorkloadModel(user_id=w.user_id, name=w.name, team=w.team, open_enquiries=w.open_enquiries)
            for w in service.workload()
        ]
    )
