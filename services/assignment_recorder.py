"""
Assignment recorder.

Writes one AssignmentLog per assignment decision and closes out the previous
record for the same enquiry by attaching its duration in whole minutes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional
from uuid import UUID

from domain.assignment_log import (
    Assignee,
    AssignmentLog,
    AssignmentMethod,
    AssignmentReason,
    AssignmentType,
)
from domain.codes import ASSIGNMENT_LOG_PREFIX, day_prefix, next_code
from services.context import ServiceContext

logger = logging.getLogger(__name__)


class AssignmentRecorder:
    def __init__(self, ctx: ServiceContext):
        self._ctx = ctx

    def record(
        self,
        enquiry_id: UUID,
        old_assignee: Assignee,
        new_assignee: Assignee,
        assigned_by: Optional[UUID],
        assignment_type: AssignmentType,
        assignment_reason: AssignmentReason,
        assignment_method: AssignmentMethod,
        remarks: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        at: Optional[datetime] = None,
    ) -> AssignmentLog:
        logs = self._ctx.assignment_logs
        now = at or self._ctx.clock()

        previous = logs.latest_for_enquiry(enquiry_id)
        code = next_code(
            ASSIGNMENT_LOG_PREFIX,
            now,
            logs.last_code_with_prefix(day_prefix(ASSIGNMENT_LOG_PREFIX, now)),
        )
        log = AssignmentLog(
            assignment_log_id=code,
            enquiry_id=enquiry_id,
            old_assignee=old_assignee,
            new_assignee=new_assignee,
            assigned_by=assigned_by,
            assignment_type=assignment_type,
            assignment_reason=assignment_reason,
            assignment_method=assignment_method,
            timestamp=now,
            remarks=remarks,
            metadata=dict(metadata or {}),
        )
        saved = logs.insert(log)

        if previous is not None and previous.assignment_duration is None:
            closed = previous.superseded_at(now)
            logs.set_duration(previous.assignment_log_id, closed.assignment_duration)

        logger.info(
            "Assignment recorded",
            extra={
                "assignment_log_id": code,
                "enquiry_id": str(enquiry_id),
                "assigned_to": str(new_assignee.user_id) if new_assignee.user_id else None,
                "assignment_method": assignment_method.value,
            },
        )
        return saved


__all__ = ["AssignmentRecorder"]
