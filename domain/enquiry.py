"""
Domain: Enquiry entity (sales lead) and its enumerations.

Contract excerpts implemented here:
- An Enquiry is uniquely identified by `id` (UUID) and carries a human-readable
  sequential code `ENQ-YYYYMMDD-NNNN`.
- `status` and `stage` move together; `stage` is derived from status plus
  assignment state by `domain.lifecycle`.
- Remarks are append-only.
- All timestamps are UTC.

This module holds only pure entities and value objects: no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

from .time import require_utc_timestamp


class TypeOfLead(str, Enum):
    B2B = "B2B"
    B2C = "B2C"


class EnquiryProfile(str, Enum):
    PROJECT = "Project"
    PRODUCT = "Product"
    AMC_SERVICE = "AMC/Service"
    COMPLAINT = "Complaint"
    JOB = "Job"
    INFO_REQUEST = "Info Request"
    INSTALLATION = "Installation"
    UNKNOWN = "Unknown"


class SourceType(str, Enum):
    WEBSITE = "Website"
    WHATSAPP = "WhatsApp"
    META_ADS = "Meta Ads"
    JUSTDIAL = "JustDial"
    INDIAMART = "IndiaMART"
    WALK_IN = "Walk-in"
    REFERRAL = "Referral"
    COLD_CALL = "Cold Call"
    OTHER = "Other"


class ChannelType(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"
    API = "API"
    MANUAL = "Manual"
    BULK_UPLOAD = "Bulk Upload"


class EnquiryStatus(str, Enum):
    UNKNOWN = "Unknown"
    NEW = "New"
    BLOCKED = "Blocked"
    IN_PROGRESS = "In Progress"
    QUOTED = "Quoted"
    CONVERTED = "Converted"
    REJECTED = "Rejected"
    DUPLICATE = "Duplicate"
    REPEAT = "Repeat"
    ARCHIVED = "Archived"


class EnquiryStage(str, Enum):
    TELECALLER_QUEUE = "Telecaller Queue"
    CAPTURED = "Captured"
    PROFILE_IDENTIFIED = "Profile Identified"
    ASSIGNMENT_PENDING = "Assignment Pending"
    ASSIGNED = "Assigned"
    ACTION_IN_PROGRESS = "Action in Progress"
    QUOTED = "Quoted"
    FOLLOW_UP = "Follow-Up"
    CLOSED_CONVERTED = "Closed - Converted"
    CLOSED_REJECTED = "Closed - Rejected"
    INTERNAL_REVIEW = "Internal Review"
    RE_PROCESSING = "Re-processing"
    ARCHIVED = "Archived"
    VALIDATION = "Validation"


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class BusinessModel(str, Enum):
    CAPEX = "Capex"
    OPEX = "Opex"


class Category(str, Enum):
    RESIDENTIAL = "Residential"
    INDUSTRIAL = "Industrial"
    COMMERCIAL = "Commercial"
    GOVERNMENT = "Government"


class CallStatus(str, Enum):
    NOT_CALLED = "Not Called"
    CALL_SCHEDULED = "Call Scheduled"
    CALL_SUCCESSFUL = "Call Successful"
    MISSED = "Missed"
    BUSY = "Busy"
    NOT_REACHABLE = "Not Reachable"
    INVALID_NUMBER = "Invalid Number"
    FOLLOW_UP_SCHEDULED = "Follow-up Scheduled"
    CALL_REJECTED = "Call Rejected"
    NO_RESPONSE = "No Response"
    DO_NOT_DISTURB = "Do Not Disturb"


# Statuses that count towards an agent's open workload.
OPEN_STATUSES: Tuple[EnquiryStatus, ...] = (EnquiryStatus.NEW, EnquiryStatus.IN_PROGRESS)


@dataclass(frozen=True, slots=True)
class Remark:
    text: str
    added_by: Optional[UUID]
    added_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("added_at", self.added_at)


@dataclass(frozen=True, slots=True)
class Enquiry:
    """
    Aggregate root for a sales enquiry.

    Immutability:
    - Transitions return new instances (see `domain.lifecycle`); callers persist
      the returned value.
    """

    id: UUID
    enquiry_code: str
    name: str
    mobile: str
    type_of_lead: TypeOfLead
    source_type: SourceType
    created_at: datetime

    enquiry_profile: EnquiryProfile = EnquiryProfile.UNKNOWN
    channel_type: ChannelType = ChannelType.MANUAL
    status: EnquiryStatus = EnquiryStatus.UNKNOWN
    stage: EnquiryStage = EnquiryStage.TELECALLER_QUEUE
    priority: Priority = Priority.MEDIUM
    response_due: Optional[datetime] = None
    resolution_due: Optional[datetime] = None

    # Contact / company
    email: Optional[str] = None
    company_name: Optional[str] = None

    # Type-specific details
    business_model: Optional[BusinessModel] = None
    pv_capacity_kw: Optional[float] = None
    category: Optional[Category] = None
    annual_revenue: Optional[float] = None
    employee_count: Optional[int] = None
    aadhaar_number: Optional[str] = None
    pan_number: Optional[str] = None

    # Loan documents
    need_loan: bool = False
    aadhaar_file: Optional[str] = None
    electricity_bill_file: Optional[str] = None
    bank_statement_file: Optional[str] = None
    pan_file: Optional[str] = None
    project_proposal_file: Optional[str] = None

    # Location
    project_location: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None

    # Assignment
    assigned_to: Optional[UUID] = None
    assigned_team: Optional[str] = None

    # Duplicate tracking
    is_duplicate: bool = False
    duplicate_of: Optional[UUID] = None

    remarks: Tuple[Remark, ...] = field(default_factory=tuple)

    # Call tracking
    call_status: CallStatus = CallStatus.NOT_CALLED
    last_called_at: Optional[datetime] = None
    next_follow_up: Optional[datetime] = None

    created_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        for name in (
            "response_due",
            "resolution_due",
            "last_called_at",
            "next_follow_up",
            "updated_at",
            "closed_at",
        ):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def is_assigned(self) -> bool:
        return self.assigned_to is not None

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    @property
    def profile_known(self) -> bool:
        return self.enquiry_profile != EnquiryProfile.UNKNOWN

    def with_remark(self, text: str, added_by: Optional[UUID], added_at: datetime) -> "Enquiry":
        """Return a copy with one remark appended."""

        remark = Remark(text=text, added_by=added_by, added_at=added_at)
        return replace(self, remarks=self.remarks + (remark,))


__all__ = [
    "BusinessModel",
    "CallStatus",
    "Category",
    "ChannelType",
    "Enquiry",
    "EnquiryProfile",
    "EnquiryStage",
    "EnquiryStatus",
    "OPEN_STATUSES",
    "Priority",
    "Remark",
    "SourceType",
    "TypeOfLead",
]
