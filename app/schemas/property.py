"""Property schemas, including the compliance snapshot returned on create."""
from datetime import date, datetime

from pydantic import BaseModel, field_validator

from app.models.deadline import DeadlineStatus
from app.models.property import UsageType
from app.schemas.jurisdiction import ComplianceRuleResponse, MATDueDateResponse, MATReportingResponse
from app.services.compliance import ComplianceStatus
from app.services.jurisdictions import normalize_municipality


class _PropertyFields(BaseModel):
    address_line2: str | None = None
    postal_code: str | None = None
    is_principal_residence: bool | None = None
    license_number: str | None = None
    license_expiry: date | None = None
    mat_number: str | None = None
    annual_nights: int | None = None
    emergency_contact: str | None = None
    local_contact: str | None = None


class PropertyCreate(_PropertyFields):
    address_line1: str
    municipality: str
    usage_type: UsageType = UsageType.short_term
    provides_911_info: bool = False
    exit_diagram_posted: bool = False
    keeps_records: bool = False
    evacuation_info: bool = False
    guest_info_package: bool = False
    mat_registered: bool = False
    collects_mat: bool = False
    mat_separate_line: bool = False
    quarterly_remittance: bool = False

    @field_validator("address_line1")
    @classmethod
    def address_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Address is required.")
        return v

    @field_validator("municipality")
    @classmethod
    def normalize(cls, v: str) -> str:
        v = normalize_municipality(v)
        if not v:
            raise ValueError("Municipality is required.")
        return v


class PropertyUpdate(_PropertyFields):
    """All optional; only provided fields are updated."""
    address_line1: str | None = None
    municipality: str | None = None
    usage_type: UsageType | None = None
    provides_911_info: bool | None = None
    exit_diagram_posted: bool | None = None
    keeps_records: bool | None = None
    evacuation_info: bool | None = None
    guest_info_package: bool | None = None
    mat_registered: bool | None = None
    collects_mat: bool | None = None
    mat_separate_line: bool | None = None
    quarterly_remittance: bool | None = None

    @field_validator("municipality")
    @classmethod
    def normalize(cls, v: str | None) -> str | None:
        return normalize_municipality(v) if v is not None else None


class PropertyResponse(_PropertyFields):
    id: int
    user_id: int
    address_line1: str
    municipality: str
    usage_type: UsageType
    provides_911_info: bool = False
    exit_diagram_posted: bool = False
    keeps_records: bool = False
    evacuation_info: bool = False
    guest_info_package: bool = False
    mat_registered: bool = False
    collects_mat: bool = False
    mat_separate_line: bool = False
    quarterly_remittance: bool = False
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class PropertyComplianceResponse(BaseModel):
    property: PropertyResponse
    compliance_status: ComplianceStatus
    failing_rules: list[ComplianceRuleResponse]
    passing_rules: list[ComplianceRuleResponse]
    compliance_explanation: str
    mat_reporting: MATReportingResponse | None = None
    next_mat_due: MATDueDateResponse | None = None


class DeadlineResponse(BaseModel):
    rule_key: str
    due_date: date
    status: DeadlineStatus
    last_notified_at: datetime | None = None

    class Config:
        from_attributes = True


class ScoreResponse(BaseModel):
    property_id: int
    score: int
    deadlines: list[DeadlineResponse]
    needs_attention: list[DeadlineResponse]
