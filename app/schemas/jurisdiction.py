"""Read-only views of the rule catalog and MAT schedules."""
from datetime import datetime

from pydantic import BaseModel

from app.services.jurisdictions import CheckKind, Severity
from app.services.mat_reporting import AppliesTo, ReportingFrequency


class RuleCheckResponse(BaseModel):
    kind: CheckKind
    field: str | None = None
    limit: int | None = None
    str_only: bool = True

    class Config:
        from_attributes = True


class ComplianceRuleResponse(BaseModel):
    id: str
    municipality: str
    name: str
    description: str
    bylaw_reference: str
    severity: Severity
    message: str
    check: RuleCheckResponse

    class Config:
        from_attributes = True


class FireEmergencyResponse(BaseModel):
    guest_emergency_contact: bool
    exit_diagram_posted: bool
    guest_info_package: bool
    evacuation_plan: bool

    class Config:
        from_attributes = True


class JurisdictionSummary(BaseModel):
    municipality: str
    bylaw: str
    version: str
    requires_registration: bool
    principal_residence_only: bool
    mat_required: bool
    draft_only: bool = False
    url: str | None = None

    class Config:
        from_attributes = True


class JurisdictionResponse(JurisdictionSummary):
    record_retention_years: int = 0
    max_entire_unit_nights: int | None = None
    fire_emergency: FireEmergencyResponse
    rules: list[ComplianceRuleResponse]


class MATReportingResponse(BaseModel):
    applies_to: AppliesTo
    reporting_frequency: ReportingFrequency
    due_description: str
    requires_zero_return: bool
    bylaw_reference: str
    due_offset_days: int | None = None

    class Config:
        from_attributes = True


class MATDueDateResponse(BaseModel):
    due_date: datetime | None = None
    description: str
    requires_zero_return: bool

    class Config:
        from_attributes = True


class MATScheduleResponse(BaseModel):
    municipality: str
    property_type: str
    reporting: MATReportingResponse | None = None
    next_due: MATDueDateResponse | None = None
