"""Jurisdiction rule catalog: per-municipality STR by-law requirements.

Each rule's check is plain data (a ``RuleCheck``) and is evaluated by
``evaluate_check`` through a dispatch table, so the catalog can be listed,
serialized and tested without running any code attached to it.

The catalog is built once at import and never mutated.
"""
from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable

from app.models.property import UsageType


class Severity(str, enum.Enum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"


class CheckKind(str, enum.Enum):
    field_present = "field_present"  # truthy value in `field`
    principal_residence = "principal_residence"  # is_principal_residence is exactly True
    max_annual_nights = "max_annual_nights"  # (annual_nights or 0) <= limit
    never = "never"  # draft / study-only notice, always fails


@dataclass(frozen=True)
class RuleCheck:
    kind: CheckKind
    field: str | None = None
    limit: int | None = None
    # Long-term rentals pass str_only checks without looking at the property
    str_only: bool = True


@dataclass(frozen=True)
class ComplianceRule:
    id: str
    municipality: str
    name: str
    description: str
    bylaw_reference: str
    severity: Severity
    check: RuleCheck
    message: str

    def passes(self, prop: Any) -> bool:
        return evaluate_check(self.check, prop)


@dataclass(frozen=True)
class FireEmergencyRequirements:
    guest_emergency_contact: bool = False
    exit_diagram_posted: bool = False
    guest_info_package: bool = False
    evacuation_plan: bool = False


@dataclass(frozen=True)
class JurisdictionRuleSet:
    municipality: str
    bylaw: str
    version: str
    requires_registration: bool
    principal_residence_only: bool
    mat_required: bool
    record_retention_years: int = 0
    max_entire_unit_nights: int | None = None
    fire_emergency: FireEmergencyRequirements = field(default_factory=FireEmergencyRequirements)
    rules: tuple[ComplianceRule, ...] = ()
    url: str | None = None
    # Rules come from a council report or background study, not an enacted by-law
    draft_only: bool = False


def read_field(prop: Any, name: str) -> Any:
    """Read one field from a property given as a mapping, ORM row or model. Missing reads as None."""
    if prop is None:
        return None
    if isinstance(prop, Mapping):
        return prop.get(name)
    return getattr(prop, name, None)


def is_long_term(prop: Any) -> bool:
    usage = read_field(prop, "usage_type")
    if isinstance(usage, enum.Enum):
        usage = usage.value
    return usage == UsageType.long_term.value


def _check_field_present(check: RuleCheck, prop: Any) -> bool:
    return bool(read_field(prop, check.field or ""))


def _check_principal_residence(check: RuleCheck, prop: Any) -> bool:
    return read_field(prop, "is_principal_residence") is True


def _check_max_annual_nights(check: RuleCheck, prop: Any) -> bool:
    nights = read_field(prop, "annual_nights") or 0
    try:
        return int(nights) <= (check.limit or 0)
    except (TypeError, ValueError):
        return False


def _check_never(check: RuleCheck, prop: Any) -> bool:
    return False


_CHECKS: dict[CheckKind, Callable[[RuleCheck, Any], bool]] = {
    CheckKind.field_present: _check_field_present,
    CheckKind.principal_residence: _check_principal_residence,
    CheckKind.max_annual_nights: _check_max_annual_nights,
    CheckKind.never: _check_never,
}


def evaluate_check(check: RuleCheck, prop: Any) -> bool:
    """True = compliant. Never raises for a property-shaped input."""
    if check.str_only and is_long_term(prop):
        return True
    return _CHECKS[check.kind](check, prop)


def _present(field_name: str) -> RuleCheck:
    return RuleCheck(CheckKind.field_present, field=field_name)


_PRINCIPAL_RESIDENCE = RuleCheck(CheckKind.principal_residence)
_NEVER = RuleCheck(CheckKind.never, str_only=False)


def _rule(municipality: str, id: str, name: str, description: str, bylaw_reference: str,
          severity: Severity, check: RuleCheck, message: str) -> ComplianceRule:
    return ComplianceRule(
        id=id,
        municipality=municipality,
        name=name,
        description=description,
        bylaw_reference=bylaw_reference,
        severity=severity,
        check=check,
        message=message,
    )


TORONTO_CH_547 = "Toronto Municipal Code Chapter 547"
MISSISSAUGA_0289 = "Short Term Rental Accommodation Licensing By-Law 0289-2020"
BRAMPTON_165 = "Short-Term Rental By-law 165-2021"
VAUGHAN_158 = "Short-Term Rental By-law 158-2019 (Consolidated)"
NEWMARKET_MAT = "Municipal Accommodation Tax By-law 2024-68"
HAMILTON_DRAFT = "Report PED17203(c) - Draft Framework"
RICHMOND_HILL_STUDY = "Short-Term And Shared Accommodations Study"


def _build_catalog() -> dict[str, JurisdictionRuleSet]:
    toronto = JurisdictionRuleSet(
        municipality="toronto",
        bylaw=TORONTO_CH_547,
        version="as of 2025-01-01",
        requires_registration=True,
        principal_residence_only=True,
        max_entire_unit_nights=180,
        record_retention_years=3,
        mat_required=True,
        fire_emergency=FireEmergencyRequirements(guest_emergency_contact=True, exit_diagram_posted=True),
        rules=(
            _rule("toronto", "toronto_registration_required", "Operator Registration Required",
                  "All STR operators must have valid registration",
                  f"{TORONTO_CH_547}, §547-1.2, §547-4.1", Severity.critical, _present("license_number"),
                  "STR operator registration required under Chapter 547, §547-1.2, §547-4.1"),
            _rule("toronto", "toronto_principal_residence", "Principal Residence Requirement",
                  "STR must be operator's principal residence",
                  f"{TORONTO_CH_547}, §547-4.2", Severity.critical, _PRINCIPAL_RESIDENCE,
                  "STR must be your principal residence per §547-4.2"),
            _rule("toronto", "toronto_emergency_contact", "Emergency Contact Information",
                  "Must provide emergency contact available during entire stay",
                  TORONTO_CH_547, Severity.high, _present("emergency_contact"),
                  "Must provide guests emergency contact information for person available during entire stay"),
            _rule("toronto", "toronto_911_info", "9-1-1 Information",
                  "Must provide information on using 9-1-1",
                  TORONTO_CH_547, Severity.high, _present("provides_911_info"),
                  "Must provide guests information on using 9-1-1"),
            _rule("toronto", "toronto_exit_diagram", "Exit Diagram Posted",
                  "Must post diagram of all exits in conspicuous place",
                  TORONTO_CH_547, Severity.high, _present("exit_diagram_posted"),
                  "Must post diagram of all exits from building in conspicuous place during guest stay"),
            _rule("toronto", "toronto_180_night_cap", "180-Night Annual Cap",
                  "Entire-unit STR capped at 180 nights per year",
                  TORONTO_CH_547, Severity.medium, RuleCheck(CheckKind.max_annual_nights, limit=180),
                  "Entire-unit STR capped at 180 nights per calendar year"),
            _rule("toronto", "toronto_record_keeping", "Record Keeping (3 years)",
                  "Must keep detailed transaction records for 3 years",
                  f"{TORONTO_CH_547}, §547-4.5", Severity.medium, _present("keeps_records"),
                  "Must keep detailed transaction records (nights, prices, entire/partial) for 3 years per §547-4.5"),
        ),
    )

    mississauga = JurisdictionRuleSet(
        municipality="mississauga",
        bylaw="Short-Term Rental Accommodation Licensing By-law 0289-2020",
        version="with amendments",
        requires_registration=True,
        principal_residence_only=False,
        record_retention_years=3,
        mat_required=False,
        fire_emergency=FireEmergencyRequirements(
            guest_emergency_contact=True, guest_info_package=True, evacuation_plan=True,
        ),
        rules=(
            _rule("mississauga", "mississauga_license_required", "STR Accommodation License Required",
                  "Valid license required to operate STR",
                  MISSISSAUGA_0289, Severity.critical, _present("license_number"),
                  "STR Accommodation License required under By-law 0289-2020"),
            _rule("mississauga", "mississauga_local_contact", "Local Contact Required",
                  "Must provide local contact details",
                  MISSISSAUGA_0289, Severity.high, _present("local_contact"),
                  "Local contact details required per Schedule A"),
            _rule("mississauga", "mississauga_evacuation_info", "Evacuation/Safety Info Package",
                  "Must provide evacuation plan and safety info to guests",
                  MISSISSAUGA_0289, Severity.high, _present("evacuation_info"),
                  "Guest info including evacuation plan/safety info required per Schedule"),
            _rule("mississauga", "mississauga_record_keeping", "Record Keeping (3 years)",
                  "Maintain records including stays, fees, and MAT for 3 years",
                  MISSISSAUGA_0289, Severity.medium, _present("keeps_records"),
                  "Maintain records (stays, fees, MAT where applicable) for 3 years"),
        ),
    )

    brampton = JurisdictionRuleSet(
        municipality="brampton",
        bylaw=BRAMPTON_165,
        version="office consolidation",
        requires_registration=True,
        principal_residence_only=True,
        record_retention_years=3,
        mat_required=False,
        fire_emergency=FireEmergencyRequirements(
            guest_emergency_contact=True, guest_info_package=True, evacuation_plan=True,
        ),
        rules=(
            _rule("brampton", "brampton_host_license", "STR Host License Required",
                  "License required for all STR hosts",
                  f"{BRAMPTON_165}, Part III", Severity.critical, _present("license_number"),
                  "STR Host License required under By-law 165-2021, Part III"),
            _rule("brampton", "brampton_principal_residence", "Principal Residence Only",
                  "STR must be principal residence",
                  BRAMPTON_165, Severity.critical, _PRINCIPAL_RESIDENCE,
                  "STR must be principal residence under By-law 165-2021"),
            _rule("brampton", "brampton_guest_info_package", "Guest Information Package Required",
                  "Comprehensive guest info package with emergency contacts and safety info",
                  BRAMPTON_165, Severity.high, _present("guest_info_package"),
                  "Guest information package required with 24/7 emergency contact, floor plan with "
                  "exits/safety equipment, police/health emergency contacts, and fire safety plan"),
        ),
    )

    vaughan = JurisdictionRuleSet(
        municipality="vaughan",
        bylaw="Short-Term Rental Licensing By-law 158-2019 (Consolidated)",
        version="with amendments to 2025",
        requires_registration=True,
        principal_residence_only=False,
        record_retention_years=3,
        mat_required=True,
        rules=(
            _rule("vaughan", "vaughan_owner_license", "STR Owner License Required",
                  "STR owners must be licensed",
                  VAUGHAN_158, Severity.critical, _present("license_number"),
                  "STR Owner License required under By-law 158-2019"),
            _rule("vaughan", "vaughan_mat_registration", "MAT Registration Required",
                  "Must be registered for Municipal Accommodation Tax",
                  VAUGHAN_158, Severity.critical, _present("mat_registered"),
                  "Must be registered for Municipal Accommodation Tax before licence issuance"),
        ),
    )

    newmarket = JurisdictionRuleSet(
        municipality="newmarket",
        bylaw=NEWMARKET_MAT,
        version="effective Jan 1, 2025",
        requires_registration=False,
        principal_residence_only=False,
        record_retention_years=3,
        mat_required=True,
        rules=(
            _rule("newmarket", "newmarket_mat_collection", "4% MAT Collection Required",
                  "4% MAT on STR stays under 28 days",
                  NEWMARKET_MAT, Severity.critical, _present("collects_mat"),
                  "4% MAT collection required on STR stays under 28 days, effective Jan 1, 2025"),
            _rule("newmarket", "newmarket_mat_separate_line", "MAT as Separate Line Item",
                  "MAT must be shown as separate line item",
                  NEWMARKET_MAT, Severity.high, _present("mat_separate_line"),
                  "MAT must be shown as separate line item to guests"),
            _rule("newmarket", "newmarket_quarterly_remittance", "Quarterly MAT Remittance",
                  "STR providers must remit MAT quarterly",
                  NEWMARKET_MAT, Severity.high, _present("quarterly_remittance"),
                  "STR providers must remit MAT quarterly (within 15 days of period end)"),
        ),
    )

    hamilton = JurisdictionRuleSet(
        municipality="hamilton",
        bylaw=HAMILTON_DRAFT,
        version="policy document only",
        requires_registration=False,
        principal_residence_only=False,
        mat_required=False,
        draft_only=True,
        rules=(
            _rule("hamilton", "hamilton_draft_notice", "Draft Rules - Confirmation Required",
                  "Hamilton rules based on council framework only",
                  HAMILTON_DRAFT, Severity.medium, _NEVER,
                  "Based on draft framework from Report PED17203(c) - confirm against final enacted "
                  "by-law before operating"),
        ),
    )

    richmond_hill = JurisdictionRuleSet(
        municipality="richmond_hill",
        bylaw=RICHMOND_HILL_STUDY,
        version="first draft study",
        requires_registration=False,
        principal_residence_only=False,
        mat_required=False,
        draft_only=True,
        rules=(
            _rule("richmond_hill", "richmond_hill_study_only", "Study Document Only - No Binding Rules",
                  "No binding STR by-law from loaded documents",
                  RICHMOND_HILL_STUDY, Severity.low, _NEVER,
                  "Background study only - not enforceable by-law. No specific STR licensing requirements "
                  "found. Confirm directly with municipality."),
        ),
    )

    return {
        js.municipality: js
        for js in (toronto, mississauga, brampton, vaughan, newmarket, hamilton, richmond_hill)
    }


JURISDICTION_RULES: Mapping[str, JurisdictionRuleSet] = MappingProxyType(_build_catalog())


def normalize_municipality(municipality: str | None) -> str:
    """'Richmond Hill' / 'richmond-hill' -> 'richmond_hill'."""
    if not municipality:
        return ""
    key = str(municipality).strip().lower()
    return "_".join(key.replace("-", " ").split())


def get_jurisdiction(municipality: str | None) -> JurisdictionRuleSet | None:
    return JURISDICTION_RULES.get(normalize_municipality(municipality))


def list_jurisdictions() -> list[JurisdictionRuleSet]:
    return list(JURISDICTION_RULES.values())


def municipality_rules() -> dict[str, tuple[ComplianceRule, ...]]:
    """Municipality -> rules, for callers that only need the rule lists."""
    return {key: js.rules for key, js in JURISDICTION_RULES.items()}
