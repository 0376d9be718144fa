"""Compliance evaluator: classify a property against its municipality's rule set.

Status policy is binary and conservative: one critical gap makes the property
non-compliant no matter how many rules pass. The explanation is kept as an
ordered list of items and rendered to text only when a string is needed.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from app.services.jurisdictions import (
    ComplianceRule,
    JurisdictionRuleSet,
    Severity,
    get_jurisdiction,
    read_field,
)

DISCLAIMER = "⚠️ This is not legal advice. Always confirm with the municipality or legal counsel."
DRAFT_CAVEAT = "⚠️ Note: Rules based on policy documents only - confirm against final enacted by-law."


class ComplianceStatus(str, enum.Enum):
    compliant = "compliant"
    at_risk = "at_risk"
    non_compliant = "non_compliant"


class ExplanationKind(str, enum.Enum):
    header = "header"
    status = "status"
    failing_heading = "failing_heading"
    passing_heading = "passing_heading"
    failing = "failing"
    passing = "passing"
    caveat = "caveat"
    disclaimer = "disclaimer"


@dataclass(frozen=True)
class ExplanationItem:
    kind: ExplanationKind
    text: str
    rule_id: str | None = None


@dataclass(frozen=True)
class ComplianceResult:
    status: ComplianceStatus
    failing_rules: tuple[ComplianceRule, ...]
    passing_rules: tuple[ComplianceRule, ...]
    explanation_items: tuple[ExplanationItem, ...]
    jurisdiction: JurisdictionRuleSet | None
    explanation: str = field(default="")

    @property
    def failing_rule_ids(self) -> list[str]:
        return [r.id for r in self.failing_rules]

    @property
    def passing_rule_ids(self) -> list[str]:
        return [r.id for r in self.passing_rules]


_STATUS_BANNERS = {
    ComplianceStatus.compliant: "✓ COMPLIANT: All requirements met",
    ComplianceStatus.non_compliant: "✗ NON-COMPLIANT: Critical requirements not met",
    ComplianceStatus.at_risk: "⚠ AT RISK: Some requirements not met",
}


def decide_status(failing_rules: list[ComplianceRule] | tuple[ComplianceRule, ...]) -> ComplianceStatus:
    """First match wins: critical -> non_compliant, high -> at_risk, any failure -> at_risk."""
    critical_failures = sum(1 for r in failing_rules if r.severity == Severity.critical)
    high_failures = sum(1 for r in failing_rules if r.severity == Severity.high)
    if critical_failures > 0:
        return ComplianceStatus.non_compliant
    if high_failures > 0:
        return ComplianceStatus.at_risk
    if failing_rules:
        return ComplianceStatus.at_risk
    return ComplianceStatus.compliant


def build_explanation(
    status: ComplianceStatus,
    failing_rules: tuple[ComplianceRule, ...],
    passing_rules: tuple[ComplianceRule, ...],
    jurisdiction: JurisdictionRuleSet | None,
) -> tuple[ExplanationItem, ...]:
    bylaw = jurisdiction.bylaw if jurisdiction else "available regulations"
    version = jurisdiction.version if jurisdiction else "unknown version"
    items = [
        ExplanationItem(ExplanationKind.header, f"Based on {bylaw} ({version}):"),
        ExplanationItem(ExplanationKind.status, _STATUS_BANNERS[status]),
    ]
    if failing_rules:
        items.append(ExplanationItem(ExplanationKind.failing_heading, "Issues found:"))
        for rule in failing_rules:
            icon = "✗" if rule.severity == Severity.critical else "⚠"
            items.append(ExplanationItem(
                ExplanationKind.failing,
                f"{icon} {rule.message} ({rule.bylaw_reference})",
                rule_id=rule.id,
            ))
    if passing_rules:
        items.append(ExplanationItem(ExplanationKind.passing_heading, "Requirements met:"))
        for rule in passing_rules:
            items.append(ExplanationItem(ExplanationKind.passing, f"✓ {rule.name}", rule_id=rule.id))
    if jurisdiction and jurisdiction.draft_only:
        items.append(ExplanationItem(ExplanationKind.caveat, DRAFT_CAVEAT))
    items.append(ExplanationItem(ExplanationKind.disclaimer, DISCLAIMER))
    return tuple(items)


def render_explanation(items: tuple[ExplanationItem, ...] | list[ExplanationItem]) -> str:
    """Render explanation items to the multi-line text shown to landlords.

    Output is byte-stable for the same items (snapshot tests rely on it).
    """
    out = ""
    for item in items:
        if item.kind in (ExplanationKind.header, ExplanationKind.status):
            out += f"{item.text}\n\n"
        elif item.kind in (ExplanationKind.failing_heading, ExplanationKind.failing, ExplanationKind.passing):
            out += f"{item.text}\n"
        elif item.kind in (ExplanationKind.passing_heading, ExplanationKind.caveat):
            out += f"\n{item.text}\n"
        else:
            out += f"\n{item.text}"
    return out


def check_compliance(prop: Any) -> ComplianceResult:
    """Evaluate every rule of the property's municipality, in catalog order.

    An unknown municipality is not an error: there are no rules to fail, so the
    result is compliant and the explanation cites "available regulations".
    """
    jurisdiction = get_jurisdiction(read_field(prop, "municipality"))
    rules = jurisdiction.rules if jurisdiction else ()
    passing: list[ComplianceRule] = []
    failing: list[ComplianceRule] = []
    for rule in rules:
        if rule.passes(prop):
            passing.append(rule)
        else:
            failing.append(rule)

    status = decide_status(failing)
    items = build_explanation(status, tuple(failing), tuple(passing), jurisdiction)
    return ComplianceResult(
        status=status,
        failing_rules=tuple(failing),
        passing_rules=tuple(passing),
        explanation_items=items,
        jurisdiction=jurisdiction,
        explanation=render_explanation(items),
    )
