"""Seed municipal deadline rules (licence, insurance, fire inspection, MAT filing)."""
from sqlalchemy.orm import Session

from app.models.deadline import DeadlineRule

# (key, name, frequency_iso, notes)
_STR_LICENSE = ("str_license", "Short-term rental licence/registration renewal", "P1Y", "Annual renewal with the municipality")
_INSURANCE = ("insurance", "Liability insurance renewal", "P1Y", "Proof of insurance covering short-term rental use")
_FIRE = ("fire_inspection", "Fire safety inspection / certificate", "P1Y", None)
_MAT = ("mat_filing", "Municipal Accommodation Tax return", "P3M", "Quarterly MAT remittance; zero returns required")

DEADLINE_RULES_BY_MUNICIPALITY = {
    "toronto": (_STR_LICENSE, _INSURANCE, _FIRE, _MAT),
    "mississauga": (_STR_LICENSE, _INSURANCE, _FIRE, _MAT),
    "brampton": (_STR_LICENSE, _INSURANCE, _FIRE, _MAT),
    "vaughan": (_STR_LICENSE, _INSURANCE, _MAT),
    "newmarket": (_STR_LICENSE, _INSURANCE, _FIRE, _MAT),
    "hamilton": (_MAT,),
}


def seed_deadline_rules(db: Session) -> int:
    """Insert missing rules; returns how many were added."""
    existing = {(r.municipality, r.key) for r in db.query(DeadlineRule.municipality, DeadlineRule.key).all()}
    added = 0
    for municipality, rules in DEADLINE_RULES_BY_MUNICIPALITY.items():
        for key, name, frequency_iso, notes in rules:
            if (municipality, key) in existing:
                continue
            db.add(DeadlineRule(
                municipality=municipality,
                key=key,
                name=name,
                frequency_iso=frequency_iso,
                notes=notes,
                is_active=True,
            ))
            added += 1
    if added:
        db.commit()
    return added
