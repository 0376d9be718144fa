"""Properties: CRUD plus the compliance snapshot, deadlines and score."""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_paid_plan
from app.models.property import Property
from app.models.user import User
from app.schemas.jurisdiction import ComplianceRuleResponse, MATDueDateResponse, MATReportingResponse
from app.schemas.property import (
    DeadlineResponse,
    PropertyComplianceResponse,
    PropertyCreate,
    PropertyResponse,
    PropertyUpdate,
    ScoreResponse,
)
from app.services.compliance import check_compliance
from app.services.mat_reporting import MATPropertyType, calculate_next_mat_due_date, get_mat_reporting_rules
from app.services.reminder_job import refresh_property_deadlines
from app.services.scoring import calculate_compliance_score, deadlines_needing_attention

router = APIRouter(prefix="/properties", tags=["properties"])


def _with_compliance(prop: Property) -> PropertyComplianceResponse:
    result = check_compliance(prop)
    reporting = get_mat_reporting_rules(prop.municipality, MATPropertyType.str)
    next_due = calculate_next_mat_due_date(prop.municipality, MATPropertyType.str)
    return PropertyComplianceResponse(
        property=PropertyResponse.model_validate(prop),
        compliance_status=result.status,
        failing_rules=[ComplianceRuleResponse.model_validate(r) for r in result.failing_rules],
        passing_rules=[ComplianceRuleResponse.model_validate(r) for r in result.passing_rules],
        compliance_explanation=result.explanation,
        mat_reporting=MATReportingResponse.model_validate(reporting) if reporting else None,
        next_mat_due=MATDueDateResponse.model_validate(next_due) if next_due else None,
    )


def _get_own_property(db: Session, property_id: int, user: User) -> Property:
    prop = db.query(Property).filter(Property.id == property_id, Property.user_id == user.id).first()
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


@router.post("", response_model=PropertyComplianceResponse, status_code=201)
def create_property(
    data: PropertyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prop = Property(user_id=current_user.id, **data.model_dump())
    db.add(prop)
    db.flush()
    refresh_property_deadlines(db, prop)
    db.commit()
    db.refresh(prop)
    return _with_compliance(prop)


@router.get("", response_model=list[PropertyComplianceResponse])
def list_properties(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    props = db.query(Property).filter(Property.user_id == current_user.id).order_by(Property.id).all()
    return [_with_compliance(p) for p in props]


@router.get("/{property_id}", response_model=PropertyComplianceResponse)
def get_property(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _with_compliance(_get_own_property(db, property_id, current_user))


@router.patch("/{property_id}", response_model=PropertyComplianceResponse)
def update_property(
    property_id: int,
    data: PropertyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Partial update; compliance is re-evaluated against the new facts."""
    prop = _get_own_property(db, property_id, current_user)
    changes = data.model_dump(exclude_unset=True)
    for key in ("address_line1", "municipality", "usage_type"):
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} cannot be null")
    municipality_changed = "municipality" in changes and changes["municipality"] != prop.municipality
    for key, value in changes.items():
        setattr(prop, key, value)
    if municipality_changed:
        # Old municipality's deadlines no longer apply
        prop.deadlines.clear()
        db.flush()
    refresh_property_deadlines(db, prop)
    db.commit()
    db.refresh(prop)
    return _with_compliance(prop)


@router.delete("/{property_id}", status_code=204)
def delete_property(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prop = _get_own_property(db, property_id, current_user)
    db.delete(prop)
    db.commit()
    return Response(status_code=204)


@router.get("/{property_id}/deadlines", response_model=list[DeadlineResponse])
def list_deadlines(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prop = _get_own_property(db, property_id, current_user)
    deadlines = refresh_property_deadlines(db, prop)
    db.commit()
    return [DeadlineResponse.model_validate(d) for d in deadlines]


@router.get("/{property_id}/score", response_model=ScoreResponse)
def property_score(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_paid_plan),
):
    prop = _get_own_property(db, property_id, current_user)
    deadlines = refresh_property_deadlines(db, prop, datetime.now(timezone.utc))
    db.commit()
    return ScoreResponse(
        property_id=prop.id,
        score=calculate_compliance_score(deadlines),
        deadlines=[DeadlineResponse.model_validate(d) for d in deadlines],
        needs_attention=[DeadlineResponse.model_validate(d) for d in deadlines_needing_attention(deadlines)],
    )
