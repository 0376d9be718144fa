"""Rule catalog and MAT schedules (read-only, built into the code)."""
from fastapi import APIRouter, HTTPException, Query

from app.schemas.jurisdiction import (
    JurisdictionResponse,
    JurisdictionSummary,
    MATDueDateResponse,
    MATReportingResponse,
    MATScheduleResponse,
)
from app.services.jurisdictions import get_jurisdiction, list_jurisdictions, normalize_municipality
from app.services.mat_reporting import MATPropertyType, calculate_next_mat_due_date, get_mat_reporting_rules

router = APIRouter(prefix="/jurisdictions", tags=["jurisdictions"])


@router.get("", response_model=list[JurisdictionSummary])
def list_all():
    return [JurisdictionSummary.model_validate(j) for j in list_jurisdictions()]


@router.get("/{municipality}", response_model=JurisdictionResponse)
def get_one(municipality: str):
    jurisdiction = get_jurisdiction(municipality)
    if not jurisdiction:
        raise HTTPException(status_code=404, detail=f"No rules for municipality '{municipality}'")
    return JurisdictionResponse.model_validate(jurisdiction)


@router.get("/{municipality}/mat-reporting", response_model=MATScheduleResponse)
def mat_reporting(
    municipality: str,
    property_type: MATPropertyType = Query(MATPropertyType.str, description="str or hotel"),
):
    """MAT schedule and next due date. Municipalities without a MAT rule return nulls, not 404."""
    reporting = get_mat_reporting_rules(municipality, property_type)
    next_due = calculate_next_mat_due_date(municipality, property_type)
    return MATScheduleResponse(
        municipality=normalize_municipality(municipality),
        property_type=property_type.value,
        reporting=MATReportingResponse.model_validate(reporting) if reporting else None,
        next_due=MATDueDateResponse.model_validate(next_due) if next_due else None,
    )
