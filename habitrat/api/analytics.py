"""
habitrat/api/analytics.py

Read API over the persisted analytics rows, plus a preview endpoint that runs
the metric library on a client-supplied log slice.

A missing row is a valid "no data yet" state: the payload is {"data": null}.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

import pydantic
from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from habitrat.core.errors import ValidationError
from habitrat.features.scoring.log_view import LogView
from habitrat.features.scoring.report import build_user_report
from habitrat.features.storage.store import get_store
from habitrat.models.habit import Habit

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])


class PreviewHabit(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    active: bool = True
    created_at: Optional[datetime] = None


class PreviewRequest(BaseModel):
    as_of: date
    user_id: str = "preview"
    habits: List[PreviewHabit]
    logs: Dict[str, Dict[str, Union[bool, Dict[str, Any]]]] = Field(
        default_factory=dict,
        description="{YYYY-MM-DD: {habit_id: bool | {completed, completionTime?, failureReason?, mood?}}}",
    )


@router.get("/habits/{habit_id}", response_model=Dict[str, Any])
def get_habit_analytics(
    habit_id: str,
    analytics_date: Optional[date] = Query(None, alias="date", description="Defaults to the latest row"),
) -> Dict[str, Any]:
    row = get_store().get_habit_analytics(habit_id, analytics_date)
    return {"data": row.model_dump(mode="json") if row else None}


@router.get("/users/{user_id}/burnout", response_model=Dict[str, Any])
def get_user_burnout(
    user_id: str,
    analytics_date: Optional[date] = Query(None, alias="date", description="Defaults to the latest row"),
) -> Dict[str, Any]:
    row = get_store().get_user_burnout(user_id, analytics_date)
    return {"data": row.model_dump(mode="json") if row else None}


@router.get("/users/{user_id}/correlations", response_model=Dict[str, Any])
def get_user_correlations(user_id: str) -> Dict[str, Any]:
    rows = get_store().get_habit_correlations(user_id)
    return {"data": [r.model_dump(mode="json") for r in rows]}


@router.post("/preview", response_model=Dict[str, Any])
def preview(request: PreviewRequest) -> Dict[str, Any]:
    """
    Compute the full metric report for the supplied slice without touching storage.

    Deterministic: same request => identical report.
    """
    try:
        view = LogView.from_mapping(request.logs, user_id=request.user_id)
    except (ValueError, pydantic.ValidationError) as e:
        raise ValidationError(f"Invalid log slice: {e}")

    habits = [
        Habit(id=h.id, name=h.name, owner_id=request.user_id, active=h.active, created_at=h.created_at)
        for h in request.habits
    ]
    report = build_user_report(habits, view, request.as_of)
    return {"data": report.model_dump(mode="json")}
