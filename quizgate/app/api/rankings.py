"""Percentile ranking endpoint."""

from typing import Any

from fastapi import APIRouter, Body

from quizgate.app.api.dependencies import ServicesDep
from quizgate.app.services.rankings import build_rankings_response

router = APIRouter(prefix="/api", tags=["rankings"])


@router.post("/rankings")
async def calculate_rankings(
    services: ServicesDep,
    payload: Any = Body(None),
) -> dict[str, Any]:
    """Convert the ten raw dimension scores into percentiles."""
    return build_rankings_response(
        payload,
        coerce_invalid=services.settings.rankings_coerce_invalid_scores,
        now=services.clock(),
    )
