"""
Statistics endpoint for API v1.

Returns the dashboard aggregates.  The route is public; the numbers are
recomputed from every stored initiative on each request.
"""

from fastapi import APIRouter, Depends

from agri_initiatives_api.app.api.deps import get_statistics_service, to_http_exception
from agri_initiatives_api.app.schemas.statistics import StatisticsResponse
from agri_initiatives_api.app.services.statistics_service import StatisticsService


router = APIRouter()


@router.get("", response_model=StatisticsResponse)
async def get_statistics(
    service: StatisticsService = Depends(get_statistics_service),
) -> StatisticsResponse:
    """Return counts by status, totals of beneficiaries and budget, and
    the number of initiatives per category.
    """
    try:
        stats = await service.compute_statistics()
    except Exception as e:
        raise to_http_exception(e, "Failed to fetch statistics") from e
    return StatisticsResponse(stats=stats)
