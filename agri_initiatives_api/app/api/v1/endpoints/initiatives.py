"""
Initiative endpoints for API v1.

Listing and reading are public.  Creating, updating and deleting
require a bearer token, which is validated against the auth provider
before the store is touched.  Any authenticated user may edit or delete
any initiative.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status

from agri_initiatives_api.app.api.deps import get_current_user, get_initiative_service, to_http_exception
from agri_initiatives_api.app.schemas.initiative import (
    InitiativeListResponse,
    InitiativeMessageResponse,
    InitiativeResponse,
    MessageResponse,
)
from agri_initiatives_api.app.schemas.user import CallerIdentity
from agri_initiatives_api.app.services.initiative_service import InitiativeService


router = APIRouter()


@router.get("", response_model=InitiativeListResponse)
async def list_initiatives(
    service: InitiativeService = Depends(get_initiative_service),
) -> InitiativeListResponse:
    """Return all initiatives, newest first.  Filtering is left to clients."""
    try:
        initiatives = await service.list_initiatives()
    except Exception as e:
        raise to_http_exception(e, "Failed to fetch initiatives") from e
    return InitiativeListResponse(initiatives=initiatives)


@router.get("/{initiative_id}", response_model=InitiativeResponse)
async def get_initiative(
    initiative_id: str,
    service: InitiativeService = Depends(get_initiative_service),
) -> InitiativeResponse:
    try:
        initiative = await service.get_initiative(initiative_id)
    except Exception as e:
        raise to_http_exception(e, "Failed to fetch initiative") from e
    return InitiativeResponse(initiative=initiative)


@router.post("", response_model=InitiativeMessageResponse, status_code=status.HTTP_201_CREATED)
async def create_initiative(
    payload: Dict[str, Any] = Body(...),
    current_user: CallerIdentity = Depends(get_current_user),
    service: InitiativeService = Depends(get_initiative_service),
) -> InitiativeMessageResponse:
    """Create a new initiative.

    ``title``, ``description`` and ``category`` are required; ``status``
    defaults to ``active``, ``targetArea`` to an empty string and
    ``beneficiaries``/``budget`` to 0.
    """
    try:
        initiative = await service.create_initiative(payload, current_user)
    except Exception as e:
        raise to_http_exception(e, "Failed to create initiative") from e
    return InitiativeMessageResponse(message="Initiative created successfully", initiative=initiative)


@router.put("/{initiative_id}", response_model=InitiativeMessageResponse)
async def update_initiative(
    initiative_id: str,
    payload: Dict[str, Any] = Body(...),
    current_user: CallerIdentity = Depends(get_current_user),
    service: InitiativeService = Depends(get_initiative_service),
) -> InitiativeMessageResponse:
    """Update an existing initiative.

    Partial updates are supported; unspecified fields keep their stored
    values.  ``id``, ``createdBy`` and ``createdAt`` cannot be changed.
    """
    try:
        initiative = await service.update_initiative(initiative_id, payload, current_user)
    except Exception as e:
        raise to_http_exception(e, "Failed to update initiative") from e
    return InitiativeMessageResponse(message="Initiative updated successfully", initiative=initiative)


@router.delete("/{initiative_id}", response_model=MessageResponse)
async def delete_initiative(
    initiative_id: str,
    current_user: CallerIdentity = Depends(get_current_user),
    service: InitiativeService = Depends(get_initiative_service),
) -> MessageResponse:
    """Delete an initiative.  Deleting an unknown id returns 404."""
    try:
        await service.delete_initiative(initiative_id, current_user)
    except Exception as e:
        raise to_http_exception(e, "Failed to delete initiative") from e
    return MessageResponse(message="Initiative deleted successfully")
