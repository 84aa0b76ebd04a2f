"""Expiration settings API endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dinebook.api.auth import StaffPrincipal, StaffRole, require_role
from dinebook.database import get_db
from dinebook.schemas.settings import ExpirationSettingsResponse, ExpirationSettingsUpdate
from dinebook.services.settings import ExpirationSettingsService

router = APIRouter()


@router.get("/expiration", response_model=ExpirationSettingsResponse)
async def get_expiration_settings(
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Current expiration and reminder policy"""
    return await ExpirationSettingsService(db).read()


@router.put("/expiration", response_model=ExpirationSettingsResponse)
async def update_expiration_settings(
    update_data: ExpirationSettingsUpdate,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Change the expiration and reminder policy"""
    return await ExpirationSettingsService(db).write(update_data.model_dump(exclude_unset=True))
