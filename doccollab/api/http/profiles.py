from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from doccollab.api.http.auth import get_current_user_id
from doccollab.core.db import get_db
from doccollab.db.repositories import ProfileRepository
from doccollab.domains.identity.schemas import Profile, ProfileListResponse

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/lookup", response_model=Profile)
async def lookup_profile(
    email: str = Query(..., min_length=3),
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Поиск зарегистрированного пользователя по email"""
    return await ProfileRepository(db).get_by_email(email)


@router.get("", response_model=ProfileListResponse)
async def get_profiles(
    ids: List[uuid.UUID] = Query(default=[]),
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Профили по списку id"""
    profiles = await ProfileRepository(db).get_many(ids)
    return ProfileListResponse(profiles=profiles)
