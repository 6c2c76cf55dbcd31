from typing import Optional, List, Iterable
import uuid

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from doccollab.core.errors import NotFoundError, ConflictError
from doccollab.db.models.profile import Profile as ProfileModel
from doccollab.domains.identity.schemas import Profile


class ProfileRepository:
    """Репозиторий для работы с профилями"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        email: str,
        username: Optional[str] = None,
        full_name: Optional[str] = None,
        profile_id: Optional[uuid.UUID] = None
    ) -> Profile:
        """Создание профиля"""
        db_profile = ProfileModel(
            id=profile_id or uuid.uuid4(),
            email=email,
            username=username,
            full_name=full_name,
        )
        self.session.add(db_profile)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Profile with email {email} already exists")
        await self.session.refresh(db_profile)
        return self._to_domain(db_profile)

    async def get_by_email(self, email: str) -> Profile:
        """Поиск профиля по email без учета регистра"""
        result = await self.session.execute(
            select(ProfileModel).where(func.lower(ProfileModel.email) == email.strip().lower())
        )
        db_profile = result.scalar_one_or_none()
        if db_profile is None:
            raise NotFoundError(f"User with email {email} not found")
        return self._to_domain(db_profile)

    async def get_many(self, profile_ids: Iterable[uuid.UUID]) -> List[Profile]:
        """Профили по списку id"""
        ids = list(profile_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(ProfileModel).where(ProfileModel.id.in_(ids))
        )
        return [self._to_domain(profile) for profile in result.scalars().all()]

    def _to_domain(self, db_profile: ProfileModel) -> Profile:
        return Profile.model_validate(db_profile)
