from pydantic import BaseModel, ConfigDict
from typing import Optional, List
import uuid
from datetime import datetime, timezone

from doccollab.domains.collaboration.entities import Role, PermissionState
from doccollab.domains.identity.schemas import Profile


class PermissionRecord(BaseModel):
    """Запись о предоставленном доступе к документу"""
    id: uuid.UUID
    document_id: uuid.UUID
    user_id: uuid.UUID
    role: Role
    granted_by: uuid.UUID
    granted_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool = True
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[uuid.UUID] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def state(self) -> PermissionState:
        return PermissionState.ACTIVE if self.is_active else PermissionState.REVOKED

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Истек ли срок действия разрешения"""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now

    def is_effective(self, now: Optional[datetime] = None) -> bool:
        """Активно и не истекло"""
        return self.is_active and not self.is_expired(now)


class PermissionCreate(BaseModel):
    """Схема для создания разрешения"""
    user_id: uuid.UUID
    role: Role
    granted_by: uuid.UUID
    expires_at: Optional[datetime] = None


class PermissionRevoke(BaseModel):
    """Схема для отзыва разрешения"""
    revoked_by: uuid.UUID


class Collaborator(BaseModel):
    """Разрешение вместе с данными профиля для отображения"""
    permission: PermissionRecord
    profile: Optional[Profile] = None

    @property
    def display_name(self) -> str:
        if self.profile is None:
            return str(self.permission.user_id)
        return self.profile.display_name


class RoleResponse(BaseModel):
    """Эффективная роль пользователя в документе"""
    document_id: uuid.UUID
    user_id: uuid.UUID
    role: Optional[Role] = None


class PermissionListResponse(BaseModel):
    """Схема для списка разрешений"""
    document_id: uuid.UUID
    permissions: List[PermissionRecord]
