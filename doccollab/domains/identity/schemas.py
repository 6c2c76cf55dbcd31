from pydantic import BaseModel, ConfigDict
from typing import Optional, List
import uuid


class Profile(BaseModel):
    """Публичный профиль пользователя"""
    id: uuid.UUID
    email: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or self.email or str(self.id)


class ProfileListResponse(BaseModel):
    """Схема для списка профилей"""
    profiles: List[Profile]
