"""Контракт шлюза удаленного доступа.

Шлюз выполняет аутентифицированные CRUD-запросы и поиск к хранилищам
документов, профилей и разрешений. Ошибки поднимаются как исключения из
doccollab.core.errors: NotFoundError, ConflictError, ForbiddenError,
UnauthenticatedError, InvalidOperationError и TransientError для сетевых сбоев.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable
import uuid

from doccollab.domains.collaboration.entities import Role
from doccollab.domains.collaboration.schemas import PermissionRecord
from doccollab.domains.documents.schemas import DocumentSummary
from doccollab.domains.identity.schemas import Profile


class RemoteGateway(ABC):
    """Шлюз к удаленному хранилищу"""

    @abstractmethod
    async def list_documents(self, owner_id: uuid.UUID) -> List[DocumentSummary]:
        """Документы владельца, сначала недавно обновленные"""

    @abstractmethod
    async def get_document(self, document_id: uuid.UUID) -> DocumentSummary:
        """Один документ по id"""

    @abstractmethod
    async def create_document(
        self,
        owner_id: uuid.UUID,
        title: str,
        content_text: Optional[str] = None
    ) -> DocumentSummary:
        """Создание документа; id назначает хранилище"""

    @abstractmethod
    async def update_document(self, document_id: uuid.UUID, fields: Dict[str, Any]) -> DocumentSummary:
        """Частичное обновление; возвращает полную запись после обновления"""

    @abstractmethod
    async def delete_document(self, document_id: uuid.UUID) -> None:
        """Удаление документа"""

    @abstractmethod
    async def search_documents(self, owner_id: uuid.UUID, query: str) -> List[DocumentSummary]:
        """Полнотекстовый поиск по документам владельца"""

    @abstractmethod
    async def lookup_profile_by_email(self, email: str) -> Profile:
        """Профиль по email"""

    @abstractmethod
    async def get_profiles(self, user_ids: Iterable[uuid.UUID]) -> List[Profile]:
        """Профили по списку id"""

    @abstractmethod
    async def get_user_role(self, document_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Role]:
        """Эффективная роль пользователя в документе"""

    @abstractmethod
    async def create_permission(
        self,
        document_id: uuid.UUID,
        subject_id: uuid.UUID,
        role: Role,
        granter_id: uuid.UUID,
        expires_at: Optional[datetime] = None
    ) -> PermissionRecord:
        """Создание разрешения"""

    @abstractmethod
    async def revoke_permission(
        self,
        document_id: uuid.UUID,
        subject_id: uuid.UUID,
        revoker_id: uuid.UUID
    ) -> PermissionRecord:
        """Мягкий отзыв активного разрешения"""

    @abstractmethod
    async def list_permissions(
        self,
        document_id: uuid.UUID,
        include_revoked: bool = False
    ) -> List[PermissionRecord]:
        """Разрешения документа в порядке выдачи"""

    async def close(self) -> None:
        """Освобождение ресурсов шлюза"""
