"""Фасад запросов к документам для слоя представления.

Все операции берут id пользователя из сессии; без входа поднимается
UnauthenticatedError.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Union
import uuid

from doccollab.core.config import settings
from doccollab.core.errors import DocCollabError
from doccollab.domains.collaboration.entities import Role
from doccollab.domains.collaboration.schemas import PermissionRecord, Collaborator
from doccollab.domains.collaboration.services import PermissionResolver
from doccollab.domains.documents.entities import DocumentListState
from doccollab.domains.documents.schemas import DocumentSummary, DocumentUpdate
from doccollab.domains.documents.services import DocumentCache
from doccollab.domains.identity.session import SessionContext

logger = logging.getLogger(__name__)


class DocumentQueries:
    """Фасад над кэшем документов и сервисом доступа"""

    def __init__(self, session: SessionContext, cache: DocumentCache, resolver: PermissionResolver):
        self.session = session
        self.cache = cache
        self.resolver = resolver
        self._bound_user_id: Optional[uuid.UUID] = None
        self._unsubscribe = session.subscribe(self._on_identity_change)

    def _on_identity_change(self, previous: Optional[uuid.UUID], current: Optional[uuid.UUID]) -> None:
        if current is None:
            logger.info(f"User {previous} signed out, clearing document cache")
            self.cache.clear()
            self._bound_user_id = None

    def documents(self) -> DocumentListState:
        """Текущее состояние списка документов пользователя"""
        return self.cache.state(self.session.require_user())

    async def refetch(self, force: bool = False) -> DocumentListState:
        """Загрузка списка; при смене пользователя всегда с сервера"""
        user_id = self.session.require_user()
        if user_id != self._bound_user_id:
            if self._bound_user_id is not None:
                logger.info(f"Identity changed to {user_id}, fetching without cache")
            force = True
            self._bound_user_id = user_id
        return await self.cache.fetch(user_id, force=force)

    async def force_refresh(self) -> DocumentListState:
        """Принудительное обновление списка"""
        user_id = self.session.require_user()
        self.cache.invalidate(user_id)
        return await self.refetch(force=True)

    async def create(self, title: str, content_text: Optional[str] = None) -> DocumentSummary:
        user_id = self.session.require_user()
        return await self.cache.create(user_id, title, content_text)

    async def update(
        self,
        document_id: uuid.UUID,
        fields: Union[DocumentUpdate, Dict[str, Any]]
    ) -> DocumentSummary:
        self.session.require_user()
        return await self.cache.update(document_id, fields)

    async def delete(self, document_id: uuid.UUID) -> None:
        self.session.require_user()
        await self.cache.delete(document_id)

    async def get(self, document_id: uuid.UUID) -> DocumentSummary:
        self.session.require_user()
        return await self.cache.get_one(document_id)

    async def search(self, query: str) -> List[DocumentSummary]:
        """Поиск; пустой запрос возвращает кэшированный список"""
        user_id = self.session.require_user()
        query = query.strip()
        if not query:
            state = await self.refetch()
            return state.documents
        return await self.cache.search(user_id, query)

    async def add_collaborator(
        self,
        document_id: uuid.UUID,
        email: str,
        role: Union[Role, str] = Role.EDITOR,
        expires_at: Optional[datetime] = None
    ) -> PermissionRecord:
        user_id = self.session.require_user()
        return await self.resolver.add_collaborator(document_id, user_id, email, role, expires_at)

    async def remove_collaborator(self, document_id: uuid.UUID, email: str) -> PermissionRecord:
        user_id = self.session.require_user()
        return await self.resolver.remove_collaborator(document_id, email, user_id)

    async def fetch_permissions(self, document_id: uuid.UUID) -> List[PermissionRecord]:
        self.session.require_user()
        return await self.resolver.fetch_permissions(document_id)

    async def fetch_collaborators(self, document_id: uuid.UUID) -> List[Collaborator]:
        self.session.require_user()
        return await self.resolver.fetch_collaborators(document_id)

    def close(self) -> None:
        """Отписка от событий сессии"""
        self._unsubscribe()


class SearchCoordinator:
    """Поиск с задержкой ввода и отбрасыванием устаревших ответов"""

    def __init__(self, queries: DocumentQueries, debounce_seconds: Optional[float] = None):
        self.queries = queries
        if debounce_seconds is None:
            debounce_seconds = settings.search_debounce_ms / 1000
        self.debounce_seconds = debounce_seconds

        self.query: Optional[str] = None
        self.results: List[DocumentSummary] = []
        self.error: Optional[DocCollabError] = None
        self._sequence = 0

    async def submit(self, query: str) -> Optional[List[DocumentSummary]]:
        """Отправка запроса; None, если его вытеснил более новый"""
        self._sequence += 1
        sequence = self._sequence

        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)
        if sequence != self._sequence:
            logger.debug(f"Search '{query}' superseded before dispatch")
            return None

        try:
            results = await self.queries.search(query)
        except DocCollabError as e:
            if sequence != self._sequence:
                return None
            self.error = e
            raise

        if sequence != self._sequence:
            logger.info(f"Discarding results of superseded search '{query}'")
            return None

        self.query = query
        self.results = results
        self.error = None
        return results
