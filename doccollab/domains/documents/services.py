import asyncio
import logging
import time
from collections import OrderedDict
from typing import Optional, List, Dict, Any, Callable, Set, Union, TYPE_CHECKING
import uuid

from doccollab.core.config import settings
from doccollab.core.errors import DocCollabError
from doccollab.domains.documents.entities import CacheEntry, DocumentListState
from doccollab.domains.documents.schemas import DocumentSummary, DocumentUpdate

if TYPE_CHECKING:
    from doccollab.gateway.base import RemoteGateway

logger = logging.getLogger(__name__)


class DocumentCache:
    """Кэш документов текущей сессии.

    Хранит список документов для каждого пользователя, объединяет
    параллельные загрузки и применяет к кэшу только подтвержденные
    сервером изменения. Создается при входе и очищается при выходе
    (clear); состояние меняется только через методы этого класса.
    """

    def __init__(
        self,
        gateway: "RemoteGateway",
        ttl_seconds: Optional[float] = None,
        max_cached_documents: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.gateway = gateway
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        if max_cached_documents is None:
            max_cached_documents = settings.max_cached_documents
        self.max_cached_documents = max_cached_documents
        self._clock = clock

        self._entries: Dict[uuid.UUID, CacheEntry] = {}
        self._inflight: Dict[uuid.UUID, asyncio.Task] = {}
        # LRU для документов, полученных по одному через get_one
        self._documents: "OrderedDict[uuid.UUID, DocumentSummary]" = OrderedDict()
        self._deleted: Set[uuid.UUID] = set()
        self._current_user_id: Optional[uuid.UUID] = None
        self._epoch = 0

    @property
    def current_user_id(self) -> Optional[uuid.UUID]:
        return self._current_user_id

    def is_fresh(self, user_id: uuid.UUID) -> bool:
        """Свежий ли кэш для пользователя"""
        entry = self._entries.get(user_id)
        if entry is None or user_id != self._current_user_id:
            return False
        return entry.is_fresh(self._clock(), self.ttl_seconds)

    def state(self, user_id: uuid.UUID) -> DocumentListState:
        """Текущее состояние списка документов пользователя"""
        entry = self._entries.get(user_id)
        if entry is None:
            return DocumentListState(user_id=user_id, documents=[])
        return entry.snapshot()

    async def fetch(self, user_id: uuid.UUID, force: bool = False) -> DocumentListState:
        """Загрузка списка документов с учетом свежести кэша"""
        self._switch_user(user_id)
        entry = self._entry(user_id)

        task = self._inflight.get(user_id)
        if task is not None:
            logger.info(f"Documents for user {user_id} are already loading, joining")
        else:
            if not force and len(entry) and entry.is_fresh(self._clock(), self.ttl_seconds):
                logger.info(f"Using cached documents for user {user_id}")
                return entry.snapshot()

            logger.info(f"Fetching documents for user {user_id} (force={force})")
            entry.loading = True
            task = asyncio.ensure_future(self._load(user_id, self._epoch))
            self._inflight[user_id] = task

        # Отказ одного вызывающего от ожидания не отменяет общую загрузку
        return await asyncio.shield(task)

    async def create(
        self,
        user_id: uuid.UUID,
        title: str,
        content_text: Optional[str] = None
    ) -> DocumentSummary:
        """Создание документа; в кэш попадает только подтвержденная запись"""
        epoch = self._epoch
        document = await self.gateway.create_document(user_id, title, content_text)
        logger.info(f"Created document {document.id} for user {user_id}")

        if epoch != self._epoch:
            logger.info(f"Cache was reset while creating {document.id}, not caching it")
            return document

        if self._current_user_id is None:
            self._current_user_id = user_id
        if user_id != self._current_user_id:
            return document

        entry = self._entry(user_id)
        if entry.find_index(document.id) is None:
            entry.documents.insert(0, document)
        if entry.loading:
            entry.pending[document.id] = document
        return document

    async def update(
        self,
        document_id: uuid.UUID,
        fields: Union[DocumentUpdate, Dict[str, Any]]
    ) -> DocumentSummary:
        """Обновление документа; кэш получает полную запись сервера"""
        if not isinstance(fields, DocumentUpdate):
            fields = DocumentUpdate(**fields)

        epoch = self._epoch
        document = await self.gateway.update_document(document_id, fields.changes())

        if epoch != self._epoch:
            logger.info(f"Cache was reset while updating {document_id}, discarding response")
            return document
        if document.id in self._deleted:
            logger.info(f"Document {document_id} was deleted, discarding update response")
            return document

        for entry in self._entries.values():
            index = entry.find_index(document.id)
            if index is not None:
                entry.documents[index] = document
            # Список пользователя содержит только его собственные документы
            if entry.loading and (index is not None or document.owner_id == entry.user_id):
                entry.pending[document.id] = document
        if document.id in self._documents:
            self._documents[document.id] = document

        logger.info(f"Updated document {document_id}")
        return document

    async def delete(self, document_id: uuid.UUID) -> None:
        """Удаление документа из хранилища и кэша"""
        await self.gateway.delete_document(document_id)

        self._deleted.add(document_id)
        for entry in self._entries.values():
            index = entry.find_index(document_id)
            if index is not None:
                del entry.documents[index]
            entry.pending.pop(document_id, None)
        self._documents.pop(document_id, None)

        logger.info(f"Deleted document {document_id}")

    async def search(self, user_id: uuid.UUID, query: str) -> List[DocumentSummary]:
        """Полнотекстовый поиск в обход кэша"""
        results = await self.gateway.search_documents(user_id, query)
        logger.info(f"Search for '{query}' found {len(results)} documents")
        return results

    async def get_one(self, document_id: uuid.UUID) -> DocumentSummary:
        """Документ из кэша или, если его нет, из хранилища"""
        for entry in self._entries.values():
            index = entry.find_index(document_id)
            if index is not None:
                return entry.documents[index]

        cached = self._documents.get(document_id)
        if cached is not None:
            self._documents.move_to_end(document_id)
            return cached

        epoch = self._epoch
        document = await self.gateway.get_document(document_id)
        if epoch == self._epoch and document.id not in self._deleted:
            self._remember(document)
        return document

    def invalidate(self, user_id: Optional[uuid.UUID] = None) -> None:
        """Пометить записи кэша устаревшими"""
        entries = [self._entries[user_id]] if user_id in self._entries else []
        if user_id is None:
            entries = list(self._entries.values())
        for entry in entries:
            entry.last_fetched = None
        logger.info(f"Invalidated cache for {user_id or 'all users'}")

    def clear(self) -> None:
        """Полная очистка кэша (выход из сессии)"""
        self._entries.clear()
        self._inflight.clear()
        self._documents.clear()
        self._deleted.clear()
        self._current_user_id = None
        self._epoch += 1
        logger.info("Document cache cleared")

    def _entry(self, user_id: uuid.UUID) -> CacheEntry:
        entry = self._entries.get(user_id)
        if entry is None:
            entry = CacheEntry(user_id)
            self._entries[user_id] = entry
        return entry

    def _switch_user(self, user_id: uuid.UUID) -> None:
        """Смена пользователя сбрасывает записи всех остальных"""
        if self._current_user_id == user_id:
            return

        if self._current_user_id is not None:
            logger.info(f"Switching cached user from {self._current_user_id} to {user_id}")
        self._entries = {key: entry for key, entry in self._entries.items() if key == user_id}
        self._inflight = {key: task for key, task in self._inflight.items() if key == user_id}
        self._documents.clear()
        self._current_user_id = user_id
        self._epoch += 1

        # Загрузка, начатая до смены эпохи, будет отброшена
        self._inflight.pop(user_id, None)
        entry = self._entries.get(user_id)
        if entry is not None:
            entry.loading = False

    def _remember(self, document: DocumentSummary) -> None:
        self._documents[document.id] = document
        self._documents.move_to_end(document.id)
        while len(self._documents) > self.max_cached_documents:
            self._documents.popitem(last=False)

    async def _load(self, user_id: uuid.UUID, epoch: int) -> DocumentListState:
        """Единственная загрузка списка для пользователя"""
        task = asyncio.current_task()
        try:
            documents = await self.gateway.list_documents(user_id)
        except DocCollabError as e:
            logger.error(f"Failed to fetch documents for user {user_id}: {e}")
            entry = self._entries.get(user_id)
            if epoch != self._epoch or entry is None:
                return DocumentListState(user_id=user_id, documents=[], error=e)
            # Устаревшие, но доступные данные лучше пустого списка
            entry.error = e
            entry.loading = False
            entry.pending.clear()
            return entry.snapshot()
        finally:
            if self._inflight.get(user_id) is task:
                del self._inflight[user_id]
                self._entries[user_id].loading = False

        documents = [doc for doc in documents if doc.id not in self._deleted]
        entry = self._entries.get(user_id)
        if epoch != self._epoch or entry is None:
            logger.info(f"Discarding superseded document list for user {user_id}")
            return DocumentListState(user_id=user_id, documents=documents)

        entry.documents = self._merge_pending(documents, entry.pending, user_id)
        entry.pending.clear()
        entry.last_fetched = self._clock()
        entry.loading = False
        entry.error = None
        logger.info(f"Fetched {len(entry)} documents for user {user_id}")
        return entry.snapshot()

    @staticmethod
    def _merge_pending(
        documents: List[DocumentSummary],
        pending: Dict[uuid.UUID, DocumentSummary],
        owner_id: uuid.UUID
    ) -> List[DocumentSummary]:
        """Подтвержденные во время загрузки изменения поверх ответа сервера"""
        if not pending:
            return documents

        merged = []
        seen = set()
        for document in documents:
            local = pending.get(document.id)
            if local is not None and local.updated_at >= document.updated_at:
                document = local
            merged.append(document)
            seen.add(document.id)

        missing = [
            doc for doc in pending.values()
            if doc.id not in seen and doc.owner_id == owner_id
        ]
        missing.sort(key=lambda doc: doc.updated_at, reverse=True)
        return missing + merged
