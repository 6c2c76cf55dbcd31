from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Dict, TYPE_CHECKING
import uuid

from doccollab.core.errors import DocCollabError

if TYPE_CHECKING:
    from doccollab.domains.documents.schemas import DocumentSummary


class DocumentStatus(str, Enum):
    """Статусы документа"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class DocumentListState:
    """Снимок списка документов пользователя для слоя представления"""
    user_id: uuid.UUID
    documents: List["DocumentSummary"]
    loading: bool = False
    error: Optional[DocCollabError] = None
    last_fetched: Optional[float] = None


class CacheEntry:
    """Запись кэша документов одного пользователя"""

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        self.documents: List["DocumentSummary"] = []
        self.last_fetched: Optional[float] = None
        self.loading = False
        self.error: Optional[DocCollabError] = None
        # Подтвержденные изменения, пришедшие во время загрузки списка
        self.pending: Dict[uuid.UUID, "DocumentSummary"] = {}

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        """Свежесть записи относительно последней успешной загрузки"""
        if self.last_fetched is None:
            return False
        return now - self.last_fetched <= ttl_seconds

    def find_index(self, document_id: uuid.UUID) -> Optional[int]:
        """Поиск позиции документа по id"""
        for index, document in enumerate(self.documents):
            if document.id == document_id:
                return index
        return None

    def snapshot(self) -> DocumentListState:
        return DocumentListState(
            user_id=self.user_id,
            documents=list(self.documents),
            loading=self.loading,
            error=self.error,
            last_fetched=self.last_fetched,
        )

    def __len__(self) -> int:
        return len(self.documents)

    def __repr__(self) -> str:
        return f"CacheEntry(user={self.user_id}, docs={len(self)}, fetched={self.last_fetched})"
