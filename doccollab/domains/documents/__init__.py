from doccollab.domains.documents.entities import DocumentStatus, DocumentListState, CacheEntry
from doccollab.domains.documents.schemas import (
    DocumentSummary, DocumentCreate, DocumentUpdate,
    DocumentListResponse
)
from doccollab.domains.documents.services import DocumentCache
from doccollab.domains.documents.queries import DocumentQueries, SearchCoordinator

__all__ = [
    "DocumentStatus", "DocumentListState", "CacheEntry",
    "DocumentSummary", "DocumentCreate", "DocumentUpdate",
    "DocumentListResponse",
    "DocumentCache", "DocumentQueries", "SearchCoordinator"
]
