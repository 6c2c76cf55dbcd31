import re
import secrets
from typing import Optional, List
import uuid

from sqlalchemy import select, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from doccollab.core.errors import NotFoundError
from doccollab.db.base import utcnow
from doccollab.db.models.document import Document as DocumentModel
from doccollab.db.models.permission import DocumentPermission as PermissionModel
from doccollab.domains.collaboration.entities import Role
from doccollab.domains.documents.schemas import DocumentSummary, DocumentCreate, DocumentUpdate


def count_words(text: Optional[str]) -> int:
    """Подсчет количества слов в тексте"""
    if not text or not text.strip():
        return 0
    return len(text.split())


def make_public_slug(title: str) -> str:
    """Slug для публичной ссылки: заголовок + случайный суффикс"""
    base = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")[:48]
    suffix = secrets.token_hex(4)
    return f"{base}-{suffix}" if base else suffix


class DocumentRepository:
    """Репозиторий для работы с документами"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, data: DocumentCreate) -> DocumentSummary:
        """Создание документа вместе с разрешением владельца"""
        db_document = DocumentModel(
            id=uuid.uuid4(),
            title=data.title,
            content_text=data.content_text,
            word_count=count_words(data.content_text),
            owner_id=data.owner_id,
        )
        self.session.add(db_document)
        await self.session.flush()
        self.session.add(PermissionModel(
            id=uuid.uuid4(),
            document_id=db_document.id,
            user_id=data.owner_id,
            role=Role.OWNER.value,
            granted_by=data.owner_id,
        ))

        await self.session.commit()
        await self.session.refresh(db_document)
        return self._to_domain(db_document)

    async def get(self, document_id: uuid.UUID) -> DocumentSummary:
        """Получение документа по id"""
        return self._to_domain(await self._get_model(document_id))

    async def list_by_owner(self, owner_id: uuid.UUID, limit: int = 100, offset: int = 0) -> List[DocumentSummary]:
        """Документы владельца, сначала недавно обновленные"""
        result = await self.session.execute(
            select(DocumentModel)
            .where(DocumentModel.owner_id == owner_id)
            .order_by(DocumentModel.updated_at.desc(), DocumentModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return [self._to_domain(doc) for doc in result.scalars().all()]

    async def update(self, document_id: uuid.UUID, data: DocumentUpdate) -> DocumentSummary:
        """Частичное обновление документа"""
        db_document = await self._get_model(document_id)
        changes = data.model_dump(exclude_unset=True)

        if "title" in changes and changes["title"] is not None:
            db_document.title = changes["title"]
        if "content_text" in changes:
            db_document.content_text = changes["content_text"]
            db_document.word_count = count_words(changes["content_text"])
        if changes.get("status") is not None:
            db_document.status = changes["status"].value
        if changes.get("is_public") is not None:
            db_document.is_public = changes["is_public"]
            if db_document.is_public and not db_document.public_slug:
                db_document.public_slug = make_public_slug(db_document.title)
        db_document.updated_at = utcnow()

        await self.session.commit()
        await self.session.refresh(db_document)
        return self._to_domain(db_document)

    async def delete(self, document_id: uuid.UUID) -> None:
        """Удаление документа и его разрешений"""
        await self._get_model(document_id)
        await self.session.execute(
            delete(PermissionModel).where(PermissionModel.document_id == document_id)
        )
        await self.session.execute(
            delete(DocumentModel).where(DocumentModel.id == document_id)
        )
        await self.session.commit()

    async def search(self, owner_id: uuid.UUID, query: str, limit: int = 100) -> List[DocumentSummary]:
        """Поиск по заголовку и тексту без учета регистра"""
        pattern = f"%{query}%"
        result = await self.session.execute(
            select(DocumentModel)
            .where(DocumentModel.owner_id == owner_id)
            .where(or_(DocumentModel.title.ilike(pattern), DocumentModel.content_text.ilike(pattern)))
            .order_by(DocumentModel.updated_at.desc())
            .limit(limit)
        )
        return [self._to_domain(doc) for doc in result.scalars().all()]

    async def _get_model(self, document_id: uuid.UUID) -> DocumentModel:
        result = await self.session.execute(
            select(DocumentModel).where(DocumentModel.id == document_id)
        )
        db_document = result.scalar_one_or_none()
        if db_document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return db_document

    def _to_domain(self, db_document: DocumentModel) -> DocumentSummary:
        """Преобразование модели БД в доменную схему"""
        return DocumentSummary.model_validate(db_document)
