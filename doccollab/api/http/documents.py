from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from doccollab.api.http.auth import get_current_user_id
from doccollab.core.db import get_db
from doccollab.core.errors import ForbiddenError
from doccollab.db.repositories import DocumentRepository, PermissionRepository
from doccollab.domains.collaboration.entities import Role
from doccollab.domains.documents.schemas import (
    DocumentSummary, DocumentCreate, DocumentUpdate, DocumentListResponse
)

router = APIRouter(prefix="/documents", tags=["documents"])


async def require_role(db: AsyncSession, document_id: uuid.UUID, user_id: uuid.UUID, required: Role) -> Role:
    """Проверка роли пользователя в документе"""
    role = await PermissionRepository(db).get_user_role(document_id, user_id)
    if role is None or not role.allows(required):
        raise ForbiddenError(f"{required.value} access required")
    return role


def require_self(owner_id: uuid.UUID, current_user_id: uuid.UUID) -> None:
    if owner_id != current_user_id:
        raise ForbiddenError("Cannot access documents of another user")


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    owner_id: uuid.UUID = Query(...),
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Документы пользователя, сначала недавно обновленные"""
    require_self(owner_id, current_user_id)
    documents = await DocumentRepository(db).list_by_owner(owner_id)
    return DocumentListResponse(documents=documents, total=len(documents))


@router.get("/search", response_model=DocumentListResponse)
async def search_documents(
    owner_id: uuid.UUID = Query(...),
    query: str = Query(..., min_length=1, max_length=100),
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Поиск по документам пользователя"""
    require_self(owner_id, current_user_id)
    documents = await DocumentRepository(db).search(owner_id, query.strip())
    return DocumentListResponse(documents=documents, total=len(documents))


@router.post("", response_model=DocumentSummary, status_code=status.HTTP_201_CREATED)
async def create_document(
    document_data: DocumentCreate,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Создание нового документа"""
    require_self(document_data.owner_id, current_user_id)
    return await DocumentRepository(db).create(document_data)


@router.get("/{document_id}", response_model=DocumentSummary)
async def get_document(
    document_id: uuid.UUID,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Получение документа по id"""
    document = await DocumentRepository(db).get(document_id)
    if not document.is_public:
        await require_role(db, document_id, current_user_id, Role.VIEWER)
    return document


@router.patch("/{document_id}", response_model=DocumentSummary)
async def update_document(
    document_id: uuid.UUID,
    document_data: DocumentUpdate,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Частичное обновление документа"""
    await require_role(db, document_id, current_user_id, Role.EDITOR)
    return await DocumentRepository(db).update(document_id, document_data)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: uuid.UUID,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Удаление документа (только владелец)"""
    await require_role(db, document_id, current_user_id, Role.OWNER)
    await DocumentRepository(db).delete(document_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
