from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from doccollab.api.http.auth import get_current_user_id
from doccollab.api.http.documents import require_role
from doccollab.core.db import get_db
from doccollab.core.errors import ForbiddenError
from doccollab.db.repositories import PermissionRepository
from doccollab.domains.collaboration.entities import Role
from doccollab.domains.collaboration.schemas import (
    PermissionRecord, PermissionCreate, PermissionRevoke, PermissionListResponse, RoleResponse
)

router = APIRouter(prefix="/documents/{document_id}", tags=["permissions"])


@router.get("/roles/{user_id}", response_model=RoleResponse)
async def get_user_role(
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Эффективная роль пользователя в документе"""
    # Свою роль можно узнать всегда, чужие видны только участникам документа
    if user_id != current_user_id:
        await require_role(db, document_id, current_user_id, Role.VIEWER)
    role = await PermissionRepository(db).get_user_role(document_id, user_id)
    return RoleResponse(document_id=document_id, user_id=user_id, role=role)


@router.get("/permissions", response_model=PermissionListResponse)
async def list_permissions(
    document_id: uuid.UUID,
    include_revoked: bool = Query(False),
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Разрешения документа в порядке выдачи"""
    await require_role(db, document_id, current_user_id, Role.VIEWER)
    permissions = await PermissionRepository(db).list_for_document(document_id, include_revoked)
    return PermissionListResponse(document_id=document_id, permissions=permissions)


@router.post("/permissions", response_model=PermissionRecord, status_code=status.HTTP_201_CREATED)
async def create_permission(
    document_id: uuid.UUID,
    permission_data: PermissionCreate,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Выдача доступа; роль не может быть выше роли выдающего"""
    if permission_data.granted_by != current_user_id:
        raise ForbiddenError("Permissions can only be granted on your own behalf")
    await require_role(db, document_id, current_user_id, permission_data.role)
    return await PermissionRepository(db).create(document_id, permission_data)


@router.post("/permissions/{user_id}/revoke", response_model=PermissionRecord)
async def revoke_permission(
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    revoke_data: PermissionRevoke,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Мягкий отзыв доступа"""
    if revoke_data.revoked_by != current_user_id:
        raise ForbiddenError("Permissions can only be revoked on your own behalf")
    actor_role = await require_role(db, document_id, current_user_id, Role.VIEWER)
    return await PermissionRepository(db).revoke(document_id, user_id, current_user_id, actor_role)
