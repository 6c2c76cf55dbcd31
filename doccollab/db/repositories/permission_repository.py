from datetime import datetime, timezone
from typing import Optional, List
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from doccollab.core.errors import NotFoundError, ConflictError, ForbiddenError, InvalidOperationError
from doccollab.db.base import utcnow
from doccollab.db.models.document import Document as DocumentModel
from doccollab.db.models.permission import DocumentPermission as PermissionModel
from doccollab.domains.collaboration.entities import Role
from doccollab.domains.collaboration.schemas import PermissionRecord, PermissionCreate


class PermissionRepository:
    """Репозиторий для работы с разрешениями на документы"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_role(self, document_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Role]:
        """Эффективная роль: владелец документа или лучшая действующая запись"""
        result = await self.session.execute(
            select(DocumentModel.owner_id).where(DocumentModel.id == document_id)
        )
        owner_id = result.scalar_one_or_none()
        if owner_id is None:
            raise NotFoundError(f"Document {document_id} not found")
        if owner_id == user_id:
            return Role.OWNER

        permissions = await self._active(document_id, user_id)
        now = datetime.now(timezone.utc)
        return Role.highest(p.role for p in permissions if p.is_effective(now))

    async def list_for_document(self, document_id: uuid.UUID, include_revoked: bool = False) -> List[PermissionRecord]:
        """Разрешения документа в порядке выдачи"""
        query = select(PermissionModel).where(PermissionModel.document_id == document_id)
        if not include_revoked:
            query = query.where(PermissionModel.is_active.is_(True))
        result = await self.session.execute(query.order_by(PermissionModel.granted_at))
        return [self._to_domain(p) for p in result.scalars().all()]

    async def create(self, document_id: uuid.UUID, data: PermissionCreate) -> PermissionRecord:
        """Создание разрешения; активное разрешение может быть только одно"""
        if await self._active(document_id, data.user_id):
            raise ConflictError("User already has access to this document")

        db_permission = PermissionModel(
            id=uuid.uuid4(),
            document_id=document_id,
            user_id=data.user_id,
            role=data.role.value,
            granted_by=data.granted_by,
            expires_at=data.expires_at,
        )
        self.session.add(db_permission)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("User already has access to this document")

        await self.session.refresh(db_permission)
        return self._to_domain(db_permission)

    async def revoke(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        revoked_by: uuid.UUID,
        actor_role: Optional[Role] = None
    ) -> PermissionRecord:
        """Мягкий отзыв активного разрешения"""
        result = await self.session.execute(
            select(PermissionModel).where(
                PermissionModel.document_id == document_id,
                PermissionModel.user_id == user_id,
                PermissionModel.is_active.is_(True),
            )
        )
        db_permission = result.scalar_one_or_none()
        if db_permission is None:
            raise NotFoundError("No active permission for this user")

        if db_permission.role == Role.OWNER.value:
            now = datetime.now(timezone.utc)
            owners = [
                p for p in await self.list_for_document(document_id)
                if p.role == Role.OWNER and p.id != db_permission.id and p.is_effective(now)
            ]
            if not owners:
                raise InvalidOperationError("Cannot remove the last owner of a document")

        if actor_role is not None and actor_role < Role(db_permission.role):
            raise ForbiddenError(f"Not allowed to remove a collaborator with {db_permission.role} role")

        db_permission.is_active = False
        db_permission.revoked_at = utcnow()
        db_permission.revoked_by = revoked_by
        await self.session.commit()
        await self.session.refresh(db_permission)
        return self._to_domain(db_permission)

    async def _active(self, document_id: uuid.UUID, user_id: uuid.UUID) -> List[PermissionRecord]:
        result = await self.session.execute(
            select(PermissionModel).where(
                PermissionModel.document_id == document_id,
                PermissionModel.user_id == user_id,
                PermissionModel.is_active.is_(True),
            )
        )
        return [self._to_domain(p) for p in result.scalars().all()]

    def _to_domain(self, db_permission: PermissionModel) -> PermissionRecord:
        return PermissionRecord.model_validate(db_permission)
