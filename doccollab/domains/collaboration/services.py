import logging
from datetime import datetime
from typing import Optional, List, Union, TYPE_CHECKING
import uuid

from doccollab.core.errors import (
    NotFoundError, ForbiddenError, InvalidOperationError
)
from doccollab.domains.collaboration.entities import Role
from doccollab.domains.collaboration.schemas import PermissionRecord, Collaborator
from doccollab.domains.identity.schemas import Profile

if TYPE_CHECKING:
    from doccollab.gateway.base import RemoteGateway

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Сервис выдачи и отзыва доступа к документам.

    Все проверки выполняются до единственного изменяющего запроса,
    поэтому неудачная операция не оставляет частичных изменений.
    """

    def __init__(self, gateway: "RemoteGateway"):
        self.gateway = gateway

    async def get_user_role(self, document_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Role]:
        """Эффективная роль пользователя в документе"""
        return await self.gateway.get_user_role(document_id, user_id)

    async def check_user_permission(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        required_role: Union[Role, str]
    ) -> bool:
        """Проверка, что роль пользователя не ниже требуемой"""
        role = await self.get_user_role(document_id, user_id)
        if role is None:
            return False
        return role.allows(Role(required_role))

    async def add_collaborator(
        self,
        document_id: uuid.UUID,
        granter_id: uuid.UUID,
        email: str,
        role: Union[Role, str],
        expires_at: Optional[datetime] = None
    ) -> PermissionRecord:
        """Добавление соавтора по email"""
        role = Role(role)
        profile = await self._resolve_profile(email)

        granter_role = await self.gateway.get_user_role(document_id, granter_id)
        if granter_role is None:
            raise ForbiddenError("You don't have access to this document")
        if role > granter_role:
            raise ForbiddenError(
                f"Cannot grant {role.value} role with {granter_role.value} access"
            )

        permission = await self.gateway.create_permission(
            document_id, profile.id, role, granter_id, expires_at
        )
        logger.info(
            f"Granted {role.value} on document {document_id} to {profile.id} by {granter_id}"
        )
        return permission

    async def remove_collaborator(
        self,
        document_id: uuid.UUID,
        email: str,
        acting_user_id: uuid.UUID
    ) -> PermissionRecord:
        """Отзыв доступа соавтора по email"""
        profile = await self._resolve_profile(email)

        permissions = await self.gateway.list_permissions(document_id)
        target = next(
            (p for p in permissions if p.user_id == profile.id and p.is_active),
            None
        )
        if target is None:
            raise NotFoundError(f"No active permission for {email} on this document")

        if target.role == Role.OWNER:
            other_owners = [
                p for p in permissions
                if p.id != target.id and p.role == Role.OWNER and p.is_effective()
            ]
            if not other_owners:
                raise InvalidOperationError("Cannot remove the last owner of a document")

        actor_role = await self.gateway.get_user_role(document_id, acting_user_id)
        if actor_role is None or actor_role < target.role:
            raise ForbiddenError(f"Not allowed to remove a collaborator with {target.role.value} role")

        revoked = await self.gateway.revoke_permission(document_id, profile.id, acting_user_id)
        logger.info(f"Revoked access of {profile.id} to document {document_id} by {acting_user_id}")
        return revoked

    async def fetch_permissions(self, document_id: uuid.UUID) -> List[PermissionRecord]:
        """Активные разрешения документа в порядке выдачи"""
        return await self.gateway.list_permissions(document_id)

    async def fetch_permission_history(self, document_id: uuid.UUID) -> List[PermissionRecord]:
        """Все разрешения документа, включая отозванные"""
        return await self.gateway.list_permissions(document_id, include_revoked=True)

    async def fetch_collaborators(self, document_id: uuid.UUID) -> List[Collaborator]:
        """Активные разрешения вместе с профилями"""
        permissions = await self.fetch_permissions(document_id)
        if not permissions:
            return []

        profiles = await self.gateway.get_profiles([p.user_id for p in permissions])
        by_id = {profile.id: profile for profile in profiles}
        return [
            Collaborator(permission=permission, profile=by_id.get(permission.user_id))
            for permission in permissions
        ]

    async def _resolve_profile(self, email: str) -> Profile:
        email = email.strip()
        try:
            return await self.gateway.lookup_profile_by_email(email)
        except NotFoundError:
            logger.warning(f"No registered user with email {email}")
            raise NotFoundError(f"User with email {email} not found") from None
