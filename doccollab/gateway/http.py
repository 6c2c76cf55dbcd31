import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable, Type
import uuid

import httpx

from doccollab.core.config import settings
from doccollab.core.errors import (
    DocCollabError, UnauthenticatedError, NotFoundError, ForbiddenError,
    ConflictError, InvalidOperationError, TransientError
)
from doccollab.domains.collaboration.entities import Role
from doccollab.domains.collaboration.schemas import PermissionRecord, RoleResponse
from doccollab.domains.documents.schemas import DocumentSummary
from doccollab.domains.identity.schemas import Profile
from doccollab.domains.identity.session import SessionContext
from doccollab.gateway.base import RemoteGateway

logger = logging.getLogger(__name__)

ERRORS_BY_CODE: Dict[str, Type[DocCollabError]] = {
    error.code: error
    for error in (
        UnauthenticatedError, NotFoundError, ForbiddenError,
        ConflictError, InvalidOperationError, TransientError
    )
}

ERRORS_BY_STATUS: Dict[int, Type[DocCollabError]] = {
    401: UnauthenticatedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: InvalidOperationError,
}


class HttpGateway(RemoteGateway):
    """Шлюз к backend-сервису по HTTP"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[SessionContext] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.gateway_url,
            timeout=timeout if timeout is not None else settings.gateway_timeout_seconds,
            transport=transport,
        )

    async def list_documents(self, owner_id: uuid.UUID) -> List[DocumentSummary]:
        data = await self._request("GET", "/documents", params={"owner_id": str(owner_id)})
        return [DocumentSummary.model_validate(item) for item in data["documents"]]

    async def get_document(self, document_id: uuid.UUID) -> DocumentSummary:
        data = await self._request("GET", f"/documents/{document_id}")
        return DocumentSummary.model_validate(data)

    async def create_document(
        self,
        owner_id: uuid.UUID,
        title: str,
        content_text: Optional[str] = None
    ) -> DocumentSummary:
        payload = {"owner_id": str(owner_id), "title": title, "content_text": content_text}
        data = await self._request("POST", "/documents", json=payload)
        return DocumentSummary.model_validate(data)

    async def update_document(self, document_id: uuid.UUID, fields: Dict[str, Any]) -> DocumentSummary:
        data = await self._request("PATCH", f"/documents/{document_id}", json=fields)
        return DocumentSummary.model_validate(data)

    async def delete_document(self, document_id: uuid.UUID) -> None:
        await self._request("DELETE", f"/documents/{document_id}")

    async def search_documents(self, owner_id: uuid.UUID, query: str) -> List[DocumentSummary]:
        data = await self._request(
            "GET", "/documents/search", params={"owner_id": str(owner_id), "query": query}
        )
        return [DocumentSummary.model_validate(item) for item in data["documents"]]

    async def lookup_profile_by_email(self, email: str) -> Profile:
        data = await self._request("GET", "/profiles/lookup", params={"email": email})
        return Profile.model_validate(data)

    async def get_profiles(self, user_ids: Iterable[uuid.UUID]) -> List[Profile]:
        ids = [str(user_id) for user_id in user_ids]
        if not ids:
            return []
        data = await self._request("GET", "/profiles", params={"ids": ids})
        return [Profile.model_validate(item) for item in data["profiles"]]

    async def get_user_role(self, document_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Role]:
        data = await self._request("GET", f"/documents/{document_id}/roles/{user_id}")
        return RoleResponse.model_validate(data).role

    async def create_permission(
        self,
        document_id: uuid.UUID,
        subject_id: uuid.UUID,
        role: Role,
        granter_id: uuid.UUID,
        expires_at: Optional[datetime] = None
    ) -> PermissionRecord:
        payload = {
            "user_id": str(subject_id),
            "role": role.value,
            "granted_by": str(granter_id),
            "expires_at": expires_at.isoformat() if expires_at else None,
        }
        data = await self._request("POST", f"/documents/{document_id}/permissions", json=payload)
        return PermissionRecord.model_validate(data)

    async def revoke_permission(
        self,
        document_id: uuid.UUID,
        subject_id: uuid.UUID,
        revoker_id: uuid.UUID
    ) -> PermissionRecord:
        data = await self._request(
            "POST",
            f"/documents/{document_id}/permissions/{subject_id}/revoke",
            json={"revoked_by": str(revoker_id)},
        )
        return PermissionRecord.model_validate(data)

    async def list_permissions(
        self,
        document_id: uuid.UUID,
        include_revoked: bool = False
    ) -> List[PermissionRecord]:
        data = await self._request(
            "GET",
            f"/documents/{document_id}/permissions",
            params={"include_revoked": str(include_revoked).lower()},
        )
        return [PermissionRecord.model_validate(item) for item in data["permissions"]]

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _headers(self) -> Dict[str, str]:
        if self.session is not None and self.session.access_token:
            return {"Authorization": f"Bearer {self.session.access_token}"}
        return {}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Выполнение запроса с преобразованием ошибок в таксономию ядра"""
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise TransientError(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        logger.info(f"{method} {path} -> {response.status_code}")

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> DocCollabError:
        code = None
        message = None
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            code = body.get("code")
            detail = body.get("detail")
            message = detail if isinstance(detail, str) else None

        error_class = ERRORS_BY_CODE.get(code) or ERRORS_BY_STATUS.get(response.status_code, TransientError)
        return error_class(message or f"Remote call failed with status {response.status_code}")
