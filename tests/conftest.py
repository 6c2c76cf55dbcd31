import asyncio
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any, Iterable
import uuid

import httpx
import pytest
import pytest_asyncio

from doccollab.core.errors import NotFoundError, ConflictError, DocCollabError
from doccollab.core.security import create_user_token
from doccollab.domains.collaboration.entities import Role
from doccollab.domains.collaboration.schemas import PermissionRecord
from doccollab.domains.collaboration.services import PermissionResolver
from doccollab.domains.documents.queries import DocumentQueries
from doccollab.domains.documents.schemas import DocumentSummary
from doccollab.domains.documents.services import DocumentCache
from doccollab.domains.identity.schemas import Profile
from doccollab.domains.identity.session import SessionContext
from doccollab.gateway.base import RemoteGateway
from doccollab.gateway.http import HttpGateway


async def settle(rounds: int = 10) -> None:
    """Дать запущенным задачам дойти до ближайшей точки ожидания"""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(RemoteGateway):
    """Хранилище в памяти с управляемыми задержками и сбоями"""

    def __init__(self):
        self.documents: Dict[uuid.UUID, DocumentSummary] = {}
        self.profiles: Dict[uuid.UUID, Profile] = {}
        self.permissions: List[PermissionRecord] = []
        self.calls: Counter = Counter()
        self.failures: Dict[str, DocCollabError] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self._now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def hold(self, name: str) -> None:
        self.gates[name] = asyncio.Event()

    def release(self, name: str) -> None:
        self.gates.pop(name).set()

    def tick(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now

    def add_profile(self, email: str, full_name: Optional[str] = None) -> Profile:
        profile = Profile(id=uuid.uuid4(), email=email, full_name=full_name)
        self.profiles[profile.id] = profile
        return profile

    def add_document(self, owner_id: uuid.UUID, title: str, content_text: Optional[str] = None) -> DocumentSummary:
        now = self.tick()
        document = DocumentSummary(
            id=uuid.uuid4(),
            title=title,
            content_text=content_text,
            word_count=len((content_text or "").split()),
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        self.documents[document.id] = document
        self.permissions.append(PermissionRecord(
            id=uuid.uuid4(),
            document_id=document.id,
            user_id=owner_id,
            role=Role.OWNER,
            granted_by=owner_id,
            granted_at=now,
        ))
        return document

    async def _pause(self, name: str) -> None:
        self.calls[name] += 1
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        error = self.failures.get(name)
        if error is not None:
            raise error

    async def list_documents(self, owner_id: uuid.UUID) -> List[DocumentSummary]:
        documents = sorted(
            (doc for doc in self.documents.values() if doc.owner_id == owner_id),
            key=lambda doc: doc.updated_at,
            reverse=True,
        )
        await self._pause("list_documents")
        return documents

    async def get_document(self, document_id: uuid.UUID) -> DocumentSummary:
        await self._pause("get_document")
        if document_id not in self.documents:
            raise NotFoundError("Document not found")
        return self.documents[document_id]

    async def create_document(
        self,
        owner_id: uuid.UUID,
        title: str,
        content_text: Optional[str] = None
    ) -> DocumentSummary:
        await self._pause("create_document")
        return self.add_document(owner_id, title, content_text)

    async def update_document(self, document_id: uuid.UUID, fields: Dict[str, Any]) -> DocumentSummary:
        document = self.documents.get(document_id)
        if document is not None and "update_document" not in self.failures:
            data = {**document.model_dump(), **fields, "updated_at": self.tick()}
            data["word_count"] = len((data.get("content_text") or "").split())
            document = DocumentSummary.model_validate(data)
            self.documents[document_id] = document
        await self._pause("update_document")
        if document is None:
            raise NotFoundError("Document not found")
        return document

    async def delete_document(self, document_id: uuid.UUID) -> None:
        await self._pause("delete_document")
        if self.documents.pop(document_id, None) is None:
            raise NotFoundError("Document not found")

    async def search_documents(self, owner_id: uuid.UUID, query: str) -> List[DocumentSummary]:
        await self._pause("search_documents")
        needle = query.lower()
        return [
            doc for doc in self.documents.values()
            if doc.owner_id == owner_id
            and (needle in doc.title.lower() or needle in (doc.content_text or "").lower())
        ]

    async def lookup_profile_by_email(self, email: str) -> Profile:
        await self._pause("lookup_profile_by_email")
        for profile in self.profiles.values():
            if profile.email.lower() == email.lower():
                return profile
        raise NotFoundError("Profile not found")

    async def get_profiles(self, user_ids: Iterable[uuid.UUID]) -> List[Profile]:
        await self._pause("get_profiles")
        return [self.profiles[user_id] for user_id in user_ids if user_id in self.profiles]

    async def get_user_role(self, document_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Role]:
        await self._pause("get_user_role")
        document = self.documents.get(document_id)
        if document is not None and document.owner_id == user_id:
            return Role.OWNER
        return Role.highest(
            p.role for p in self.permissions
            if p.document_id == document_id and p.user_id == user_id and p.is_effective()
        )

    async def create_permission(
        self,
        document_id: uuid.UUID,
        subject_id: uuid.UUID,
        role: Role,
        granter_id: uuid.UUID,
        expires_at: Optional[datetime] = None
    ) -> PermissionRecord:
        await self._pause("create_permission")
        if any(p.document_id == document_id and p.user_id == subject_id and p.is_active for p in self.permissions):
            raise ConflictError("Already has access")
        permission = PermissionRecord(
            id=uuid.uuid4(),
            document_id=document_id,
            user_id=subject_id,
            role=role,
            granted_by=granter_id,
            granted_at=self.tick(),
            expires_at=expires_at,
        )
        self.permissions.append(permission)
        return permission

    async def revoke_permission(
        self,
        document_id: uuid.UUID,
        subject_id: uuid.UUID,
        revoker_id: uuid.UUID
    ) -> PermissionRecord:
        await self._pause("revoke_permission")
        for index, permission in enumerate(self.permissions):
            if permission.document_id == document_id and permission.user_id == subject_id and permission.is_active:
                revoked = permission.model_copy(update={
                    "is_active": False,
                    "revoked_at": self.tick(),
                    "revoked_by": revoker_id,
                })
                self.permissions[index] = revoked
                return revoked
        raise NotFoundError("No active permission")

    async def list_permissions(
        self,
        document_id: uuid.UUID,
        include_revoked: bool = False
    ) -> List[PermissionRecord]:
        await self._pause("list_permissions")
        return [
            p for p in self.permissions
            if p.document_id == document_id and (include_revoked or p.is_active)
        ]


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(gateway, clock):
    return DocumentCache(gateway, ttl_seconds=60, max_cached_documents=2, clock=clock)


@pytest.fixture
def resolver(gateway):
    return PermissionResolver(gateway)


@pytest.fixture
def owner(gateway):
    return gateway.add_profile("owner@example.com", full_name="Olga Owner")


@pytest.fixture
def session():
    return SessionContext()


@pytest.fixture
def queries(session, cache, resolver):
    return DocumentQueries(session, cache, resolver)


@pytest_asyncio.fixture
async def app(tmp_path):
    from doccollab.db.models import Base
    from doccollab.main import create_app

    app = create_app(f"sqlite+aiosqlite:///{tmp_path / 'doccollab.db'}")
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def profiles(app):
    from doccollab.db.repositories import ProfileRepository

    async with app.state.session_factory() as db:
        repository = ProfileRepository(db)
        return {
            "owner": await repository.create("owner@example.com", username="owner", full_name="Olga Owner"),
            "editor": await repository.create("editor@example.com", username="editor"),
            "viewer": await repository.create("viewer@example.com", username="viewer"),
        }


@pytest.fixture
def owner_session(profiles):
    session = SessionContext()
    session.sign_in(create_user_token(profiles["owner"].id))
    return session


@pytest_asyncio.fixture
async def http_gateway(app, owner_session):
    gateway = HttpGateway(
        base_url="http://testserver",
        session=owner_session,
        transport=httpx.ASGITransport(app=app),
    )
    yield gateway
    await gateway.close()
