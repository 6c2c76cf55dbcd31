from doccollab.db.repositories.profile_repository import ProfileRepository
from doccollab.db.repositories.document_repository import DocumentRepository
from doccollab.db.repositories.permission_repository import PermissionRepository

__all__ = [
    "ProfileRepository",
    "DocumentRepository",
    "PermissionRepository"
]
