from doccollab.db.base import Base
from doccollab.db.models.profile import Profile
from doccollab.db.models.document import Document
from doccollab.db.models.permission import DocumentPermission

__all__ = [
    "Base",
    "Profile",
    "Document",
    "DocumentPermission"
]
