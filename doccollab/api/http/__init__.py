from doccollab.api.http.documents import router as documents_router
from doccollab.api.http.permissions import router as permissions_router
from doccollab.api.http.profiles import router as profiles_router

__all__ = [
    "documents_router",
    "permissions_router",
    "profiles_router"
]
