from doccollab.domains.identity.schemas import Profile, ProfileListResponse
from doccollab.domains.identity.session import SessionContext

__all__ = [
    "Profile", "ProfileListResponse",
    "SessionContext"
]
