from doccollab.domains.collaboration.entities import Role, PermissionState
from doccollab.domains.collaboration.schemas import (
    PermissionRecord, PermissionCreate, PermissionRevoke,
    Collaborator, RoleResponse, PermissionListResponse
)
from doccollab.domains.collaboration.services import PermissionResolver

__all__ = [
    "Role", "PermissionState",
    "PermissionRecord", "PermissionCreate", "PermissionRevoke",
    "Collaborator", "RoleResponse", "PermissionListResponse",
    "PermissionResolver"
]
