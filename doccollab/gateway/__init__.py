from doccollab.gateway.base import RemoteGateway
from doccollab.gateway.http import HttpGateway

__all__ = ["RemoteGateway", "HttpGateway"]
