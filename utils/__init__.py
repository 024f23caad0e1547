from .permissions import (
    AuthContext, AuthUser, get_auth_context, get_current_user,
    require_capability,
)
from .request_body import RequestModel, parse_body

__all__ = [
    "AuthContext", "AuthUser", "get_auth_context", "get_current_user",
    "require_capability", "RequestModel", "parse_body",
]
