from dataclasses import dataclass, field
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from database import get_db
from config import settings
from models import Profile, Role
from utils.errors import AuthenticationRequired, InsufficientRole, OwnershipMismatch
from typing import FrozenSet, Optional
import logging
import uuid
import jwt

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

ROLE_DISPLAY_NAMES = {
    Role.ADMIN: "Administrator",
    Role.MANAGER: "Manager",
    Role.FIELD_AGENT: "Field Agent",
    Role.PROCUREMENT_OFFICER: "Procurement Officer",
    Role.WAREHOUSE_MANAGER: "Warehouse Manager",
    Role.TRANSPORT_DRIVER: "Transport Driver",
    Role.TRANSPORT_COORDINATOR: "Transport Coordinator",
}

ALL_CAPABILITIES = frozenset([
    "manage_farms", "update_crop_status", "approve_batches", "request_transport",
    "manage_stock_requirements", "view_inventory", "manage_packaging",
    "receive_batches", "manage_storage", "coordinate_transport",
    "drive_transport", "manage_users", "manage_warehouses", "manage_units",
    "view_activity_logs",
])

ROLE_CAPABILITIES = {
    Role.ADMIN: ALL_CAPABILITIES,
    Role.MANAGER: frozenset([
        "approve_batches", "request_transport", "manage_stock_requirements",
        "view_inventory",
    ]),
    Role.FIELD_AGENT: frozenset([
        "manage_farms", "update_crop_status",
    ]),
    Role.PROCUREMENT_OFFICER: frozenset([
        "approve_batches", "request_transport", "manage_stock_requirements",
        "view_inventory",
    ]),
    Role.WAREHOUSE_MANAGER: frozenset([
        "manage_packaging", "receive_batches", "manage_storage",
    ]),
    Role.TRANSPORT_DRIVER: frozenset([
        "drive_transport",
    ]),
    Role.TRANSPORT_COORDINATOR: frozenset([
        "coordinate_transport",
    ]),
}

@dataclass(frozen=True)
class AuthUser:
    id: uuid.UUID
    email: Optional[str] = None

@dataclass
class AuthContext:
    """Everything a permission check needs about the caller, loaded once per request."""

    user_id: uuid.UUID
    email: Optional[str]
    profile: Profile
    role: Role
    warehouse_id: Optional[uuid.UUID]
    capabilities: FrozenSet[str] = field(default_factory=frozenset)

    def has(self, capability: str) -> bool:
        return capability in self.capabilities

    def require(self, capability: str) -> None:
        if not self.has(capability):
            raise InsufficientRole()

    def require_warehouse(self) -> uuid.UUID:
        if not self.warehouse_id:
            raise InsufficientRole("No warehouse assigned")
        return self.warehouse_id

    def ensure_same_warehouse(self, warehouse_id: Optional[uuid.UUID]) -> None:
        own = self.require_warehouse()
        if not warehouse_id or warehouse_id != own:
            raise OwnershipMismatch()

def decode_access_token(token: str) -> AuthUser:
    """Verify an access token issued by the auth provider and return its subject."""
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationRequired("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationRequired("Could not validate credentials")

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationRequired("Invalid authentication credentials")
    try:
        user_id = uuid.UUID(str(subject))
    except ValueError:
        raise AuthenticationRequired("Invalid authentication credentials")
    return AuthUser(id=user_id, email=payload.get("email"))

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """
    Get current authenticated user from the bearer token.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired()
    return decode_access_token(credentials.credentials)

def load_auth_context(db: Session, user: AuthUser) -> AuthContext:
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    if not profile or not profile.is_active:
        raise InsufficientRole()
    role = Role(profile.role)
    return AuthContext(
        user_id=user.id,
        email=user.email or profile.email,
        profile=profile,
        role=role,
        warehouse_id=profile.warehouse_id,
        capabilities=ROLE_CAPABILITIES.get(role, frozenset()),
    )

async def get_auth_context(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AuthContext:
    return load_auth_context(db, user)

def require_capability(capability: str):
    """
    Dependency to check the caller's role grants a capability.
    Usage: Depends(require_capability("manage_storage"))
    """
    async def capability_checker(
        context: AuthContext = Depends(get_auth_context)
    ) -> AuthContext:
        context.require(capability)
        return context

    return capability_checker
