"""
Admin access to the auth provider's user directory (Supabase).

Only user provisioning goes through here; request authentication verifies the
provider's tokens locally in ``utils.permissions``.
"""

from functools import lru_cache
from typing import Optional
import logging

from supabase import Client, create_client

from config import settings
from utils.errors import PersistenceFailure

logger = logging.getLogger(__name__)

# Supabase takes ban durations as Go duration strings; "none" lifts a ban
BANNED_FOREVER = "876000h"
NOT_BANNED = "none"

class AuthAdmin:
    """Thin wrapper over ``client.auth.admin`` returning plain user ids"""

    def __init__(self, client: Client):
        self.client = client

    def create_user(self, email: str, password: str, metadata: Optional[dict] = None) -> str:
        try:
            response = self.client.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata or {},
            })
        except Exception as e:
            logger.error(f"❌ Auth provider rejected user {email}: {str(e)}")
            raise PersistenceFailure(f"Failed to create user: {str(e)}")
        return str(response.user.id)

    def set_banned(self, user_id, banned: bool) -> None:
        try:
            self.client.auth.admin.update_user_by_id(
                str(user_id),
                {"ban_duration": BANNED_FOREVER if banned else NOT_BANNED},
            )
        except Exception as e:
            logger.error(f"❌ Failed to update auth user {user_id}: {str(e)}")
            raise PersistenceFailure("Failed to update user status")

@lru_cache()
def _client() -> Client:
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise PersistenceFailure("User provisioning is not configured")
    client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    logger.info("✅ Supabase admin client initialized")
    return client

def get_auth_admin() -> AuthAdmin:
    """FastAPI dependency; tests override it with a fake directory"""
    return AuthAdmin(_client())
