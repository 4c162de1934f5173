"""
Identity provider backed by Supabase Auth.
"""

import logging
from typing import Optional

import httpx
from supabase import AuthError, Client

from .exceptions import AuthenticationError
from .models import AuthSession, ShopUser

logger = logging.getLogger(__name__)


def _to_shop_user(user) -> ShopUser:
    return ShopUser(id=str(user.id), email=getattr(user, "email", None))


class IdentityProvider:
    """Thin wrapper over `client.auth` returning our own user/session models"""

    def __init__(self, client: Client):
        self.client = client

    def get_user(self, access_token: Optional[str]) -> Optional[ShopUser]:
        """Resolve the user for a session token, or None for a missing/invalid/expired token"""
        if not access_token:
            return None
        try:
            response = self.client.auth.get_user(access_token)
        except (AuthError, httpx.HTTPError) as e:
            logger.info("session_rejected", extra={"evt": "get_user", "decision": "reject", "reason": str(e)})
            return None
        if response is None or response.user is None:
            return None
        return _to_shop_user(response.user)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except (AuthError, httpx.HTTPError) as e:
            raise AuthenticationError(f"Sign-in failed: {e}", operation="sign_in") from e
        if response.session is None or response.user is None:
            raise AuthenticationError("Sign-in returned no session", operation="sign_in")
        return AuthSession(
            user=_to_shop_user(response.user),
            access_token=response.session.access_token,
            refresh_token=response.session.refresh_token,
        )

    def sign_up(self, email: str, password: str, redirect_to: str) -> None:
        try:
            self.client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"email_redirect_to": redirect_to},
            })
        except (AuthError, httpx.HTTPError) as e:
            raise AuthenticationError(f"Sign-up failed: {e}", operation="sign_up") from e

    def sign_out(self, access_token: Optional[str]) -> None:
        """Revoke the session behind access_token on the auth server"""
        if not access_token:
            return
        try:
            self.client.auth.admin.sign_out(access_token)
        except (AuthError, httpx.HTTPError) as e:
            # The session cookie is dropped regardless
            logger.warning(f"⚠️ Sign-out failed: {e}")
