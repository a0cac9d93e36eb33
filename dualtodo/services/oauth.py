"""Google OAuth 2.0 authorization-code flow, just enough to read the user's profile."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session

from dualtodo.errors import AuthenticationError

log = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class OAuthError(AuthenticationError):
    """Provider handshake failed (denied consent, bad code, provider down)."""


@dataclass
class GoogleOAuthClient:
    client_id: Optional[str]
    client_secret: Optional[str]
    redirect_uri: str
    scope: str = "openid profile email"
    timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _session(self, token: Optional[Dict[str, Any]] = None) -> OAuth2Session:
        return OAuth2Session(
            self.client_id,
            self.client_secret,
            scope=self.scope,
            redirect_uri=self.redirect_uri,
            token=token,
        )

    def authorization_url(self, state: str) -> str:
        with self._session() as session:
            url, _ = session.create_authorization_url(
                AUTHORIZE_URL, state=state, access_type="online", prompt="select_account"
            )
        return url

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Trade the callback `code` for the provider's token dict."""
        try:
            with self._session() as session:
                token = session.fetch_token(TOKEN_URL, code=code, timeout=self.timeout)
        except (AuthlibBaseError, requests.RequestException, ValueError) as exc:
            log.warning("[oauth] token exchange failed: %s", exc)
            raise OAuthError("OAuth token exchange failed") from exc
        if not token or not token.get("access_token"):
            raise OAuthError("OAuth token exchange returned no access token")
        return dict(token)

    def fetch_profile(self, token: Dict[str, Any]) -> Dict[str, Any]:
        """Return {"id", "email", "name", "provider"} for the token's owner."""
        try:
            with self._session(token) as session:
                resp = session.get(USERINFO_URL, timeout=self.timeout)
                resp.raise_for_status()
                info = resp.json()
        except (AuthlibBaseError, requests.RequestException, ValueError) as exc:
            log.warning("[oauth] userinfo failed: %s", exc)
            raise OAuthError("OAuth profile lookup failed") from exc
        if not info.get("email"):
            raise OAuthError("OAuth profile has no email")
        return {
            "id": info.get("sub") or info.get("id"),
            "email": info["email"],
            "name": info.get("name") or "",
            "provider": "google",
        }

    def complete(self, code: Optional[str]) -> Dict[str, Any]:
        if not code:
            raise OAuthError("Missing authorization code")
        return self.fetch_profile(self.exchange_code(code))
