"""Password hashing and signed session tokens."""
from __future__ import annotations

import threading
import time
import uuid
from typing import Any, Dict, Optional

import jwt
from pwdlib import PasswordHash
from pwdlib.exceptions import PwdlibError

from dualtodo.errors import InvalidTokenError


class TokenDenylist:
    """In-process set of revoked token ids, each kept until the token would expire anyway."""

    def __init__(self):
        self._entries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def add(self, jti: str, expires_at: float) -> None:
        with self._lock:
            self._purge(time.time())
            self._entries[jti] = expires_at

    def __contains__(self, jti: str) -> bool:
        with self._lock:
            self._purge(time.time())
            return jti in self._entries

    def __len__(self) -> int:
        with self._lock:
            self._purge(time.time())
            return len(self._entries)

    def _purge(self, now: float) -> None:
        stale = [k for k, exp in self._entries.items() if exp <= now]
        for k in stale:
            del self._entries[k]


class CredentialService:
    """
    Hashes/verifies passwords (Argon2 through pwdlib) and issues/verifies
    HS256 JWTs.

    verify_token() collapses every failure (expired, bad signature, garbage,
    revoked) into InvalidTokenError; callers cannot tell them apart.
    """

    def __init__(self, secret: str, *, default_ttl: int = 7 * 86400, algorithm: str = "HS256",
                 hasher: Optional[PasswordHash] = None, denylist: Optional[TokenDenylist] = None):
        if not secret:
            raise ValueError("a signing secret is required")
        self.secret = secret
        self.default_ttl = default_ttl
        self.algorithm = algorithm
        self.hasher = hasher or PasswordHash.recommended()
        self.denylist = denylist if denylist is not None else TokenDenylist()

    # -- passwords --

    def hash_password(self, password: str) -> str:
        return self.hasher.hash(password)

    def verify_password(self, password: str, hashed: Optional[str]) -> bool:
        if not password or not hashed:
            return False
        try:
            return self.hasher.verify(password, hashed)
        except PwdlibError:
            return False

    # -- tokens --

    def issue_token(self, subject_id: Any, claims: Optional[Dict[str, Any]] = None, ttl: Optional[int] = None) -> str:
        """
        Sign `claims` plus id/iat/exp/jti. int and str subjects come back from
        verify_token() unchanged; anything else is stored as str().
        """
        now = int(time.time())
        payload: Dict[str, Any] = dict(claims or {})
        payload.update({
            "id": subject_id if isinstance(subject_id, (int, str)) else str(subject_id),
            "iat": now,
            "exp": now + (self.default_ttl if ttl is None else int(ttl)),
            "jti": uuid.uuid4().hex,
        })
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: Optional[str]) -> Dict[str, Any]:
        if not token:
            raise InvalidTokenError("Invalid or expired token")
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as exc:
            raise InvalidTokenError("Invalid or expired token") from exc
        if "id" not in claims or claims.get("jti") in self.denylist:
            raise InvalidTokenError("Invalid or expired token")
        return claims

    def revoke(self, token: Optional[str]) -> bool:
        """Denylist a still-valid token. Returns False if it was already unusable."""
        try:
            claims = self.verify_token(token)
        except InvalidTokenError:
            return False
        if not claims.get("jti"):
            return False
        self.denylist.add(claims["jti"], float(claims["exp"]))
        return True
