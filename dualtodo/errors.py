from __future__ import annotations

class DomainError(Exception):
    """Base de errores de dominio (negocio)."""

    status_code = 500

    def __init__(self, message: str = "", *, store: str | None = None):
        super().__init__(message)
        self.message = message
        self.store = store

    def __str__(self) -> str:
        return self.message


class ValidationError(DomainError):
    """Entrada inválida/valores fuera de contrato."""

    status_code = 400


class ConflictError(DomainError):
    """Duplicate value on a unique field (username, email)."""

    status_code = 400


class NotFoundError(DomainError):
    """Recurso no encontrado."""

    status_code = 404


class AuthenticationError(DomainError):
    status_code = 401


class InvalidTokenError(AuthenticationError):
    """Expired, tampered, malformed or revoked token. Callers never see which."""


class StoreUnavailableError(DomainError):
    """The backing store could not be reached."""

    status_code = 500
