# storefront/domain/errors.py
from typing import Any, Dict, Optional


class AppError(Exception):
    """Bazowy wyjatek aplikacji, mapowany na odpowiedz JSON."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    """Niepoprawne wejscie lub naruszenie regul biznesowych (pusty koszyk, brak stanu)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400, details=details)


class InvalidRequestError(AppError):
    """Brak lub uszkodzone body requestu."""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_REQUEST", status_code=400)


class AuthenticationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="UNAUTHENTICATED", status_code=401)


class AuthorizationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="FORBIDDEN", status_code=403)


class NotFoundError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="NOT_FOUND", status_code=404)


class UpstreamError(AppError):
    """Blad lub timeout zewnetrznego dostawcy (wysylka, platnosci)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="UPSTREAM_ERROR", status_code=500, details=details)


class PersistenceError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="PERSISTENCE_ERROR", status_code=500)
