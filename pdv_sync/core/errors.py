from __future__ import annotations

from typing import Any


class AppError(Exception):
    pass


class BusinessError(AppError):
    pass


class ValidationError(BusinessError):
    pass


class ConflictNotFoundError(ValidationError):
    pass


class InvalidStrategyError(ValidationError):
    pass


class MissingCustomDataError(ValidationError):
    pass


class InfraError(AppError):
    pass


class PersistenceError(InfraError):
    pass


class StorageError(PersistenceError):
    """Fallo del almacenamiento local; aborta la llamada en curso."""


class ExternalServiceError(InfraError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientExternalError(ExternalServiceError):
    pass


class NetworkError(TransientExternalError):
    """Error transitorio de red: la mutación se encola y se reintenta."""


class ConflictError(ExternalServiceError):
    """El servidor rechazó la escritura por versión desactualizada."""

    def __init__(
        self,
        message: str,
        *,
        server_data: dict[str, Any] | None = None,
        status_code: int | None = 409,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.server_data = dict(server_data or {})


class RemoteValidationError(ExternalServiceError):
    """El servidor rechazó el payload; reintentar no sirve de nada."""


def is_retryable(exc: BaseException) -> bool:
    return not isinstance(exc, (ConflictError, RemoteValidationError, ValidationError))
