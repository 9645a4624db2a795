"""
Единые ошибки и коды ошибок.

Назначение:
- предсказуемые коды для HTTP/очереди/журнала синхронизации
- единый стиль исключений по проекту
"""

from __future__ import annotations

from dataclasses import dataclass


class ErrCode:
    # Общие
    UNKNOWN = "unknown"
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Репликация
    PAYLOAD_TOO_LARGE = "payload_too_large"
    APPLY_FAILED = "apply_failed"

    # Инфра/хранилища
    DB_ERROR = "db_error"
    STORAGE_ERROR = "storage_error"


@dataclass
class AppError(Exception):
    """
    Базовая ошибка приложения.
    - code: стабильный код ошибки
    - message: безопасное сообщение (попадает в журнал синхронизации)
    - details: доп. данные (без секретов)
    """

    code: str
    message: str
    details: dict | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    def __init__(self, message: str = "validation failed", details: dict | None = None) -> None:
        super().__init__(ErrCode.VALIDATION, message, details)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "unauthorized", details: dict | None = None) -> None:
        super().__init__(ErrCode.UNAUTHORIZED, message, details)


class NotFoundError(AppError):
    def __init__(self, message: str = "not found", details: dict | None = None) -> None:
        super().__init__(ErrCode.NOT_FOUND, message, details)


class ConflictError(AppError):
    def __init__(self, message: str = "conflict", details: dict | None = None) -> None:
        super().__init__(ErrCode.CONFLICT, message, details)


class ProviderError(AppError):
    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(code, message, details)


class PayloadTooLargeError(AppError):
    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(ErrCode.PAYLOAD_TOO_LARGE, message, details)


class StoreUnavailableError(AppError):
    """
    Очередь/журнал недоступны. Единственная ошибка, прерывающая цикл диспетчера.
    """

    def __init__(self, message: str = "queue store unavailable", details: dict | None = None) -> None:
        super().__init__(ErrCode.DB_ERROR, message, details)


class CycleInProgressError(ConflictError):
    def __init__(self, message: str = "sync cycle already running", details: dict | None = None) -> None:
        super().__init__(message, details)
