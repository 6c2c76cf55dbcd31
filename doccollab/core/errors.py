from typing import Optional

from pydantic import BaseModel


class ErrorInfo(BaseModel):
    """Схема ошибки для отображения в интерфейсе"""
    code: str
    message: str
    retryable: bool = False


class DocCollabError(Exception):
    """Базовая ошибка клиентского ядра"""

    code = "error"
    default_message = "Unexpected error"
    retryable = False

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_info(self) -> ErrorInfo:
        """Преобразование ошибки в схему для отображения"""
        return ErrorInfo(code=self.code, message=self.message, retryable=self.retryable)


class UnauthenticatedError(DocCollabError):
    """Нет активной сессии"""
    code = "unauthenticated"
    default_message = "User not authenticated"


class NotFoundError(DocCollabError):
    """Документ, профиль или разрешение не найдены"""
    code = "not_found"
    default_message = "Not found"


class ForbiddenError(DocCollabError):
    """Повышение роли или нарушение прав владельца"""
    code = "forbidden"
    default_message = "Forbidden"


class ConflictError(DocCollabError):
    """Активное разрешение уже существует"""
    code = "conflict"
    default_message = "Conflict"


class InvalidOperationError(DocCollabError):
    """Недопустимая операция (например, удаление последнего владельца)"""
    code = "invalid_operation"
    default_message = "Invalid operation"


class TransientError(DocCollabError):
    """Сетевая или удаленная ошибка, можно повторить вызов"""
    code = "transient"
    default_message = "Remote service unavailable"
    retryable = True
