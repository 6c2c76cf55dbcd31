"""Сессия текущего пользователя.

Аутентификацией занимается внешний сервис; здесь хранится только текущая
личность, от имени которой работает клиентское ядро, и уведомления о её смене.
"""
import logging
from typing import Callable, List, Optional
import uuid

from doccollab.core.errors import UnauthenticatedError
from doccollab.core.security import get_token_subject

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[uuid.UUID], Optional[uuid.UUID]], None]


class SessionContext:
    """Дескриптор сессии, передаваемый фасаду при создании"""

    def __init__(self, user_id: Optional[uuid.UUID] = None, access_token: Optional[str] = None):
        self._user_id = user_id
        self._access_token = access_token
        self._listeners: List[IdentityListener] = []

    @property
    def user_id(self) -> Optional[uuid.UUID]:
        return self._user_id

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def require_user(self) -> uuid.UUID:
        """Id текущего пользователя или UnauthenticatedError"""
        if self._user_id is None:
            raise UnauthenticatedError()
        return self._user_id

    def sign_in(self, access_token: str) -> uuid.UUID:
        """Вход по JWT токену (sub = id пользователя)"""
        user_id = get_token_subject(access_token)
        if user_id is None:
            raise UnauthenticatedError("Invalid access token")
        self.set_identity(user_id, access_token)
        return user_id

    def sign_out(self) -> None:
        """Выход пользователя"""
        self.set_identity(None, None)

    def set_identity(self, user_id: Optional[uuid.UUID], access_token: Optional[str] = None) -> None:
        """Смена текущей личности с уведомлением подписчиков"""
        previous = self._user_id
        self._user_id = user_id
        self._access_token = access_token

        if previous == user_id:
            return

        logger.info(f"Session identity changed from {previous} to {user_id}")
        for listener in list(self._listeners):
            listener(previous, user_id)

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Подписка на смену личности; возвращает функцию отписки"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def __repr__(self) -> str:
        return f"SessionContext(user={self._user_id})"
