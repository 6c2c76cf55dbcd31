from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import uuid

from jose import JWTError, jwt

from doccollab.core.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Создание JWT токена доступа"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_minutes)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt


def create_user_token(user_id: uuid.UUID, email: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    """Создание токена для пользователя (sub = id пользователя)"""
    data: Dict[str, Any] = {"sub": str(user_id)}
    if email:
        data["email"] = email
    return create_access_token(data, expires_delta)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Проверка JWT токена и извлечение данных"""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return payload
    except JWTError:
        return None


def get_token_subject(token: str) -> Optional[uuid.UUID]:
    """Извлечение id пользователя из токена"""
    payload = verify_token(token)
    if not payload or not payload.get("sub"):
        return None
    try:
        return uuid.UUID(payload["sub"])
    except ValueError:
        return None