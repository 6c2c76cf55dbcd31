from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from fastapi import Request


def create_session_factory(database_url: str, echo: bool = False) -> Tuple[AsyncEngine, async_sessionmaker]:
    """Создание асинхронного движка и фабрики сессий"""
    engine = create_async_engine(database_url, future=True, echo=echo)
    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    return engine, session_factory


# Функция для dependency injection в FastAPI
async def get_db(request: Request):
    async with request.app.state.session_factory() as session:
        yield session
