from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Хранилище эталонного backend-сервиса
    database_url: str = "postgresql+asyncpg://doccollab:doccollab@db:5432/doccollab"
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_minutes: int = 60

    # Клиентский шлюз к backend
    gateway_url: str = "http://localhost:8000"
    gateway_timeout_seconds: float = 10.0

    # Кэш документов
    cache_ttl_seconds: float = 20 * 60
    max_cached_documents: int = 100
    search_debounce_ms: int = 300

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
