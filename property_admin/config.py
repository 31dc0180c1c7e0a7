from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    API_URL: str = "http://127.0.0.1:8000/api"
    REQUEST_TIMEOUT: float = 30.0
    REDIS_URL: Optional[str] = None
    SESSION_KEY: str = "property_admin:session"
    DEFAULT_SORT: str = "created_at"
    DEFAULT_ORDER: str = "desc"

    class Config:
        env_file = ".env"

settings = Settings()
