import json
from typing import Optional
from redis.asyncio import Redis
from structlog import get_logger
from property_admin.exceptions import ApiError, LoginRequired
from property_admin.schemas.auth import Session
from property_admin.services.api import AuthApi
from property_admin.services.cache import QueryCache

logger = get_logger()

class TokenStore:
    """Where the session (token and user) lives between restarts."""

    async def load(self) -> Optional[Session]:
        raise NotImplementedError

    async def save(self, session: Session) -> None:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass

class MemoryTokenStore(TokenStore):
    def __init__(self):
        self._session: Optional[Session] = None

    async def load(self) -> Optional[Session]:
        return self._session

    async def save(self, session: Session) -> None:
        self._session = session

    async def clear(self) -> None:
        self._session = None

class RedisTokenStore(TokenStore):
    def __init__(self, redis: Redis, key: str):
        self.redis = redis
        self.key = key

    @classmethod
    def from_url(cls, url: str, key: str) -> "RedisTokenStore":
        return cls(Redis.from_url(url), key)

    async def load(self) -> Optional[Session]:
        raw = await self.redis.get(self.key)
        if not raw:
            return None
        return Session.model_validate(json.loads(raw))

    async def save(self, session: Session) -> None:
        await self.redis.set(self.key, session.model_dump_json())

    async def clear(self) -> None:
        await self.redis.delete(self.key)

    async def close(self) -> None:
        await self.redis.aclose()

class SessionGate:
    """Holds the current session and decides whether protected views are reachable.

    The token is present exactly when the operator is authenticated. Logging
    out, by hand or because the API answered 401, drops the token, the stored
    copy and every cached read.
    """

    def __init__(self, auth_api: AuthApi, store: TokenStore, cache: QueryCache):
        self.auth_api = auth_api
        self.store = store
        self.cache = cache
        self.session = Session()

    @property
    def token(self) -> Optional[str]:
        return self.session.token

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def require(self) -> Session:
        if not self.is_authenticated:
            raise LoginRequired()
        return self.session

    async def restore(self) -> Session:
        stored = await self.store.load()
        if stored is not None and stored.is_authenticated:
            self.session = stored
            logger.info("Restored session", user_id=stored.user.id if stored.user else None)
        return self.session

    async def login(self, email: str, password: str) -> Session:
        result = await self.auth_api.login(email, password)
        self.session = Session(token=result.token, user=result.user)
        await self.store.save(self.session)
        logger.info("Logged in", user_id=result.user.id)
        return self.session

    async def logout(self) -> None:
        if self.is_authenticated:
            try:
                await self.auth_api.logout()
            except ApiError as e:
                # the server side is best effort, local logout always happens
                logger.warning("Logout request failed", error=e.message)
        await self._clear()
        logger.info("Logged out")

    async def force_logout(self) -> None:
        if self.is_authenticated:
            logger.warning("Session rejected by API, forcing login")
        await self._clear()

    async def _clear(self) -> None:
        self.session = Session()
        await self.store.clear()
        self.cache.clear()
