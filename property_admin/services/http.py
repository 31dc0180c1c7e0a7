from typing import Any, Awaitable, Callable, Optional
from httpx import AsyncBaseTransport, AsyncClient, RequestError, Response
from structlog import get_logger
from property_admin.exceptions import NotFound, TransientError, Unauthorized, ValidationFailed

logger = get_logger()

TokenGetter = Callable[[], Optional[str]]
UnauthorizedHandler = Callable[[], Awaitable[None]]

def _error_payload(resp: Response) -> dict:
    try:
        payload = resp.json()
    except Exception:
        return {"message": resp.text or f"Upstream error ({resp.status_code})"}
    if not isinstance(payload, dict):
        return {"message": str(payload)}
    # Laravel uses "message", FastAPI style services use "detail"
    message = payload.get("message") or payload.get("detail") or f"Upstream error ({resp.status_code})"
    return {"message": str(message), "errors": payload.get("errors")}

class HttpClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the property API.

    Adds ``Authorization: Bearer <token>`` to every authenticated call, turns
    error statuses into ``ApiError`` subclasses and runs ``on_unauthorized``
    whenever the server answers 401, before the error propagates.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[AsyncBaseTransport] = None,
        get_token: Optional[TokenGetter] = None,
        on_unauthorized: Optional[UnauthorizedHandler] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.get_token = get_token
        self.on_unauthorized = on_unauthorized
        self._client = AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def send(self, method: str, path: str, *, authenticate: bool = True, **kwargs: Any) -> Response:
        headers = dict(kwargs.pop("headers", None) or {})
        token = self.get_token() if (authenticate and self.get_token) else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except RequestError as e:
            logger.error("Upstream request failed", method=method, path=path, error=str(e))
            raise TransientError(f"{type(e).__name__}: {e}") from e
        logger.info("Upstream response", method=method, path=path, status_code=resp.status_code)
        if resp.status_code < 400:
            return resp

        err = _error_payload(resp)
        if resp.status_code == 401:
            logger.warning("Upstream rejected credentials", method=method, path=path)
            if self.on_unauthorized is not None:
                await self.on_unauthorized()
            raise Unauthorized(err["message"])
        if resp.status_code == 404:
            raise NotFound(err["message"])
        if resp.status_code == 422:
            raise ValidationFailed(err["message"], errors=err.get("errors") or {})
        raise TransientError(err["message"], status_code=resp.status_code)

    async def get(self, path: str, **kwargs: Any) -> Response:
        return await self.send("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Response:
        return await self.send("POST", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Response:
        return await self.send("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
