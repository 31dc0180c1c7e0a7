import httpx
import pytest
from property_admin.exceptions import LoginRequired, NotFound, TransientError, Unauthorized, ValidationFailed
from property_admin.services.cache import property_detail_key
from conftest import property_payload

@pytest.mark.asyncio
async def test_bearer_token_is_injected(make_console):
    console, recorder = make_console(lambda request: httpx.Response(200, json={"data": property_payload(4)}))

    await console.properties.get(4)

    assert recorder.requests[0].headers["Authorization"] == "Bearer test-token"

@pytest.mark.asyncio
async def test_login_call_never_carries_a_token(make_console):
    console, recorder = make_console(
        lambda request: httpx.Response(200, json={"token": "fresh", "user": {"id": 1, "name": "A", "email": "a@b.co"}})
    )

    await console.auth.login("a@b.co", "secret1")

    assert "Authorization" not in recorder.requests[0].headers

@pytest.mark.asyncio
async def test_no_token_no_header(make_console):
    console, recorder = make_console(lambda request: httpx.Response(200, json={"data": []}), token=None)

    await console.http.get("/properties")

    assert "Authorization" not in recorder.requests[0].headers

@pytest.mark.asyncio
async def test_401_clears_session_and_cache(make_console):
    console, _ = make_console(lambda request: httpx.Response(401, json={"message": "Unauthenticated."}))

    async def loader():
        return "cached"

    await console.cache.fetch(property_detail_key(1), loader)

    with pytest.raises(Unauthorized) as exc_info:
        await console.properties.get(2)

    assert exc_info.value.message == "Unauthenticated."
    assert console.gate.token is None
    assert len(console.cache) == 0
    with pytest.raises(LoginRequired):
        console.gate.require()

@pytest.mark.asyncio
async def test_404_maps_to_not_found(make_console):
    console, _ = make_console(lambda request: httpx.Response(404, json={"message": "No query results"}))

    with pytest.raises(NotFound):
        await console.properties.get(99)
    assert console.gate.is_authenticated

@pytest.mark.asyncio
async def test_422_carries_field_errors(make_console):
    errors = {"price": ["must be greater than 0", "must be numeric"], "title": ["required"]}
    console, _ = make_console(lambda request: httpx.Response(422, json={"message": "Invalid data", "errors": errors}))

    with pytest.raises(ValidationFailed) as exc_info:
        await console.http.post("/properties", data={"title": ""})

    assert exc_info.value.errors == errors
    assert exc_info.value.first_error("price") == "must be greater than 0"

@pytest.mark.asyncio
async def test_server_error_is_transient(make_console):
    console, _ = make_console(lambda request: httpx.Response(500, text="Server Error"))

    with pytest.raises(TransientError) as exc_info:
        await console.properties.get(1)
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Server Error"

@pytest.mark.asyncio
async def test_network_failure_is_transient(make_console):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    console, _ = make_console(handler)

    with pytest.raises(TransientError) as exc_info:
        await console.properties.get(1)
    assert "connection refused" in exc_info.value.message
