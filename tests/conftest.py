import inspect
import re
from urllib.parse import parse_qsl
import httpx
import pytest
from property_admin.config import Settings
from property_admin.schemas.auth import Session, User
from property_admin.services.console import AdminConsole
from property_admin.services.session import MemoryTokenStore

API_URL = "http://api.test/api"

def property_payload(id=1, **overrides):
    data = {
        "id": id,
        "title": f"Property {id}",
        "description": "Bright corner unit",
        "property_type": "apartment",
        "status": "available",
        "price": 1500000,
        "area": 85.5,
        "bedrooms": 2,
        "bathrooms": 1,
        "floors": 1,
        "address": "12 Nguyen Hue",
        "city": "Ho Chi Minh",
        "district": "District 1",
        "postal_code": "700000",
        "latitude": 10.77,
        "longitude": 106.7,
        "year_built": 2015,
        "features": ["Pool", "Gym"],
        "images": [],
        "contact_name": "Lan",
        "contact_phone": "0900000000",
        "contact_email": "lan@example.com",
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-02T00:00:00Z",
    }
    data.update(overrides)
    return data

def list_payload(items, current_page=1, last_page=1, total=None, per_page=10):
    return {
        "data": items,
        "meta": {
            "current_page": current_page,
            "last_page": last_page,
            "total": total if total is not None else len(items),
            "per_page": per_page,
            "from": 1,
            "to": len(items),
        },
    }

def form_fields(request: httpx.Request) -> dict:
    """Text parts of a urlencoded or multipart request body, in order."""
    content_type = request.headers.get("content-type", "")
    body = request.content
    if content_type.startswith("multipart/form-data"):
        parts = re.findall(rb'name="([^"]+)"\r\n\r\n(.*?)\r\n--', body, re.S)
        return {name.decode(): value.decode() for name, value in parts}
    return dict(parse_qsl(body.decode(), keep_blank_values=True))

class Recorder:
    """MockTransport handler that keeps every request it sees."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    async def __call__(self, request: httpx.Request):
        self.requests.append(request)
        result = self.handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

ADMIN = User(id=1, name="Admin", email="admin@example.com")

@pytest.fixture
def make_console():
    def _make(handler, token="test-token"):
        recorder = Recorder(handler)
        console = AdminConsole(
            config=Settings(API_URL=API_URL, REDIS_URL=None),
            transport=httpx.MockTransport(recorder),
            store=MemoryTokenStore(),
        )
        if token:
            console.gate.session = Session(token=token, user=ADMIN)
        return console, recorder
    return _make
