from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from httpx import Response
from structlog import get_logger
from property_admin.schemas.auth import LoginResponse
from property_admin.schemas.property import Attachment, FilterState, Property, PropertyDraft, PropertyListResponse
from property_admin.services.http import HttpClient

logger = get_logger()

PropertyId = Union[int, str]

def _json(resp: Response) -> Any:
    try:
        return resp.json()
    except Exception:
        return {"message": resp.text}

def _unwrap(payload: Any) -> Any:
    # Accept either {data: {...}} or the bare resource
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload

def _message(resp: Response, default: str) -> str:
    payload = _json(resp)
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return default

def encode_images(attachments: Sequence[Attachment]) -> List[Tuple[str, Tuple[str, bytes, str]]]:
    return [
        (f"images[{i}]", (a.filename, a.content, a.content_type))
        for i, a in enumerate(attachments)
    ]

def encode_draft(draft: PropertyDraft, attachments: Sequence[Attachment] = (), method: Optional[str] = None) -> Dict[str, Any]:
    """Request kwargs for a multipart create/update: text parts plus ``images[i]`` files.

    Text parts are sent as file-less parts so the body is multipart even
    when nothing is attached. ``method`` adds the ``_method`` override first.
    """
    fields = draft.to_form_fields()
    if method:
        fields.insert(0, ("_method", method))
    parts: List[Tuple[str, Any]] = [(name, (None, value)) for name, value in fields]
    parts.extend(encode_images(attachments))
    return {"files": parts}

class AuthApi:
    def __init__(self, http: HttpClient):
        self.http = http

    async def login(self, email: str, password: str) -> LoginResponse:
        resp = await self.http.post("/login", json={"email": email, "password": password}, authenticate=False)
        return LoginResponse.model_validate(_unwrap(_json(resp)))

    async def logout(self) -> None:
        await self.http.post("/logout")

class PropertiesApi:
    """One coroutine per REST action on the ``/properties`` resource."""

    def __init__(self, http: HttpClient):
        self.http = http

    async def list(self, filters: FilterState) -> PropertyListResponse:
        params = filters.to_params()
        resp = await self.http.get("/properties", params=params)
        payload = _json(resp)
        if isinstance(payload, list):
            payload = {"data": payload}
        result = PropertyListResponse.model_validate(payload)
        logger.info("Fetched properties", page=filters.page, count=len(result.data))
        return result

    async def get(self, property_id: PropertyId) -> Property:
        resp = await self.http.get(f"/properties/{property_id}")
        return Property.model_validate(_unwrap(_json(resp)))

    async def create(self, draft: PropertyDraft, attachments: Sequence[Attachment] = ()) -> Property:
        resp = await self.http.post("/properties", **encode_draft(draft, attachments))
        prop = Property.model_validate(_unwrap(_json(resp)))
        logger.info("Created property", property_id=prop.id, images=len(attachments))
        return prop

    async def update(self, property_id: PropertyId, draft: PropertyDraft, attachments: Sequence[Attachment] = ()) -> Property:
        # multipart bodies can't go out as PUT, so the server reads the override
        kwargs = encode_draft(draft, attachments, method="PUT")
        resp = await self.http.post(f"/properties/{property_id}", **kwargs)
        prop = Property.model_validate(_unwrap(_json(resp)))
        logger.info("Updated property", property_id=prop.id, images=len(attachments))
        return prop

    async def delete(self, property_id: PropertyId) -> str:
        resp = await self.http.delete(f"/properties/{property_id}")
        logger.info("Deleted property", property_id=property_id)
        return _message(resp, "Property deleted")

    async def restore(self, property_id: PropertyId) -> str:
        resp = await self.http.post(f"/properties/{property_id}/restore")
        logger.info("Restored property", property_id=property_id)
        return _message(resp, "Property restored")

    async def upload_images(self, property_id: PropertyId, attachments: Sequence[Attachment]) -> str:
        resp = await self.http.post(f"/properties/{property_id}/images", files=encode_images(attachments))
        logger.info("Uploaded property images", property_id=property_id, images=len(attachments))
        return _message(resp, "Images uploaded")

    async def delete_image(self, property_id: PropertyId, image_id: PropertyId) -> str:
        resp = await self.http.delete(f"/properties/{property_id}/images/{image_id}")
        logger.info("Deleted property image", property_id=property_id, image_id=image_id)
        return _message(resp, "Image deleted")
