from typing import Awaitable, Callable, Optional, Sequence
from structlog import get_logger
from property_admin.exceptions import ApiError, NotFound, Unauthorized
from property_admin.schemas.property import Attachment, Property
from property_admin.schemas.views import ActionResult, DetailViewState, Outcome
from property_admin.services.api import PropertiesApi
from property_admin.services.cache import EntryStatus, QueryCache, property_detail_key

logger = get_logger()

STATUS_LABELS = {
    "available": "Available",
    "sold": "Sold",
    "rented": "Rented",
    "pending": "Pending",
}

TYPE_LABELS = {
    "apartment": "Apartment",
    "house": "House",
    "villa": "Villa",
    "office": "Office",
    "land": "Land",
}

def format_price(price: float) -> str:
    # vi-VN currency style: dot thousands separator, no decimals
    return f"{int(round(price)):,}".replace(",", ".") + " ₫"

class PropertyDetailViewModel:
    def __init__(self, api: PropertiesApi, cache: QueryCache, property_id: int):
        self.api = api
        self.cache = cache
        self.property_id = int(property_id)
        self.busy = False
        self.action_error: Optional[str] = None
        self.closed = False

    @property
    def key(self):
        return property_detail_key(self.property_id)

    async def load(self, force: bool = False) -> DetailViewState:
        if self.closed:
            return self.view_state()
        try:
            await self.cache.fetch(self.key, lambda: self.api.get(self.property_id), force=force)
        except Unauthorized:
            raise
        except ApiError as e:
            logger.warning("Property detail failed", property_id=self.property_id, error=e.message)
        return self.view_state()

    async def _perform(self, action: Callable[[], Awaitable[str]], redirect_to: Optional[str]) -> ActionResult:
        if self.busy or self.closed:
            return ActionResult(outcome=Outcome.REJECTED, message="Another action is in progress.")
        self.busy = True
        self.action_error = None
        try:
            message = await action()
        except Unauthorized:
            raise
        except ApiError as e:
            if not self.closed:
                self.action_error = e.message
            return ActionResult(outcome=Outcome.FAILED, message=e.message)
        finally:
            self.busy = False
        self.cache.invalidate_property_writes(self.property_id)
        return ActionResult(outcome=Outcome.SUCCESS, redirect_to=redirect_to, message=message)

    async def delete(self) -> ActionResult:
        return await self._perform(lambda: self.api.delete(self.property_id), "/properties")

    async def restore(self) -> ActionResult:
        return await self._perform(lambda: self.api.restore(self.property_id), f"/properties/{self.property_id}")

    async def upload_images(self, files: Sequence[Attachment]) -> ActionResult:
        if not files:
            return ActionResult(outcome=Outcome.INVALID, errors={"images": ["Select at least one image."]})
        files = list(files)
        return await self._perform(
            lambda: self.api.upload_images(self.property_id, files), f"/properties/{self.property_id}"
        )

    async def delete_image(self, image_id: int) -> ActionResult:
        return await self._perform(
            lambda: self.api.delete_image(self.property_id, image_id), f"/properties/{self.property_id}"
        )

    def close(self) -> None:
        self.closed = True

    def view_state(self) -> DetailViewState:
        entry = self.cache.peek(self.key)
        if entry is None:
            return DetailViewState(loading=True, busy=self.busy)
        if entry.status is EntryStatus.ERROR and isinstance(entry.error, NotFound):
            return DetailViewState(loading=False, not_found=True, busy=self.busy)
        error = self.action_error
        if entry.status is EntryStatus.ERROR and entry.error is not None:
            error = getattr(entry.error, "message", str(entry.error))
        prop: Optional[Property] = entry.value
        if prop is None:
            return DetailViewState(
                loading=entry.status in (EntryStatus.IDLE, EntryStatus.PENDING), error=error, busy=self.busy
            )
        images = sorted(prop.images, key=lambda image: image.sort_order)
        primary = next((image for image in images if image.is_primary), images[0] if images else None)
        return DetailViewState(
            loading=entry.status is EntryStatus.PENDING,
            error=error,
            item=prop,
            images=images,
            primary_image=primary,
            status_label=STATUS_LABELS.get(prop.status, prop.status),
            type_label=TYPE_LABELS.get(prop.property_type, prop.property_type),
            price_display=format_price(prop.price),
            busy=self.busy,
        )
