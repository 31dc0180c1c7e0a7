import math
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4
from structlog import get_logger
from property_admin.exceptions import ApiError, NotFound, Unauthorized, ValidationFailed
from property_admin.schemas.property import PROPERTY_STATUSES, PROPERTY_TYPES, Attachment, Property, PropertyDraft
from property_admin.schemas.views import ActionResult, FormViewState, Outcome
from property_admin.services.api import PropertiesApi
from property_admin.services.cache import QueryCache, property_detail_key

logger = get_logger()

NUMERIC_FIELDS = ("price", "area", "bedrooms", "bathrooms", "floors", "latitude", "longitude", "year_built")
REQUIRED_FIELDS = ("title", "address", "city", "district", "contact_name", "contact_phone")

def parse_features(text: str) -> List[str]:
    """``"Pool, Gym,  Garden ,"`` -> ``["Pool", "Gym", "Garden"]``"""
    return [token.strip() for token in (text or "").split(",") if token.strip()]

def coerce_number(value: Any):
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = value
    else:
        text = str(value).strip()
        try:
            return int(text)
        except ValueError:
            number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"Not a finite number: {value}")
    return number

def validate_draft(draft: PropertyDraft) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for name in REQUIRED_FIELDS:
        if not str(getattr(draft, name) or "").strip():
            errors[name] = [f"The {name.replace('_', ' ')} field is required."]
    if draft.property_type not in PROPERTY_TYPES:
        errors["property_type"] = ["The selected property type is invalid."]
    if draft.status not in PROPERTY_STATUSES:
        errors["status"] = ["The selected status is invalid."]
    return errors

class PropertyFormViewModel:
    """Create/edit form for one property.

    In edit mode the draft is hydrated from the detail read and submission is
    refused until that has happened. Submitting sends the whole draft, not a
    diff. Server-side field errors land in ``errors`` and the draft is kept
    as typed so the operator can correct it.
    """

    def __init__(self, api: PropertiesApi, cache: QueryCache, property_id: Optional[int] = None):
        self.api = api
        self.cache = cache
        self.property_id = property_id
        self.draft = PropertyDraft()
        self.features_text = ""
        self.attachments: List[Attachment] = []
        self.previews: List[str] = []
        self.errors: Dict[str, List[str]] = {}
        # input that could not be coerced; blocks submit until corrected
        self.input_errors: Dict[str, List[str]] = {}
        self.error: Optional[str] = None
        self.not_found = False
        self.submitting = False
        self.hydrated = property_id is None
        self.closed = False

    @property
    def is_edit(self) -> bool:
        return self.property_id is not None

    @property
    def loading(self) -> bool:
        return not self.hydrated and not self.not_found and self.error is None

    @property
    def can_submit(self) -> bool:
        return self.hydrated and not self.submitting and not self.closed

    async def load(self) -> FormViewState:
        if not self.is_edit or self.hydrated or self.closed:
            return self.view_state()
        property_id = self.property_id
        try:
            prop: Property = await self.cache.fetch(
                property_detail_key(property_id), lambda: self.api.get(property_id)
            )
        except Unauthorized:
            raise
        except NotFound:
            if not self.closed:
                self.not_found = True
            return self.view_state()
        except ApiError as e:
            if not self.closed:
                self.error = e.message
            return self.view_state()
        if not self.closed:
            self.hydrate(prop)
        return self.view_state()

    def hydrate(self, prop: Property) -> None:
        self.draft = PropertyDraft.from_property(prop)
        self.features_text = ", ".join(self.draft.features)
        self.error = None
        self.hydrated = True

    def set_field(self, name: str, value: Any) -> None:
        if name in ("features", "features_text"):
            self.set_features(value if isinstance(value, str) else ", ".join(value or []))
            return
        if name not in PropertyDraft.model_fields:
            raise ValueError(f"Unknown field: {name}")
        if name in NUMERIC_FIELDS:
            try:
                value = coerce_number(value)
            except ValueError:
                self.input_errors[name] = ["The value must be a number."]
                self.errors[name] = self.input_errors[name]
                return
            if self.input_errors.pop(name, None) is not None:
                self.errors.pop(name, None)
        else:
            value = "" if value is None else str(value)
        self.draft = self.draft.model_copy(update={name: value})

    def set_features(self, text: str) -> None:
        self.features_text = text or ""
        self.draft = self.draft.model_copy(update={"features": parse_features(self.features_text)})

    def attach_files(self, files: Sequence[Attachment]) -> List[str]:
        """Replace the pending uploads. Returns one preview id per file, in order."""
        self.release_previews()
        self.attachments = list(files)
        self.previews = [f"preview-{uuid4().hex}" for _ in self.attachments]
        return list(self.previews)

    def release_previews(self) -> None:
        if self.previews:
            logger.debug("Released image previews", count=len(self.previews))
        self.previews = []

    def field_error(self, name: str) -> Optional[str]:
        messages = self.errors.get(name) or []
        return messages[0] if messages else None

    async def submit(self) -> ActionResult:
        if not self.can_submit:
            return ActionResult(outcome=Outcome.REJECTED, message="The form cannot be submitted right now.")
        self.error = None
        self.errors = {**validate_draft(self.draft), **self.input_errors}
        if self.errors:
            return ActionResult(outcome=Outcome.INVALID, errors=self.errors)

        self.submitting = True
        draft = self.draft.model_copy(deep=True)
        attachments = list(self.attachments)
        try:
            if self.is_edit:
                saved = await self.api.update(self.property_id, draft, attachments)
            else:
                saved = await self.api.create(draft, attachments)
        except Unauthorized:
            raise
        except ValidationFailed as e:
            if not self.closed:
                self.errors = e.errors
                self.error = e.message
            logger.info("Property form rejected", property_id=self.property_id, fields=sorted(e.errors))
            return ActionResult(outcome=Outcome.INVALID, errors=e.errors, message=e.message)
        except ApiError as e:
            if not self.closed:
                self.error = e.message
            return ActionResult(outcome=Outcome.FAILED, message=e.message)
        finally:
            self.submitting = False

        self.cache.invalidate_property_writes(self.property_id)
        if not self.closed:
            self.attachments = []
            self.release_previews()
        redirect_to = f"/properties/{self.property_id}" if self.is_edit else "/properties"
        logger.info("Property form saved", property_id=saved.id, mode="edit" if self.is_edit else "create")
        return ActionResult(outcome=Outcome.SUCCESS, redirect_to=redirect_to, item=saved)

    def close(self) -> None:
        self.release_previews()
        self.attachments = []
        self.closed = True

    def view_state(self) -> FormViewState:
        return FormViewState(
            mode="edit" if self.is_edit else "create",
            property_id=self.property_id,
            loading=self.loading,
            submitting=self.submitting,
            can_submit=self.can_submit,
            draft=self.draft,
            features_text=self.features_text,
            previews=self.previews,
            errors=self.errors,
            field_errors={name: msgs[0] for name, msgs in self.errors.items() if msgs},
            error=self.error,
        )
