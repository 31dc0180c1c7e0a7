from enum import Enum
from pydantic import BaseModel
from typing import Dict, List, Optional
from property_admin.schemas.auth import User
from property_admin.schemas.property import FilterState, Property, PropertyDraft, PropertyImage

class PaginationState(BaseModel):
    current_page: int
    last_page: int
    total: int
    pages: List[int]
    has_previous: bool
    has_next: bool

class ListViewState(BaseModel):
    loading: bool
    error: Optional[str] = None
    rows: List[Property] = []
    pagination: Optional[PaginationState] = None
    filters: FilterState

class DetailViewState(BaseModel):
    loading: bool
    not_found: bool = False
    error: Optional[str] = None
    item: Optional[Property] = None
    images: List[PropertyImage] = []
    primary_image: Optional[PropertyImage] = None
    status_label: Optional[str] = None
    type_label: Optional[str] = None
    price_display: Optional[str] = None
    busy: bool = False

class FormViewState(BaseModel):
    mode: str
    property_id: Optional[int] = None
    loading: bool
    submitting: bool
    can_submit: bool
    draft: PropertyDraft
    features_text: str = ""
    previews: List[str] = []
    errors: Dict[str, List[str]] = {}
    field_errors: Dict[str, str] = {}
    error: Optional[str] = None

class Outcome(str, Enum):
    SUCCESS = "success"
    INVALID = "invalid"
    FAILED = "failed"
    REJECTED = "rejected"

class ActionResult(BaseModel):
    """What a write did, so the caller can pick where to go next."""
    outcome: Outcome
    redirect_to: Optional[str] = None
    item: Optional[Property] = None
    errors: Dict[str, List[str]] = {}
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

class LoginResult(BaseModel):
    outcome: Outcome
    status_code: Optional[int] = None
    redirect_to: Optional[str] = None
    user: Optional[User] = None
    errors: Dict[str, List[str]] = {}
    message: Optional[str] = None
