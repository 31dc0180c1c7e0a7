from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional, Tuple, Union

PropertyType = Literal["apartment", "house", "villa", "office", "land"]
PropertyStatus = Literal["available", "sold", "rented", "pending"]

PROPERTY_TYPES = ("apartment", "house", "villa", "office", "land")
PROPERTY_STATUSES = ("available", "sold", "rented", "pending")

class PropertyImage(BaseModel):
    id: int
    property_id: int
    image_path: str
    image_name: str
    is_primary: bool = False
    sort_order: int = 0

class Property(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    property_type: PropertyType
    status: PropertyStatus
    price: float
    area: float
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    floors: Optional[int] = None
    address: str
    city: str
    district: str
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    year_built: Optional[int] = None
    features: List[str] = []
    images: List[PropertyImage] = []
    contact_name: str
    contact_phone: str
    contact_email: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

class PaginationMeta(BaseModel):
    current_page: int = 1
    last_page: int = 1
    total: int = 0
    per_page: Optional[int] = None
    from_: Optional[int] = Field(None, alias="from")
    to: Optional[int] = None

class PropertyListResponse(BaseModel):
    data: List[Property]
    meta: Optional[PaginationMeta] = None

class FilterState(BaseModel):
    page: int = 1
    search: str = ""
    city: str = ""
    status: str = ""
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    sort: str = "created_at"
    order: Literal["asc", "desc"] = "desc"

    def to_params(self) -> Dict[str, str]:
        """Query parameters for the list call: unset and empty fields are left out."""
        params = {}
        for key, value in self.model_dump().items():
            if value is None or value == "":
                continue
            params[key] = str(value)
        return params

class Attachment(BaseModel):
    """A file picked for upload, held in memory until it is sent."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

Number = Union[int, float]

def format_number(value: Number) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

class PropertyDraft(BaseModel):
    """Writable fields of a property as held by the form before submission."""
    title: str = ""
    description: str = ""
    property_type: str = "apartment"
    status: str = "available"
    price: Number = 0
    area: Number = 0
    bedrooms: Optional[Number] = 0
    bathrooms: Optional[Number] = 0
    floors: Optional[Number] = 1
    address: str = ""
    city: str = ""
    district: str = ""
    postal_code: str = ""
    latitude: Optional[Number] = None
    longitude: Optional[Number] = None
    year_built: Optional[Number] = None
    features: List[str] = []
    contact_name: str = ""
    contact_phone: str = ""
    contact_email: str = ""

    @classmethod
    def from_property(cls, prop: Property) -> "PropertyDraft":
        defaults = cls()
        return cls(
            title=prop.title,
            description=prop.description or "",
            property_type=prop.property_type,
            status=prop.status,
            price=prop.price,
            area=prop.area,
            bedrooms=prop.bedrooms or defaults.bedrooms,
            bathrooms=prop.bathrooms or defaults.bathrooms,
            floors=prop.floors or defaults.floors,
            address=prop.address,
            city=prop.city,
            district=prop.district,
            postal_code=prop.postal_code or "",
            latitude=prop.latitude,
            longitude=prop.longitude,
            year_built=prop.year_built,
            features=list(prop.features),
            contact_name=prop.contact_name,
            contact_phone=prop.contact_phone,
            contact_email=prop.contact_email or "",
        )

    def to_form_fields(self) -> List[Tuple[str, str]]:
        """Wire encoding of the draft as ordered multipart text parts.

        ``None`` and empty strings are omitted so the server keeps its current
        value (update) or applies its default (create). Zero is a real value
        and is sent. ``features`` becomes ``features[0]``, ``features[1]``...
        """
        fields: List[Tuple[str, str]] = []
        for name, value in self.model_dump().items():
            if name == "features":
                fields.extend((f"features[{i}]", feature) for i, feature in enumerate(value))
            elif value is None or value == "":
                continue
            elif isinstance(value, (int, float)):
                fields.append((name, format_number(value)))
            else:
                fields.append((name, str(value)))
        return fields
