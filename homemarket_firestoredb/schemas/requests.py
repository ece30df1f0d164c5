from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator

from ..utils.time_now import TimeManager
from .collection_names import RequestKind
from .records import ReviewTarget

# Field-level messages shown next to the offending input
FIELD_MESSAGES = {
    "userId": "Please log in to submit a request.",
    "projectType": "Project type is required",
    "description": "Description must be at least 20 characters",
    "budget": "Budget must be a valid positive number",
    "startDate": "Start date is required",
    "endDate": "End date is required",
}


class RequestValidationError(ValueError):
    def __init__(self, field_errors: Dict[str, str]):
        super().__init__("; ".join(f"{field}: {message}" for field, message in field_errors.items()))
        self.field_errors = field_errors


class ServiceRequestCreate(BaseModel):
    """Validated construction/renovation request form. Built before any write is attempted."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    provider_id: Optional[str] = Field(None, alias="providerId")
    property_id: Optional[str] = Field(None, alias="propertyId")
    project_type: str = Field(..., alias="projectType", min_length=1)
    description: str = Field(..., min_length=20)
    budget: float = Field(..., gt=0)
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")

    @field_validator("provider_id", "property_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_form_date(cls, value: Any) -> Any:
        # Forms send either "2025-06-01" or a full ISO timestamp
        if isinstance(value, str):
            parsed = TimeManager.parse_date(value)
            return parsed if parsed is not None else value
        return value

    @field_validator("end_date")
    @classmethod
    def _end_not_before_start(cls, value: date, info: ValidationInfo) -> date:
        start = info.data.get("start_date")
        if start is not None and value < start:
            raise ValueError("End date must be on or after start date")
        return value

    def to_firestore(self, kind: RequestKind) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data["startDate"] = self.start_date.isoformat()
        data["endDate"] = self.end_date.isoformat()
        data["kind"] = kind.value
        return data


class ConstructionRequestCreate(ServiceRequestCreate):
    pass


class RenovationRequestCreate(ServiceRequestCreate):
    project_type: str = Field("renovation", alias="projectType", min_length=1)


REQUEST_MODELS = {
    RequestKind.CONSTRUCTION: ConstructionRequestCreate,
    RequestKind.RENOVATION: RenovationRequestCreate,
}


def _aliases(model) -> Dict[str, str]:
    return {name: field.alias or name for name, field in model.model_fields.items()}


def _field_errors(error: ValidationError, model=ServiceRequestCreate, messages: Dict[str, str] = FIELD_MESSAGES) -> Dict[str, str]:
    aliases = _aliases(model)
    field_errors: Dict[str, str] = {}
    for item in error.errors():
        if not item["loc"]:
            continue
        field = aliases.get(str(item["loc"][0]), str(item["loc"][0]))
        if field in field_errors:
            continue
        if item["type"] == "value_error":
            field_errors[field] = str(item["ctx"]["error"])
        else:
            field_errors[field] = messages.get(field, item["msg"])
    return field_errors


def parse_service_request(payload: Dict[str, Any], kind: RequestKind = RequestKind.CONSTRUCTION) -> ServiceRequestCreate:
    """Validate a submitted request form. Raises RequestValidationError with per-field messages."""
    model = REQUEST_MODELS.get(kind, ServiceRequestCreate)
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(_field_errors(e, model)) from e


PROPERTY_TYPES = ("sale", "rent", "renovation", "buy", "sell")
PROPERTY_STATUSES = ("draft", "pending", "published", "sold", "rented", "archived")
# Set by admins only, never offered to owners
PROPERTY_SUSPENDED = "suspended"

PROPERTY_FIELD_MESSAGES = {
    "ownerId": "Please log in to post a property.",
    "title": "Title is required",
    "description": "Description is required",
    "price": "Price must be a valid positive number",
    "type": f"Type must be one of: {', '.join(PROPERTY_TYPES)}",
    "address": "Address is required",
    "status": f"Status must be one of: {', '.join(PROPERTY_STATUSES)}",
}


class PropertyCreate(BaseModel):
    """Validated property listing form."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    owner_id: str = Field(..., alias="ownerId", min_length=1)
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    currency: str = "PKR"
    type: str
    listing_type: Optional[str] = Field(None, alias="listingType")
    status: str = "published"
    address: Dict[str, Any]
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)
    area_sq_ft: float = Field(0, alias="areaSqFt", ge=0)
    year_built: Optional[int] = Field(None, alias="yearBuilt")
    furnished: bool = False
    parking: bool = False
    featured: bool = False
    amenities: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _address_from_flat_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        address = data.get("address")
        if isinstance(address, str):
            address = {"line1": address}
        if isinstance(address, dict):
            address = {key: value for key, value in address.items() if value not in (None, "")}
            for key in ("city", "state", "country", "postalCode"):
                if data.get(key) and key not in address:
                    address[key] = data[key]
            address.setdefault("country", "Pakistan")
            data["address"] = address if address.get("line1") else None
        return data

    @field_validator("type", "status", "listing_type", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in PROPERTY_TYPES:
            raise ValueError(PROPERTY_FIELD_MESSAGES["type"])
        return value

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        if value not in PROPERTY_STATUSES:
            raise ValueError(PROPERTY_FIELD_MESSAGES["status"])
        return value

    def to_firestore(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        # Rental filtering reads listingType, older forms only sent type
        data["listingType"] = self.listing_type or self.type
        return data


def parse_property_form(payload: Dict[str, Any]) -> PropertyCreate:
    try:
        return PropertyCreate.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(_field_errors(e, PropertyCreate, PROPERTY_FIELD_MESSAGES)) from e


REVIEW_FIELD_MESSAGES = {
    "reviewerId": "Please log in to leave a review.",
    "targetId": "Nothing selected to review",
    "targetType": "Unknown review target",
    "rating": "Rating must be between 1 and 5",
    "comment": "Comment must be at least 10 characters",
}


class ReviewCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    reviewer_id: str = Field(..., alias="reviewerId", min_length=1)
    target_id: str = Field(..., alias="targetId", min_length=1)
    target_type: ReviewTarget = Field(..., alias="targetType")
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=10)


def parse_review_form(payload: Dict[str, Any]) -> ReviewCreate:
    try:
        return ReviewCreate.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(_field_errors(e, ReviewCreate, REVIEW_FIELD_MESSAGES)) from e
