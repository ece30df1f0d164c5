from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.time_now import TimeManager
from .collection_names import ProviderKind, RequestKind
from .status import ProjectStatus


class UserRole(str, Enum):
    USER = "user"
    RENOVATOR = "renovator"
    CONSTRUCTOR = "constructor"
    ADMIN = "admin"

    @property
    def is_provider(self) -> bool:
        return self in (UserRole.RENOVATOR, UserRole.CONSTRUCTOR)


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SERVICE_REQUEST = "service-request"
    STATUS_UPDATE = "status-update"
    ADMIN = "admin"
    SYSTEM = "system"


class FirestoreRecord(BaseModel):
    """Canonical in-memory shape of a document. Field aliases are the stored (camelCase) names."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False, extra="ignore")

    id: str

    def to_firestore(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, mode="python", exclude={"id"})
        return {key: (value.value if isinstance(value, Enum) else value) for key, value in data.items()}


class UserRecord(FirestoreRecord):
    display_name: str = Field("", alias="displayName")
    email: Optional[str] = None
    role: UserRole = UserRole.USER
    photo_url: Optional[str] = Field(None, alias="photoURL")
    favorites: List[str] = Field(default_factory=list)
    notification_preferences: Dict[str, bool] = Field(default_factory=dict, alias="notificationPreferences")


class ProviderProfile(FirestoreRecord):
    kind: ProviderKind
    user_id: str = Field(..., alias="userId")
    name: str
    company_name: Optional[str] = Field(None, alias="companyName")
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    approved: bool = False
    rejected: bool = False
    is_active: bool = Field(True, alias="isActive")
    skills: List[str] = Field(default_factory=list)
    experience_years: Optional[int] = Field(None, alias="experienceYears")
    portfolio_urls: List[str] = Field(default_factory=list, alias="portfolioUrls")
    license_urls: List[str] = Field(default_factory=list, alias="licenseUrls")
    profile_image_url: Optional[str] = Field(None, alias="profileImageUrl")

    @property
    def is_pending(self) -> bool:
        return not self.approved and not self.rejected


class ProjectRecord(FirestoreRecord):
    kind: RequestKind
    user_id: str = Field(..., alias="userId")
    property_id: Optional[str] = Field(None, alias="propertyId")
    provider_id: Optional[str] = Field(None, alias="providerId")
    project_type: Optional[str] = Field(None, alias="projectType")
    description: str = ""
    budget: Optional[float] = None
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    status: ProjectStatus = ProjectStatus.PENDING
    chat_id: Optional[str] = Field(None, alias="chatId")
    created_at: Any = Field(None, alias="createdAt")
    updated_at: Any = Field(None, alias="updatedAt")

    @property
    def is_assigned(self) -> bool:
        return bool(self.provider_id)


class ProjectUpdateRecord(FirestoreRecord):
    status: ProjectStatus
    updated_by: str = Field(..., alias="updatedBy")
    note: str = ""
    created_at: Any = Field(None, alias="createdAt")


class NotificationRecord(FirestoreRecord):
    user_id: str = Field(..., alias="userId")
    title: str = "New Notification"
    message: str = ""
    type: str = NotificationType.INFO.value
    link: Optional[str] = None
    read: bool = False
    is_broadcast: bool = Field(False, alias="isBroadcast")
    created_at: Any = Field(None, alias="createdAt")


class ParticipantDetails(BaseModel):
    name: str = "User"
    role: str = "user"


class ChatRecord(FirestoreRecord):
    participants: List[str] = Field(default_factory=list)
    participant_details: Dict[str, ParticipantDetails] = Field(default_factory=dict, alias="participantDetails")
    last_message: str = Field("", alias="lastMessage")
    unread_for: Dict[str, bool] = Field(default_factory=dict, alias="unreadFor")
    created_at: Any = Field(None, alias="createdAt")
    updated_at: Any = Field(None, alias="updatedAt")

    def other_participant(self, uid: str) -> Optional[str]:
        return next((participant for participant in self.participants if participant != uid), None)


class ChatMessage(FirestoreRecord):
    sender_id: str = Field(..., alias="senderId")
    text: str
    created_at: Any = Field(None, alias="createdAt")


class PropertyRecord(FirestoreRecord):
    title: str = "Unknown Property"
    description: str = ""
    owner_id: Optional[str] = Field(None, alias="ownerId")
    type: Optional[str] = None
    city: Optional[str] = None
    address: Dict[str, Any] = Field(default_factory=dict)
    price: Optional[float] = None
    currency: str = "PKR"
    listing_type: Optional[Literal["rent", "sale"]] = Field(None, alias="listingType")
    status: Optional[str] = None
    bedrooms: int = 0
    bathrooms: int = 0
    area_sq_ft: float = Field(0, alias="areaSqFt")
    furnished: bool = False
    parking: bool = False
    featured: bool = False
    photos: List[str] = Field(default_factory=list)
    cover_image: Optional[str] = Field(None, alias="coverImage")
    views: int = 0
    favorites_count: int = Field(0, alias="favoritesCount")
    created_at: Any = Field(None, alias="createdAt")

    def searchable_text(self) -> str:
        parts = [self.title, self.description, self.city, self.address.get("state"), self.address.get("line1"), self.type]
        return " ".join(str(part) for part in parts if part).lower()


class ReviewTarget(str, Enum):
    PROPERTY = "property"
    PROVIDER = "provider"
    CONSTRUCTION = "construction"
    RENOVATION = "renovation"


class ReviewRecord(FirestoreRecord):
    reviewer_id: str = Field(..., alias="reviewerId")
    target_id: str = Field(..., alias="targetId")
    target_type: ReviewTarget = Field(..., alias="targetType")
    rating: int
    comment: str = ""
    created_at: Any = Field(None, alias="createdAt")


class Alert(BaseModel):
    """One transient user-facing alert (a toast)."""

    category: Literal["success", "error", "warning", "info"]
    title: str
    message: str = ""
    notification_id: Optional[str] = None
    emitted_at: datetime = Field(default_factory=TimeManager.get_time_now)
