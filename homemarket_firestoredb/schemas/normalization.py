"""
Read-boundary migration of legacy document shapes.

Documents written by older clients carry the same fact under different field names
(`name` / `fullName` / `displayName`, `approved` / `isApproved`, ...). Every raw document is
collapsed here into its canonical record so the rest of the package never checks which
legacy name happens to be populated.
"""

import re
from typing import Any, Dict, Iterable, List, Optional

from .collection_names import ProviderKind, RequestKind
from .records import (
    ChatMessage,
    ChatRecord,
    NotificationRecord,
    ParticipantDetails,
    ProjectRecord,
    ProjectUpdateRecord,
    PropertyRecord,
    ProviderProfile,
    ReviewRecord,
    ReviewTarget,
    UserRecord,
    UserRole,
)
from .status import ProjectStatus

ROLE_ALIASES = {
    "": UserRole.USER,
    "user": UserRole.USER,
    "customer": UserRole.USER,
    "owner": UserRole.USER,
    "renovator": UserRole.RENOVATOR,
    "provider": UserRole.RENOVATOR,
    "constructor": UserRole.CONSTRUCTOR,
    "contractor": UserRole.CONSTRUCTOR,
    "admin": UserRole.ADMIN,
}


def first_present(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, "", [], {}):
            return value
    return default


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [item for item in value if item not in (None, "")]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [value]


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    digits = re.search(r"\d+", str(value))
    return int(digits.group(0)) if digits else None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _urls(values: Iterable[Any]) -> List[str]:
    urls = []
    for value in values:
        if isinstance(value, dict):
            value = value.get("url") or value.get("downloadURL")
        if value:
            urls.append(str(value))
    return urls


def normalize_role(value: Any) -> UserRole:
    return ROLE_ALIASES.get(str(value or "").strip().lower(), UserRole.USER)


def display_name_of(data: Dict[str, Any], default: str = "User") -> str:
    name = first_present(data, "displayName", "name", "fullName")
    if name:
        return str(name)
    email = data.get("email")
    if email and "@" in str(email):
        return str(email).split("@")[0]
    return default


def normalize_user(doc_id: str, data: Dict[str, Any]) -> UserRecord:
    favorites = _as_list(first_present(data, "favorites", "savedProperties", default=[]))
    return UserRecord(
        id=doc_id,
        displayName=display_name_of(data),
        email=data.get("email"),
        role=normalize_role(data.get("role")),
        photoURL=first_present(data, "photoURL", "photoUrl", "profileImageUrl", "avatar"),
        favorites=[str(item) for item in favorites],
        notificationPreferences=dict(first_present(data, "notificationPreferences", "notifications", default={}) or {}),
    )


def normalize_provider(kind: ProviderKind, doc_id: str, data: Dict[str, Any]) -> ProviderProfile:
    approved = bool(first_present(data, "approved", "isApproved", default=False))
    rejected = not approved and bool(first_present(data, "rejected", "isRejected", default=False))
    return ProviderProfile(
        id=doc_id,
        kind=kind,
        userId=str(first_present(data, "userId", "ownerId", "uid", default=doc_id)),
        name=str(first_present(data, "name", "fullName", "displayName", "contactName", "companyName", default=f"{kind.value.title()} Provider")),
        companyName=first_present(data, "companyName", "company", "businessName"),
        email=first_present(data, "email", "contactEmail"),
        phone=first_present(data, "phone", "phoneNumber", "contactPhone"),
        city=first_present(data, "city", "location"),
        approved=approved,
        rejected=rejected,
        isActive=bool(data.get("isActive", True)),
        skills=[str(skill) for skill in _as_list(first_present(data, "skills", "specialization", "expertise", "servicesOffered"))],
        experienceYears=_as_int(first_present(data, "experienceYears", "experience", "yearsOfExperience")),
        portfolioUrls=_urls(_as_list(first_present(data, "portfolioUrls", "portfolioImages", "portfolio", "portfolioLinks"))),
        licenseUrls=_urls(_as_list(first_present(data, "licenseUrls", "licenseDocuments", "certifications"))),
        profileImageUrl=first_present(data, "profileImageUrl", "profileImage", "photoURL"),
    )


def provider_label(data: Dict[str, Any]) -> str:
    return str(first_present(data, "name", "fullName", "displayName", "companyName", default="Unknown Provider"))


def property_label(data: Dict[str, Any]) -> str:
    return str(first_present(data, "title", "name", "address", default="Unknown Property"))


def normalize_project(kind: RequestKind, doc_id: str, data: Dict[str, Any]) -> ProjectRecord:
    try:
        status = ProjectStatus.parse(data.get("status") or ProjectStatus.PENDING.value)
    except ValueError:
        # "Accepted" / "Rejected" from the request-service era map onto the workflow
        status = {"accepted": ProjectStatus.IN_PROGRESS, "rejected": ProjectStatus.CANCELLED}.get(
            str(data.get("status")).strip().lower(), ProjectStatus.PENDING
        )
    return ProjectRecord(
        id=doc_id,
        kind=kind,
        userId=str(first_present(data, "userId", "clientId", "requesterId", default="")),
        propertyId=first_present(data, "propertyId"),
        providerId=first_present(data, "providerId", "constructorId", "renovatorId"),
        projectType=first_present(data, "projectType", "serviceType", "type"),
        description=str(first_present(data, "description", "details", default="")),
        budget=_as_float(data.get("budget")),
        startDate=first_present(data, "startDate", "preferredStartDate"),
        endDate=first_present(data, "endDate", "preferredEndDate"),
        status=status,
        chatId=data.get("chatId"),
        createdAt=data.get("createdAt"),
        updatedAt=data.get("updatedAt"),
    )


def normalize_project_update(doc_id: str, data: Dict[str, Any]) -> ProjectUpdateRecord:
    return ProjectUpdateRecord(
        id=doc_id,
        status=ProjectStatus.parse(data.get("status")),
        updatedBy=str(first_present(data, "updatedBy", "userId", default="")),
        note=str(data.get("note") or ""),
        createdAt=data.get("createdAt"),
    )


def normalize_notification(doc_id: str, data: Dict[str, Any]) -> NotificationRecord:
    return NotificationRecord(
        id=doc_id,
        userId=str(first_present(data, "userId", "recipientId", default="")),
        title=str(first_present(data, "title", default="New Notification")),
        message=str(first_present(data, "message", "body", default="")),
        type=str(first_present(data, "type", "category", default="info")),
        link=first_present(data, "link", "deepLink"),
        read=bool(data.get("read", False)),
        isBroadcast=bool(data.get("isBroadcast", False)),
        createdAt=data.get("createdAt"),
    )


def normalize_chat(doc_id: str, data: Dict[str, Any]) -> ChatRecord:
    details = {
        uid: ParticipantDetails(**{key: value for key, value in (info or {}).items() if key in ("name", "role")})
        for uid, info in (data.get("participantDetails") or {}).items()
    }
    return ChatRecord(
        id=doc_id,
        participants=[str(uid) for uid in data.get("participants") or []],
        participantDetails=details,
        lastMessage=str(data.get("lastMessage") or ""),
        unreadFor={str(uid): bool(flag) for uid, flag in (data.get("unreadFor") or {}).items()},
        createdAt=data.get("createdAt"),
        updatedAt=data.get("updatedAt"),
    )


def normalize_message(doc_id: str, data: Dict[str, Any]) -> ChatMessage:
    return ChatMessage(
        id=doc_id,
        senderId=str(first_present(data, "senderId", "sender", "userId", default="")),
        text=str(first_present(data, "text", "message", "content", default="")),
        createdAt=first_present(data, "createdAt", "timestamp"),
    )


LISTING_TYPES = {"rent": "rent", "rental": "rent", "sale": "sale", "sell": "sale", "buy": "sale"}


def normalize_property(doc_id: str, data: Dict[str, Any]) -> PropertyRecord:
    address = data.get("address")
    if isinstance(address, str):
        address = {"line1": address}
    address = dict(address or {})
    listing_type = str(first_present(data, "listingType", "purpose", "type", default="") or "").strip().lower()
    photos = _urls(_as_list(first_present(data, "photos", "images", "imageUrls")))
    return PropertyRecord(
        id=doc_id,
        title=property_label(data),
        description=str(data.get("description") or ""),
        ownerId=first_present(data, "ownerId", "userId"),
        type=(str(data["type"]).lower() if data.get("type") else None),
        city=first_present(data, "city") or address.get("city"),
        address=address,
        price=_as_float(first_present(data, "price", "rent", "monthlyRent")),
        currency=str(data.get("currency") or "PKR"),
        listingType=LISTING_TYPES.get(listing_type),
        status=data.get("status"),
        bedrooms=_as_int(data.get("bedrooms")) or 0,
        bathrooms=_as_int(data.get("bathrooms")) or 0,
        areaSqFt=_as_float(first_present(data, "areaSqFt", "area")) or 0,
        furnished=bool(data.get("furnished", False)),
        parking=bool(data.get("parking", False)),
        featured=bool(data.get("featured", False)),
        photos=photos,
        coverImage=first_present(data, "coverImage") or (photos[0] if photos else None),
        views=_as_int(data.get("views")) or 0,
        favoritesCount=_as_int(data.get("favoritesCount")) or 0,
        createdAt=data.get("createdAt"),
    )


def normalize_review(doc_id: str, data: Dict[str, Any]) -> ReviewRecord:
    try:
        target_type = ReviewTarget(str(data.get("targetType") or "").strip().lower())
    except ValueError:
        target_type = ReviewTarget.PROPERTY
    rating = _as_int(data.get("rating")) or 0
    return ReviewRecord(
        id=doc_id,
        reviewerId=str(first_present(data, "reviewerId", "authorId", "userId", default="")),
        targetId=str(data.get("targetId") or ""),
        targetType=target_type,
        rating=min(max(rating, 0), 5),
        comment=str(first_present(data, "comment", "text", default="")),
        createdAt=data.get("createdAt"),
    )
