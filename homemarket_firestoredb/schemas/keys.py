from dataclasses import dataclass


@dataclass
class FireStoreKeys:
    id = "id"
    userId = "userId"
    providerId = "providerId"
    propertyId = "propertyId"
    ownerId = "ownerId"
    status = "status"
    role = "role"
    read = "read"
    approved = "approved"
    participants = "participants"
    createdAt = "createdAt"
    updatedAt = "updatedAt"
    readAt = "readAt"
    DESCENDING = "DESCENDING"
    ASCENDING = "ASCENDING"
