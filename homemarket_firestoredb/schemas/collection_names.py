from enum import Enum


class DatabaseCollectionNames(Enum):
    USERS_COLLECTION_NAME = "users"
    USER_PROFILES_COLLECTION_NAME = "userProfiles"
    SERVICE_PROVIDERS_COLLECTION_NAME = "serviceProviders"
    CONSTRUCTION_PROVIDERS_COLLECTION_NAME = "constructionProviders"
    CONSTRUCTION_PROJECTS_COLLECTION_NAME = "constructionProjects"
    RENOVATION_PROJECTS_COLLECTION_NAME = "renovationProjects"
    RENTAL_REQUESTS_COLLECTION_NAME = "rentalRequests"
    BUY_SELL_REQUESTS_COLLECTION_NAME = "buySellRequests"
    NOTIFICATIONS_COLLECTION_NAME = "notifications"
    CHATS_COLLECTION_NAME = "chats"
    MESSAGES_SUBCOLLECTION_NAME = "messages"
    PROPERTIES_COLLECTION_NAME = "properties"
    REVIEWS_COLLECTION_NAME = "reviews"
    UPDATES_SUBCOLLECTION_NAME = "updates"


class ProviderKind(str, Enum):
    SERVICE = "service"
    CONSTRUCTION = "construction"

    @property
    def collection_name(self) -> str:
        if self is ProviderKind.CONSTRUCTION:
            return DatabaseCollectionNames.CONSTRUCTION_PROVIDERS_COLLECTION_NAME.value
        return DatabaseCollectionNames.SERVICE_PROVIDERS_COLLECTION_NAME.value


class RequestKind(str, Enum):
    CONSTRUCTION = "construction"
    RENOVATION = "renovation"
    RENTAL = "rental"
    BUY_SELL = "buy-sell"

    @property
    def collection_name(self) -> str:
        return {
            RequestKind.CONSTRUCTION: DatabaseCollectionNames.CONSTRUCTION_PROJECTS_COLLECTION_NAME.value,
            RequestKind.RENOVATION: DatabaseCollectionNames.RENOVATION_PROJECTS_COLLECTION_NAME.value,
            RequestKind.RENTAL: DatabaseCollectionNames.RENTAL_REQUESTS_COLLECTION_NAME.value,
            RequestKind.BUY_SELL: DatabaseCollectionNames.BUY_SELL_REQUESTS_COLLECTION_NAME.value,
        }[self]

    @property
    def provider_kind(self) -> "ProviderKind":
        # Renovation work is fulfilled by general service providers
        return ProviderKind.CONSTRUCTION if self is RequestKind.CONSTRUCTION else ProviderKind.SERVICE
