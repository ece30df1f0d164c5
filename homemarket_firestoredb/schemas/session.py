from typing import Optional

from pydantic import BaseModel, ConfigDict

from .records import UserRecord, UserRole


class SessionContext(BaseModel):
    """
    Read-only view of the signed-in user, built once per session and passed explicitly
    to whatever needs it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    role: UserRole
    email_verified: bool = False
    profile: Optional[UserRecord] = None

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    @property
    def is_provider(self) -> bool:
        return self.role.is_provider

    @property
    def display_name(self) -> str:
        return self.profile.display_name if self.profile and self.profile.display_name else "User"
