from typing import List, Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class EligibleNotification(BaseModel):
    user_id: str = Field(..., description="User to notify")
    email: str = Field(..., description="Delivery address for the email channel")
    device_token: Optional[str] = Field(
        None, description="Expo push token, absent without a registered device"
    )
    friend_id: str = Field(..., description="Friend whose birthday is approaching")
    friend_name: str = Field(..., description="Friend display name")
    hours_until: int = Field(
        ..., ge=0, description="Hours until the birthday in the user's timezone"
    )
    email_notifications: bool = Field(..., description="Email channel opt-in")
    push_notifications: bool = Field(..., description="Push channel opt-in")


class ResolutionResult(BaseModel):
    notifications: List[EligibleNotification] = Field(default_factory=list)
    error: Optional[str] = Field(
        None, description="Set when resolution failed rather than found nothing"
    )

    @property
    def failed(self) -> bool:
        return self.error is not None
