"""Session settings. Login itself happens at the identity provider."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    session_expiry_hours: int = Field(
        default=2160,  # 90 days
        ge=1,
        le=2160,
        description="Lifetime granted at creation and on each extension",
    )
    session_extend_on_activity: bool = Field(
        default=True,
        description="Slide expires_at forward when the session is used",
    )
    session_touch_interval_seconds: int = Field(
        default=300,
        ge=0,
        description="Minimum time between two sliding-expiry writes for one session",
    )
    session_cookie_name: str = Field(
        default="session_token",
        min_length=1,
        description="Cookie carrying the token; an Authorization: Bearer header also works",
    )
