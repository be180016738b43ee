"""Session record kept in Valkey for an authenticated identity-provider subject."""

from datetime import timedelta

from pydantic import AwareDatetime, BaseModel, Field


class Session(BaseModel):
    token: str = Field(..., min_length=1, description="Opaque bearer token; also the Valkey key suffix")
    subject: str = Field(..., min_length=1, description="Identity-provider subject that owns a workspace")
    created_at: AwareDatetime
    expires_at: AwareDatetime
    last_activity_at: AwareDatetime

    def remaining(self, now: AwareDatetime) -> timedelta:
        return self.expires_at - now

    def is_expired(self, now: AwareDatetime) -> bool:
        return now >= self.expires_at
