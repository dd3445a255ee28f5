# kiosk_dispatch/transport/schemas.py
from pydantic import BaseModel, Field, field_validator


class StartCallIn(BaseModel):
    to: str = Field(min_length=1, max_length=32)

    @field_validator("to")
    @classmethod
    def to_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("to must not be blank")
        return v


class CallResponseIn(BaseModel):
    sid: str = Field(min_length=1, max_length=64)
    # Form posts send "true"/"false"/"1"/"0"; pydantic coerces them
    accepted: bool


class PushTokenIn(BaseModel):
    token: str = Field(min_length=1, max_length=256)
