from datetime import datetime
from enum import Enum
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class IntegrationType(str, Enum):
    SLACK = "slack"
    TEAMS = "teams"


class NotificationPayload(BaseModel):
    title: str = Field(min_length=1, max_length=150)
    message: str = Field(min_length=1)
    type: Optional[Literal["info", "success", "warning", "error"]] = None
    # Insertion order is the rendering order in outgoing messages.
    fields: Optional[Dict[str, str]] = None


class NotificationResponse(BaseModel):
    message: str


class IntegrationSettingUpdate(BaseModel):
    webhook_url: str = Field(min_length=1, max_length=1000)
    enabled: bool = True

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned.startswith(("https://", "http://")):
            raise ValueError("Webhook URL must be an http(s) URL")
        return cleaned


class IntegrationSettingResponse(BaseModel):
    id: str
    project_id: str
    type: IntegrationType
    webhook_url: str
    enabled: bool
    created_at: datetime
    updated_at: datetime
