import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

REQUIRED_FIELDS = ('targetUserId', 'title', 'body')


class NotificationRequest(BaseModel):
    """Incoming send request. Required fields are checked by the dispatcher, not here."""
    targetUserId: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Dict[str, str] = Field(default_factory=dict)

    @field_validator('data', mode='before')
    @classmethod
    def stringify_data(cls, value: Any) -> Any:
        # FCM data payloads only accept string values; anything else is sent as JSON text
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in value.items()}
        return value

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]


class TokenOutcome(BaseModel):
    token: str
    success: bool
    errorCode: Optional[str] = None


class SendResult(BaseModel):
    successCount: int = Field(default=0, ge=0)
    failureCount: int = Field(default=0, ge=0)
    perTokenOutcome: List[TokenOutcome] = Field(default_factory=list)
    removedTokens: List[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Notification sent. Success: {self.successCount}, Failures: {self.failureCount}."
