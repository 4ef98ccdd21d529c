"""
Per-classroom configuration for the TeachAssist attendance integration.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, SecretStr, validator

from app.core.config import settings
from app.schemas.sync import ExecutionMode


class TeachAssistConfig(BaseModel):
    """Stored TeachAssist settings for one classroom."""
    username: str = Field(..., min_length=1)
    password_encrypted: str = ""
    base_url: str = Field(default_factory=lambda: settings.TEACHASSIST_BASE_URL)
    course_search: str = Field(..., min_length=1)  # sidebar text, e.g. "GLD2OOH"
    block: str = Field(..., min_length=1)  # e.g. "A1"
    execution_mode: ExecutionMode = ExecutionMode.CONFIRMATION
    
    @validator('username', 'course_search', 'block')
    def strip_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v
    
    @validator('base_url')
    def validate_base_url(cls, v):
        v = v.strip()
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Base URL must start with http:// or https://')
        return v if v.endswith('/') else v + '/'
    
    @property
    def has_password(self) -> bool:
        return bool(self.password_encrypted)
    
    def public_view(self) -> Dict[str, Any]:
        """Configuration safe to show to teachers; never includes the password."""
        return {
            "username": self.username,
            "base_url": self.base_url,
            "course_search": self.course_search,
            "block": self.block,
            "execution_mode": self.execution_mode.value,
            "has_password": self.has_password,
        }


class TeachAssistCredentials(BaseModel):
    """Decrypted credentials, alive only for the duration of a login."""
    username: str
    password: SecretStr
    base_url: str
    
    def scrub(self, text: Optional[str]) -> Optional[str]:
        """Remove the plaintext password from a message."""
        secret = self.password.get_secret_value()
        if not text or not secret:
            return text
        return text.replace(secret, "********")
