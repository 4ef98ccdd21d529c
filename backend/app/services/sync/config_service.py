"""
Per-classroom TeachAssist configuration storage.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import CredentialCipher, CredentialDecryptionError, get_credential_cipher
from app.core.teachassist_config import TeachAssistConfig, TeachAssistCredentials
from app.integrations.teachassist.error_handler import ExternalConfigurationError
from app.models.sync_metadata import ExternalSystemMapping, SyncProvider
from app.schemas.sync import ExecutionMode

logger = logging.getLogger(__name__)


class ExternalConfigService:
    """Reads and writes the external system settings of a classroom."""

    def __init__(self, db: AsyncSession, cipher: Optional[CredentialCipher] = None):
        self.db = db
        self.cipher = cipher or get_credential_cipher()

    async def _get_mapping(self, classroom_id: int) -> Optional[ExternalSystemMapping]:
        result = await self.db.execute(
            select(ExternalSystemMapping).where(ExternalSystemMapping.classroom_id == classroom_id)
        )
        return result.scalar_one_or_none()

    async def get_config(self, classroom_id: int) -> Optional[TeachAssistConfig]:
        mapping = await self._get_mapping(classroom_id)
        if mapping is None or not mapping.config:
            return None
        return TeachAssistConfig(**mapping.config)

    async def get_public_config(self, classroom_id: int) -> Optional[Dict[str, Any]]:
        """Configuration without the password, for display."""
        config = await self.get_config(classroom_id)
        return config.public_view() if config else None

    async def save_config(
        self,
        classroom_id: int,
        username: str,
        course_search: str,
        block: str,
        password: Optional[str] = None,
        base_url: Optional[str] = None,
        execution_mode: Optional[ExecutionMode] = None
    ) -> TeachAssistConfig:
        """
        Create or update a classroom's configuration.

        A new password is encrypted before storage. When ``password`` is
        omitted the stored one is kept; a first save must supply one.
        """
        mapping = await self._get_mapping(classroom_id)
        existing = TeachAssistConfig(**mapping.config) if mapping is not None and mapping.config else None

        if password:
            password_encrypted = self.cipher.encrypt(password)
        elif existing is not None and existing.has_password:
            password_encrypted = existing.password_encrypted
        else:
            raise ExternalConfigurationError(
                f"A TeachAssist password is required for classroom {classroom_id}"
            )

        values: Dict[str, Any] = {
            "username": username,
            "password_encrypted": password_encrypted,
            "course_search": course_search,
            "block": block,
        }
        if base_url:
            values["base_url"] = base_url
        elif existing is not None:
            values["base_url"] = existing.base_url
        if execution_mode is not None:
            values["execution_mode"] = execution_mode
        elif existing is not None:
            values["execution_mode"] = existing.execution_mode

        config = TeachAssistConfig(**values)

        if mapping is None:
            mapping = ExternalSystemMapping(classroom_id=classroom_id, provider=SyncProvider.TEACHASSIST)
            self.db.add(mapping)
        mapping.config = config.model_dump(mode="json")

        await self.db.commit()
        logger.info(f"Saved TeachAssist configuration for classroom {classroom_id}")
        return config

    def load_credentials(self, config: TeachAssistConfig) -> TeachAssistCredentials:
        """Decrypt the stored password for immediate use."""
        if not config.has_password:
            raise ExternalConfigurationError("TeachAssist password is not configured")
        try:
            password = self.cipher.decrypt(config.password_encrypted)
        except CredentialDecryptionError as e:
            raise ExternalConfigurationError(str(e)) from None

        return TeachAssistCredentials(
            username=config.username,
            password=password,
            base_url=config.base_url
        )
