"""
Tests for TeachAssist configuration models and sync request schemas.
"""

import pytest
from datetime import date
from pydantic import ValidationError, SecretStr

from app.core.teachassist_config import TeachAssistConfig, TeachAssistCredentials
from app.models.sync_metadata import SyncMode
from app.schemas.sync import AttendanceSyncRequest, DateRange, ExecutionMode


class TestTeachAssistConfig:
    """Test per-classroom configuration validation."""
    
    def test_defaults(self):
        config = TeachAssistConfig(username="teacher01", course_search="GLC2O", block="A1")
        
        assert config.execution_mode == ExecutionMode.CONFIRMATION
        assert config.base_url.startswith("https://")
        assert config.base_url.endswith("/")
        assert config.has_password is False
        
    def test_fields_are_stripped(self):
        config = TeachAssistConfig(username=" teacher01 ", course_search=" GLC2O ", block=" A1 ")
        
        assert (config.username, config.course_search, config.block) == ("teacher01", "GLC2O", "A1")
        
    @pytest.mark.parametrize("field", ["username", "course_search", "block"])
    def test_blank_fields_rejected(self, field):
        values = {"username": "teacher01", "course_search": "GLC2O", "block": "A1"}
        values[field] = "   "
        
        with pytest.raises(ValidationError):
            TeachAssistConfig(**values)
            
    def test_base_url_must_be_http(self):
        with pytest.raises(ValidationError):
            TeachAssistConfig(username="t", course_search="c", block="b", base_url="ftp://ta.example.org")
            
    def test_base_url_gets_trailing_slash(self):
        config = TeachAssistConfig(username="t", course_search="c", block="b", base_url="http://ta.example.org/x")
        
        assert config.base_url == "http://ta.example.org/x/"
        
    def test_public_view_never_contains_password(self):
        config = TeachAssistConfig(
            username="t", course_search="c", block="b", password_encrypted="gAAAA-ciphertext"
        )
        
        public = config.public_view()
        
        assert "password_encrypted" not in public
        assert public["has_password"] is True


class TestTeachAssistCredentials:
    """Test password scrubbing."""
    
    def test_scrub_removes_password(self):
        credentials = TeachAssistCredentials(username="t", password=SecretStr("hunter2"), base_url="https://x/")
        
        assert credentials.scrub("fill('hunter2') failed") == "fill('********') failed"
        
    def test_scrub_passes_through_empty(self):
        credentials = TeachAssistCredentials(username="t", password="hunter2", base_url="https://x/")
        
        assert credentials.scrub(None) is None
        assert credentials.scrub("") == ""
        
    def test_password_not_in_repr(self):
        credentials = TeachAssistCredentials(username="t", password="hunter2", base_url="https://x/")
        
        assert "hunter2" not in repr(credentials)


class TestDateRange:
    """Test sync date range validation."""
    
    def test_accepts_from_alias(self):
        date_range = DateRange(**{"from": "2025-01-13", "to": "2025-01-14"})
        
        assert date_range.from_ == date(2025, 1, 13)
        assert date_range.to_payload() == {"from": "2025-01-13", "to": "2025-01-14"}
        assert date_range.contains(date(2025, 1, 14))
        assert not date_range.contains(date(2025, 1, 15))
        
    def test_single_day(self):
        assert DateRange(from_=date(2025, 1, 13), to=date(2025, 1, 13))
        
    def test_reversed_range_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(**{"from": "2025-01-14", "to": "2025-01-13"})
            
    def test_overlong_range_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(**{"from": "2025-01-01", "to": "2025-03-01"})
            
    def test_non_iso_date_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(**{"from": "13/01/2025", "to": "2025-01-14"})
            
    def test_request_defaults_to_dry_run(self):
        request = AttendanceSyncRequest(classroom_id=1, date_range={"from": "2025-01-13", "to": "2025-01-13"})
        
        assert request.mode == SyncMode.DRY_RUN
        assert request.execution_mode is None
