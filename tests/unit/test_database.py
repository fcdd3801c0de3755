"""
Tests for config.database: client creation and degradation detection.
"""

from unittest.mock import patch

import pytest

import config
from config.database import (
    DegradationKind,
    detect_degradation,
    get_supabase_client,
)
from exceptions import DatabaseError


class TestGetSupabaseClient:
    """Tests for get_supabase_client()"""

    def test_connection_failure_raises_database_error(self):
        get_supabase_client.cache_clear()
        try:
            with patch("config.database.create_client", side_effect=ValueError("bad url")):
                with pytest.raises(DatabaseError) as exc_info:
                    get_supabase_client()
        finally:
            get_supabase_client.cache_clear()

        assert exc_info.value.status_code == 500
        assert exc_info.value.details["operation"] == "connect"
        assert "bad url" in exc_info.value.message

    def test_config_exports(self):
        assert set(config.__all__) == {
            "settings",
            "get_settings",
            "Settings",
            "get_supabase_client",
            "check_connection",
            "detect_degradation",
            "DegradationKind",
            "DEGRADATION_ADVISORIES",
        }


class TestDetectDegradation:
    """Tests for detect_degradation()"""

    @pytest.mark.parametrize("message", [
        "Invalid API key",
        "No API key found in request",
        "JWT expired",
    ])
    def test_api_key_errors(self, message):
        assert detect_degradation(Exception(message)) == DegradationKind.API_KEY

    def test_role_error(self):
        error = Exception('role "anon_user" does not exist')

        assert detect_degradation(error) == DegradationKind.ROLE

    def test_ordinary_error(self):
        assert detect_degradation(Exception("duplicate key value")) is None
