"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from cache_magic.config.settings import Settings, get_settings, reload_settings
from cache_magic.core.config.constants import EntityEvent, GuestStrategy


@pytest.mark.unit
class TestSettingsDefaults:
    """Test Settings default values."""

    def test_core_defaults(self):
        """Test that core settings have the documented defaults."""
        settings = Settings(_env_file=None)

        assert settings.ENABLED is True
        assert settings.DRIVER == "memory"
        assert settings.DEFAULT_TTL == 3600
        assert settings.VERSION == "1"
        assert settings.GLOBAL_TAGS == ["app"]
        assert settings.GUEST_FALLBACK == GuestStrategy.SESSION

    def test_adaptive_view(self):
        """Test that the adaptive view mirrors the flat fields."""
        settings = Settings(_env_file=None, ADAPTIVE_TTL_ENABLED=True, ADAPTIVE_MIN_TTL=60)

        assert settings.adaptive.ENABLED is True
        assert settings.adaptive.MIN_TTL == 60
        assert settings.adaptive.MAX_TTL == 86400
        assert settings.adaptive.HOT_THRESHOLD == 100
        assert settings.adaptive.WARM_THRESHOLD == 50

    def test_redis_view(self):
        """Test that the redis view carries connection settings."""
        settings = Settings(_env_file=None, REDIS_HOST="cache.internal", REDIS_PREFIX="app:")

        assert settings.redis.REDIS_HOST == "cache.internal"
        assert settings.redis.REDIS_PREFIX == "app:"
        assert settings.redis.REDIS_PORT == 6379


@pytest.mark.unit
class TestSettingsValidation:
    """Test field validation."""

    def test_settings_are_frozen(self):
        settings = Settings(_env_file=None)

        with pytest.raises(ValidationError):
            settings.DEFAULT_TTL = 10

    def test_version_must_not_contain_separator(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, VERSION="1:2")

    def test_version_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, VERSION="")

    def test_log_level_is_normalized(self):
        assert Settings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="LOUD")

    def test_unknown_driver_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, DRIVER="memcached")

    def test_negative_ttl_is_accepted(self):
        """Negative TTLs are sanitized at resolution time, not rejected."""
        assert Settings(_env_file=None, DEFAULT_TTL=-5).DEFAULT_TTL == -5


@pytest.mark.unit
class TestInvalidationView:
    """Test the auto-invalidation event filter."""

    def test_all_events_handled_by_default(self):
        invalidation = Settings(_env_file=None).invalidation

        for event in EntityEvent:
            assert invalidation.handles(event)

    def test_disabled_event_not_handled(self):
        invalidation = Settings(_env_file=None, INVALIDATE_ON_CREATED=False).invalidation

        assert not invalidation.handles(EntityEvent.CREATED)
        assert invalidation.handles(EntityEvent.UPDATED)

    def test_master_switch_disables_everything(self):
        invalidation = Settings(_env_file=None, AUTO_INVALIDATION_ENABLED=False).invalidation

        assert not invalidation.handles(EntityEvent.UPDATED)


@pytest.mark.unit
class TestEnvironmentLoading:
    """Test loading from environment variables."""

    def test_prefixed_environment_variables(self):
        env = {"CACHE_MAGIC_DEFAULT_TTL": "120", "CACHE_MAGIC_DRIVER": "file", "CACHE_MAGIC_ENABLED": "false"}
        with patch.dict(os.environ, env):
            settings = Settings(_env_file=None)

        assert settings.DEFAULT_TTL == 120
        assert settings.DRIVER == "file"
        assert settings.ENABLED is False

    def test_global_tags_from_json(self):
        with patch.dict(os.environ, {"CACHE_MAGIC_GLOBAL_TAGS": '["app", "tenant:1"]'}):
            settings = Settings(_env_file=None)

        assert settings.GLOBAL_TAGS == ["app", "tenant:1"]

    def test_get_settings_is_cached_until_reload(self):
        first = get_settings()
        assert get_settings() is first

        with patch.dict(os.environ, {"CACHE_MAGIC_VERSION": "7"}):
            reloaded = reload_settings()

        assert reloaded is not first
        assert reloaded.VERSION == "7"
        reload_settings()
