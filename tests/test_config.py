"""
Tests for settings, factories and identity.
"""
import logging
from datetime import timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from tableflow.core.config import EnvironmentMode, Settings, get_settings, setup_logging
from tableflow.core.exceptions import InvalidTransitionError, TableflowError
from tableflow.floor import FrontOfHouse
from tableflow.services.identity import Actor, Role
from tableflow.services.notifications import (
    LogNotificationSink,
    RecordingNotificationSink,
    get_notification_sink,
    reset_notification_sink,
)
from tableflow.services.store import MemoryStore, get_store, reset_store
from tableflow.status import OrderStatus


@pytest.fixture
def clean_factories():
    get_settings.cache_clear()
    reset_store()
    reset_notification_sink()
    yield
    get_settings.cache_clear()
    reset_store()
    reset_notification_sink()


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.env_mode == EnvironmentMode.DEVELOPMENT
        assert settings.is_development
        assert not settings.use_sql_store
        assert settings.attention_blink_seconds == 10.0

    def test_env_mode_is_case_insensitive(self):
        settings = Settings(_env_file=None, env_mode="PRODUCTION")
        assert settings.is_production
        assert settings.use_sql_store

    def test_invalid_env_mode(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, env_mode="qa")

    def test_timezone(self):
        settings = Settings(_env_file=None, restaurant_timezone="UTC")
        assert settings.now().utcoffset() == timezone.utc.utcoffset(None)
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, restaurant_timezone="Mars/Olympus")

    def test_setup_logging(self, monkeypatch, clean_factories):
        monkeypatch.setenv("DEBUG", "true")

        logger = setup_logging()

        assert logger.name == "tableflow"
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ATTENTION_BLINK_SECONDS", "4.5")
        monkeypatch.setenv("ENV_MODE", "staging")
        settings = Settings(_env_file=None)
        assert settings.attention_blink_seconds == 4.5
        assert settings.is_staging


class TestFactories:
    """Development mode uses in-process collaborators."""

    def test_development_collaborators(self, monkeypatch, clean_factories):
        monkeypatch.setenv("ENV_MODE", "development")

        assert isinstance(get_store(), MemoryStore)
        assert get_store() is get_store()
        assert isinstance(get_notification_sink(), RecordingNotificationSink)

    def test_production_notifications_are_logged(self, monkeypatch, clean_factories):
        monkeypatch.setenv("ENV_MODE", "production")

        sink = get_notification_sink()
        assert isinstance(sink, LogNotificationSink)
        assert not isinstance(sink, RecordingNotificationSink)

    @pytest.mark.asyncio
    async def test_front_of_house_from_settings(self, monkeypatch, clean_factories, waiter):
        monkeypatch.setenv("ENV_MODE", "development")
        monkeypatch.setenv("ATTENTION_BLINK_SECONDS", "3")

        floor = FrontOfHouse.from_settings(waiter)
        try:
            assert floor.store is get_store()
            assert floor.notifier is get_notification_sink()
            assert floor.cues.blink_seconds == 3.0
            assert floor.tables.tenant_id == "admin-1"
            assert await floor.health_check()
            assert len(floor.bus) == 2
        finally:
            floor.close()
        assert len(floor.bus) == 0


class TestIdentity:
    """Roles and tenant resolution."""

    @pytest.mark.parametrize("raw,role", [
        ("mesero", Role.WAITER),
        ("Camarera", Role.WAITER),
        ("cocinero", Role.CHEF),
        ("cajero", Role.CASHIER),
        ("Manager", Role.ADMIN),
        ("", Role.WAITER),
        (None, Role.WAITER),
        ("sommelier", Role.WAITER),
    ])
    def test_role_aliases(self, raw, role):
        assert Role.normalize(raw) == role

    def test_staff_act_for_their_admin(self, waiter, admin):
        assert waiter.tenant_id == admin.id
        assert admin.tenant_id == admin.id
        assert admin.is_admin and not waiter.is_admin

    def test_staff_without_admin_is_own_tenant(self):
        assert Actor(id="u9", email="solo@example.com", role=Role.CHEF).tenant_id == "u9"


class TestErrors:
    """Error payloads."""

    def test_transition_error_payload(self):
        error = InvalidTransitionError("order", "o1", OrderStatus.READY, OrderStatus.PENDING)

        assert isinstance(error, TableflowError)
        assert error.to_dict() == {
            "error_code": "invalid_transition",
            "error_message": "Cannot move order o1 from 'ready' to 'pending'",
            "details": {"entity": "order", "id": "o1", "current": "ready", "target": "pending"},
        }
