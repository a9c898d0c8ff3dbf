"""Shared test fixtures and configuration for backend tests."""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from relay import config as config_module
from relay.config import AppSettings, SessionSettings, StorageSettings
from relay.main import app
from relay.storage.service import RelayService

FIXED_NOW = datetime(2024, 5, 17, 9, 30, 15)


@pytest.fixture
def settings(tmp_path) -> AppSettings:
    """Settings with storage roots under a temp directory."""
    return AppSettings(
        storage=StorageSettings(
            uploads_dir=str(tmp_path / "uploads"),
            logs_dir=str(tmp_path / "logs"),
            fsync=False,
        ),
        sessions=SessionSettings(),
    )


@pytest.fixture
def service(settings) -> RelayService:
    """A RelayService whose activity log uses a fixed clock."""
    svc = RelayService.from_settings(settings)
    svc.activity._clock = lambda: FIXED_NOW
    return svc


@pytest.fixture
def api_client(monkeypatch, settings, service):
    """Provide a TestClient for the main FastAPI app backed by temp storage."""
    monkeypatch.setattr(config_module, "_config", settings)
    monkeypatch.setattr(RelayService, "_instance", service)
    return TestClient(app)
