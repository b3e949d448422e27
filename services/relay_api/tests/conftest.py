import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.append(str(SRC))

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("API_URL", "http://upstream.test/v1/chat/completions")
os.environ.setdefault("UPSTREAM_TIMEOUT_SECONDS", "5")
os.environ.setdefault("SERVE_STATIC", "false")

from relay_api import settings as settings_module

settings_module.get_settings.cache_clear()

from relay_api.main import create_app

from .utils import UpstreamRecorder


@pytest.fixture()
def settings():
    return settings_module.get_settings()


@pytest.fixture()
def upstream():
    return UpstreamRecorder()


@pytest.fixture()
def app(settings, upstream):
    app = create_app(settings)
    app.state.upstream_transport = upstream.transport()
    return app


@pytest.fixture()
def client(app):
    return TestClient(app)
