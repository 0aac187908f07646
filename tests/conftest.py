import pytest
from unittest.mock import MagicMock, patch

from wa_connect.settings import settings
from wa_connect.onboarding.sdk import PageRuntime, RelayedSDKClient
from wa_connect.onboarding.sessions import sessions


@pytest.fixture(autouse=True)
def no_metrics():
    # Redis is never reached from tests.
    with patch.object(settings, "ENABLE_METRICS", False):
        yield


@pytest.fixture(autouse=True)
def clean_sessions():
    yield
    sessions.clear()


class Recorder:
    def __init__(self):
        self.successes = []
        self.errors = []

    def on_success(self, result):
        self.successes.append(result)

    def on_error(self, message):
        self.errors.append(message)

    @property
    def calls(self):
        return len(self.successes) + len(self.errors)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def backend():
    client = MagicMock()
    client.get_public_config.return_value = {
        "facebook_app_id": "app-123",
        "facebook_config_id": "cfg-456",
    }
    client.exchange_token.return_value = {"success": True, "message": "ok"}
    client.connect_whatsapp.return_value = {"webhook_url": "/wh/1", "webhook_verify_token": "v1"}
    return client


@pytest.fixture
def runtime():
    return PageRuntime()


@pytest.fixture
def load_sdk(runtime):
    """Simulate the injected script finishing: publish the client, run the init hook."""
    def _load():
        client = RelayedSDKClient()
        runtime.script_loaded(client)
        return client
    return _load
