import pytest
from unittest.mock import MagicMock

from wa_connect.settings import settings
from wa_connect.onboarding.sdk import (
    PageRuntime,
    RelayedSDKClient,
    SDKBootstrapper,
    SDKNotReadyError,
    build_login_params,
)


def test_injects_single_script_and_waits_for_hook():
    rt = PageRuntime()
    boot = SDKBootstrapper(rt)

    readiness = boot.ensure_loaded("app-1")
    boot.ensure_loaded("app-1")

    assert readiness.is_ready is False
    assert [s["src"] for s in rt.scripts] == [settings.SDK_SCRIPT_URL]
    assert rt.scripts[0]["crossorigin"] == "anonymous"
    with pytest.raises(SDKNotReadyError):
        boot.client


def test_init_hook_configures_client_and_marks_ready():
    rt = PageRuntime()
    boot = SDKBootstrapper(rt, version="v99.0")
    readiness = boot.ensure_loaded("app-1")

    fired = []
    readiness.add_done_callback(lambda: fired.append(True))

    client = MagicMock()
    assert rt.script_loaded(client) is True

    client.init.assert_called_once_with(appId="app-1", cookie=True, xfbml=True, version="v99.0")
    assert readiness.is_ready
    assert readiness.wait(0) is True
    assert fired == [True]
    assert boot.client is client


def test_existing_client_marks_ready_without_network():
    rt = PageRuntime()
    rt.sdk_client = MagicMock()

    readiness = SDKBootstrapper(rt).ensure_loaded("app-1")

    assert readiness.is_ready
    assert rt.scripts == []
    rt.sdk_client.init.assert_not_called()


def test_remount_before_load_reuses_injected_script():
    rt = PageRuntime()
    SDKBootstrapper(rt).ensure_loaded("app-1")
    second = SDKBootstrapper(rt)
    readiness = second.ensure_loaded("app-1")

    assert len(rt.scripts) == 1
    rt.script_loaded(MagicMock())
    assert readiness.is_ready


def test_readiness_never_resets():
    rt = PageRuntime()
    boot = SDKBootstrapper(rt)
    readiness = boot.ensure_loaded("app-1")
    rt.script_loaded(MagicMock())
    readiness.set()
    assert boot.ensure_loaded("app-1") is readiness
    assert readiness.is_ready


def test_callback_added_after_ready_runs_immediately():
    rt = PageRuntime()
    rt.sdk_client = MagicMock()
    readiness = SDKBootstrapper(rt).ensure_loaded("app-1")
    fired = []
    readiness.add_done_callback(lambda: fired.append(1))
    assert fired == [1]


def test_script_loaded_without_hook():
    rt = PageRuntime()
    assert rt.script_loaded(MagicMock()) is False


def test_login_params_shape():
    params = build_login_params("cfg-9")
    assert params["config_id"] == "cfg-9"
    assert params["response_type"] == "code"
    assert params["override_default_response_type"] is True
    assert params["extras"] == {
        "setup": {},
        "featureType": "whatsapp_business_app_onboarding",
        "sessionInfoVersion": "3",
    }


def test_relayed_client_parks_and_delivers_login():
    client = RelayedSDKClient()
    got = []
    client.login(got.append, {"config_id": "c"})

    assert client.login_params == {"config_id": "c"}
    assert client.complete_login({"status": "connected"}) is True
    assert got == [{"status": "connected"}]
    assert client.login_params is None
    assert client.complete_login({"status": "unknown"}) is False
