import json
import pytest
import httpx

from wa_connect.backend.client import BackendClient
from wa_connect.backend.errors import BackendError
from wa_connect.onboarding.models import DurableCredentials


def _client(handler, **kwargs):
    return BackendClient("http://backend.test/api", transport=httpx.MockTransport(handler), **kwargs)


def test_get_public_config():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["method"] = request.method
        return httpx.Response(200, json={"facebook_app_id": "a", "facebook_config_id": "c"})

    assert _client(handler).get_public_config() == {"facebook_app_id": "a", "facebook_config_id": "c"}
    assert seen == {"url": "http://backend.test/api/config", "method": "GET"}


def test_exchange_token_request_shape_and_user_header():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["user"] = request.headers.get("X-User-ID")
        return httpx.Response(200, json={"success": True, "business_phone": "+15551234"})

    out = _client(handler, user_id="42").exchange_token(9, "t1")

    assert out["business_phone"] == "+15551234"
    assert seen == {"path": "/api/embedded-signup/9/exchange-token", "body": {"access_token": "t1"}, "user": "42"}


def test_no_user_header_without_user_id():
    def handler(request):
        assert "X-User-ID" not in request.headers
        return httpx.Response(200, json={})

    _client(handler).get_webhook_url(1)


def test_connect_whatsapp_omits_blank_business_account():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"webhook_url": "/wh/1", "webhook_verify_token": "v1"})

    client = _client(handler)
    client.connect_whatsapp(3, DurableCredentials("123", "tok"))
    client.connect_whatsapp(3, DurableCredentials("123", "tok", "waba"))

    assert bodies == [
        {"phone_number_id": "123", "access_token": "tok"},
        {"phone_number_id": "123", "access_token": "tok", "business_account_id": "waba"},
    ]


def test_history_sync_uses_query_params():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"success": True, "message": "queued"})

    _client(handler).request_history_sync(5, "+15550001")
    assert seen == {"path": "/api/organizations/5/sync/history", "params": {"phone_number": "+15550001", "count": "100"}}


def test_error_detail_is_preferred():
    def handler(request):
        return httpx.Response(400, json={"detail": "Invalid access token"})

    with pytest.raises(BackendError) as exc:
        _client(handler).exchange_token(1, "bad")

    assert exc.value.message == "Invalid access token"
    assert exc.value.status_code == 400
    assert exc.value.detail == "Invalid access token"


def test_error_without_detail_uses_transport_text():
    def handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(BackendError) as exc:
        _client(handler).connect_whatsapp(1, DurableCredentials("1", "t"))

    assert "502" in exc.value.message
    assert exc.value.status_code == 502


def test_transport_failure():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(BackendError) as exc:
        _client(handler).get_public_config()

    assert exc.value.message == "Connection refused"
    assert exc.value.status_code is None


def test_single_attempt_no_retry():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(503, json={"detail": "busy"})

    with pytest.raises(BackendError):
        _client(handler).exchange_token(1, "t")
    assert len(calls) == 1


def test_empty_body_returns_empty_dict():
    def handler(request):
        return httpx.Response(200)

    assert _client(handler).disconnect_whatsapp(1) == {}


@pytest.mark.parametrize("call,method,path", [
    (lambda c: c.complete_signup(4, "pn", "waba", "tok"), "POST", "/api/embedded-signup/4/complete-signup"),
    (lambda c: c.disconnect_whatsapp(4), "POST", "/api/organizations/4/disconnect-whatsapp"),
    (lambda c: c.get_webhook_url(4), "GET", "/api/organizations/4/webhook-url"),
    (lambda c: c.get_coexistence_status(4), "GET", "/api/organizations/4/coexistence-status"),
    (lambda c: c.request_contact_sync(4), "POST", "/api/organizations/4/sync/contacts"),
])
def test_follow_up_endpoints(call, method, path):
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.headers.get("X-User-ID")))
        return httpx.Response(200, json={"success": True})

    assert call(_client(handler, user_id="u1")) == {"success": True}
    assert seen == [(method, path, "u1")]


def test_complete_signup_body():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    _client(handler).complete_signup(4, "pn", "waba", "tok")
    assert bodies == [{"phone_number_id": "pn", "waba_id": "waba", "access_token": "tok"}]
