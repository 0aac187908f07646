import time
from typing import Any, Dict, Optional

import httpx

from wa_connect.settings import settings
from wa_connect.backend.errors import (
    BackendError,
    DEFAULT_ERROR_MESSAGE,
    detail_from_response,
    detail_to_text,
)
from wa_connect.observability.logging import log
from wa_connect.onboarding.models import DurableCredentials


class BackendClient:
    """
    Request/response boundary to the organizations backend.

    One attempt per call: no retries. Failures raise BackendError carrying the
    already-extracted user-facing message.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        user_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.BACKEND_API_URL).rstrip("/")
        self.user_id = user_id
        self.timeout = float(timeout or settings.BACKEND_TIMEOUT_SEC)
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.user_id:
            headers["X-User-ID"] = str(self.user_id)
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        start = time.time()
        try:
            with httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                resp = client.request(method, path, **kwargs)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = detail_from_response(e.response)
            message = detail_to_text(detail) or str(e).strip() or DEFAULT_ERROR_MESSAGE
            log(
                event="backend_request_failed",
                method=method,
                path=path,
                statusCode=int(e.response.status_code),
                elapsedMs=int((time.time() - start) * 1000),
                error=message[:500],
            )
            raise BackendError(message, status_code=e.response.status_code, detail=detail) from e
        except httpx.HTTPError as e:
            message = str(e).strip() or DEFAULT_ERROR_MESSAGE
            log(
                event="backend_request_failed",
                method=method,
                path=path,
                elapsedMs=int((time.time() - start) * 1000),
                errorType=type(e).__name__,
                error=message[:500],
            )
            raise BackendError(message) from e

        log(
            event="backend_request",
            method=method,
            path=path,
            statusCode=int(resp.status_code),
            elapsedMs=int((time.time() - start) * 1000),
        )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError("Invalid response from server", status_code=resp.status_code) from e

    # ---- Config ----

    def get_public_config(self) -> Dict[str, str]:
        return self._request("GET", "/config") or {}

    # ---- Embedded signup ----

    def exchange_token(self, org_id: int, access_token: Optional[str]) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/embedded-signup/{org_id}/exchange-token",
            json={"access_token": access_token},
        ) or {}

    def complete_signup(self, org_id: int, phone_number_id: str, waba_id: str, access_token: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/embedded-signup/{org_id}/complete-signup",
            json={
                "phone_number_id": phone_number_id,
                "waba_id": waba_id,
                "access_token": access_token,
            },
        ) or {}

    # ---- Manual connection (fallback) ----

    def connect_whatsapp(self, org_id: int, credentials: DurableCredentials) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/organizations/{org_id}/connect-whatsapp",
            json=credentials.to_request(),
        ) or {}

    def disconnect_whatsapp(self, org_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/organizations/{org_id}/disconnect-whatsapp") or {}

    def get_webhook_url(self, org_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/organizations/{org_id}/webhook-url") or {}

    # ---- Coexistence follow-ups ----

    def get_coexistence_status(self, org_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/organizations/{org_id}/coexistence-status") or {}

    def request_contact_sync(self, org_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/organizations/{org_id}/sync/contacts") or {}

    def request_history_sync(self, org_id: int, phone_number: str, count: int = 100) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/organizations/{org_id}/sync/history",
            params={"phone_number": phone_number, "count": int(count)},
        ) or {}
