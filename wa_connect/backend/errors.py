"""
Backend error shaping
---------------------
Every backend failure is reduced to one human-readable string before it reaches
the onboarding state machine. Priority order:
  1) structured error body (``detail``) from the backend
  2) raw transport error text
  3) generic fallback
"""
from __future__ import annotations

from typing import Any, Optional

DEFAULT_ERROR_MESSAGE = "Connection failed"


class BackendError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


def detail_to_text(detail: Any) -> str:
    if detail is None:
        return ""
    if isinstance(detail, str):
        return detail.strip()
    # FastAPI validation errors: [{"loc": [...], "msg": "...", ...}, ...]
    if isinstance(detail, list):
        parts = []
        for item in detail:
            if isinstance(item, dict) and item.get("msg"):
                parts.append(str(item["msg"]).strip())
            elif isinstance(item, str) and item.strip():
                parts.append(item.strip())
        return "; ".join(p for p in parts if p)
    if isinstance(detail, dict):
        return str(detail.get("message") or detail.get("msg") or "").strip()
    return str(detail).strip()


def detail_from_response(response) -> Any:
    """Pull ``detail`` out of a JSON error body; None when absent or not JSON."""
    if response is None:
        return None
    try:
        body = response.json()
    except Exception:
        return None
    if isinstance(body, dict):
        return body.get("detail")
    return None


def extract_error_message(exc: BaseException, default: str = DEFAULT_ERROR_MESSAGE) -> str:
    if isinstance(exc, BackendError):
        text = detail_to_text(exc.detail)
        if text:
            return text
        return (exc.message or "").strip() or default

    text = detail_to_text(detail_from_response(getattr(exc, "response", None)))
    if text:
        return text

    text = str(exc).strip()
    return text or default
