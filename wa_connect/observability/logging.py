import json
import time
from wa_connect.settings import settings

# Credentials and handshake artifacts must never reach stdout in clear text
SECRET_KEYS = {
    "access_token",
    "accessToken",
    "short_lived_token",
    "token",
    "code",
    "webhook_verify_token",
}

def _redact_value(v):
    if isinstance(v, str) and len(v) > 0:
        return f"[REDACTED:{len(v)}chars]"
    if isinstance(v, dict):
        return {k: _redact_value(val) for k, val in v.items()}
    return v

def _redact_fields(fields: dict) -> dict:
    clean = {}
    for k, v in fields.items():
        if k in SECRET_KEYS:
            clean[k] = _redact_value(v)
        elif isinstance(v, dict):
            clean[k] = _redact_fields(v)
        else:
            clean[k] = v
    return clean

def log(event: str, **fields):
    payload = {"ts": int(time.time()), "event": event}

    if settings.ENABLE_SECRET_REDACTION:
        payload.update(_redact_fields(fields))
    else:
        payload.update(fields)

    try:
        print(json.dumps(payload, ensure_ascii=False, default=str))
    except Exception:
        pass
