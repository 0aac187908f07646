"""
Cross-origin status messages
----------------------------
The signup popup reports progress through window messages. Anything that is
not an origin-trusted, well-formed ``WA_EMBEDDED_SIGNUP`` envelope is treated
as unrelated traffic: dropped, never raised.
"""
from __future__ import annotations

import json
import threading
from typing import Any, Callable, Iterable, List, Optional, Tuple

from wa_connect.settings import settings
from wa_connect.observability.logging import log
from wa_connect.onboarding.models import CrossOriginEvent, SIGNUP_CHANNEL, WIRE_EVENTS

Handler = Callable[[str, Any], None]


class MessageBus:
    """In-process stand-in for the page's window "message" channel."""

    def __init__(self):
        self._handlers: List[Handler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def publish(self, origin: str, data: Any) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for h in handlers:
            h(origin, data)


def _ignored(reason: str, origin: str) -> None:
    # Payload is never logged: unrelated traffic may carry anything.
    if settings.LOG_IGNORED_MESSAGES:
        log(event="cross_origin_message_ignored", reason=reason, origin=str(origin)[:200])


def decode_envelope(origin: str, data: Any) -> Tuple[Optional[CrossOriginEvent], str]:
    """
    Returns (event, "ok") or (None, reason).

    The envelope is JSON text; already-decoded objects are not ours.
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError:
            return None, "not_text"

    if not isinstance(data, str):
        return None, "not_text"
    try:
        doc = json.loads(data)
    except ValueError:
        return None, "not_json"

    if not isinstance(doc, dict):
        return None, "not_object"
    if doc.get("type") != SIGNUP_CHANNEL:
        return None, "foreign_type"

    event = doc.get("event")
    if not isinstance(event, str) or event not in WIRE_EVENTS:
        return None, "unknown_event"
    event_type = WIRE_EVENTS[event]

    payload = doc.get("data")
    if not isinstance(payload, dict):
        payload = {}
    return CrossOriginEvent(source_origin=origin, event_type=event_type, payload=payload), "ok"


def parse_cross_origin_message(
    origin: str,
    data: Any,
    trusted_origins: Optional[Iterable[str]] = None,
) -> Optional[CrossOriginEvent]:
    trusted = tuple(trusted_origins) if trusted_origins is not None else settings.trusted_origins()
    if origin not in trusted:
        _ignored("untrusted_origin", origin)
        return None

    event, reason = decode_envelope(origin, data)
    if event is None:
        _ignored(reason, origin)
    return event


class CrossOriginListener:
    """
    Scoped subscription: subscribes once on enter, unsubscribes on exit.
    Parsed events are dispatched to ``machine.handle_event``.
    """

    def __init__(self, machine, bus: MessageBus, trusted_origins: Optional[Iterable[str]] = None):
        self.machine = machine
        self.bus = bus
        self.trusted_origins = tuple(trusted_origins) if trusted_origins is not None else settings.trusted_origins()
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def _on_message(self, origin: str, data: Any) -> None:
        if not self._active:
            return
        event = parse_cross_origin_message(origin, data, self.trusted_origins)
        if event is not None:
            self.machine.handle_event(event)

    def __enter__(self) -> "CrossOriginListener":
        if not self._active:
            self._active = True
            self.bus.subscribe(self._on_message)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._active:
            self._active = False
            self.bus.unsubscribe(self._on_message)
