"""
Connection State Machine
------------------------
Single authority over ConnectionPhase and the operator-facing status text.

Two unordered asynchronous sources describe the same handshake: the SDK login
callback and the cross-origin listener. Both funnel into this object, and every
transition is taken under one lock. A trigger only fires from the phase it
names, so whichever source reaches a terminal trigger first wins and the late
one is a no-op against the stale phase.

INVARIANTS:
- on_success / on_error fire at most once per attempt, never both.
- Neither fires while the attempt is still connecting or syncing.
- Terminal phases (success, error) only leave via reset().
- After detach() (view unmounted) nothing moves and nothing is emitted.
"""
from __future__ import annotations

import threading
import time
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from wa_connect.settings import settings
from wa_connect.backend.errors import BackendError, extract_error_message
from wa_connect.observability.logging import log
import wa_connect.observability.metrics as metrics
from wa_connect.onboarding.models import (
    ConnectionPhase,
    CrossOriginEvent,
    DurableCredentials,
    LoginResult,
    OnboardingResult,
    EVENT_CANCEL,
    EVENT_ERROR,
    EVENT_FINISH,
    EVENT_FINISH_APP_ONBOARDING,
)

IDLE = ConnectionPhase.IDLE
CONNECTING = ConnectionPhase.CONNECTING
SYNCING = ConnectionPhase.SYNCING
SUCCESS = ConnectionPhase.SUCCESS
ERROR = ConnectionPhase.ERROR

PATH_AUTOMATED = "automated"
PATH_MANUAL = "manual"

# Operator-facing messages
MSG_LOGIN_CANCELLED = "Facebook login was cancelled or failed"
MSG_SETUP_CANCELLED = "Setup was cancelled"
MSG_SIGNUP_ERROR = "An error occurred"
MSG_EXCHANGE_FAILED = "Failed to connect"
MSG_SYNC_TIMEOUT = "Data sync timed out"

STATUS_OPENING = "Opening WhatsApp Business connection..."
STATUS_EXCHANGING = "Connecting your WhatsApp Business App..."
STATUS_MANUAL = "Connecting WhatsApp Business..."
STATUS_COMPLETING = "Completing setup..."
STATUS_SYNCING = "WhatsApp Business App connected! Syncing data..."
STATUS_CONNECTED = "Connected successfully!"

# Every phase may go back to IDLE through reset()
ALLOWED_TRANSITIONS: Dict[ConnectionPhase, FrozenSet[ConnectionPhase]] = {
    IDLE: frozenset({CONNECTING}),
    CONNECTING: frozenset({IDLE, SYNCING, SUCCESS, ERROR}),
    SYNCING: frozenset({IDLE, SUCCESS, ERROR}),
    SUCCESS: frozenset({IDLE}),
    ERROR: frozenset({IDLE}),
}


class InvalidTransition(RuntimeError):
    pass


def _safe_metric(fn, *args) -> None:
    try:
        fn(*args)
    except Exception:
        pass


class ConnectionStateMachine:
    def __init__(
        self,
        org_id: int,
        client,
        on_success: Callable[[OnboardingResult], None],
        on_error: Callable[[str], None],
        *,
        sync_timeout_sec: Optional[float] = None,
    ):
        self.org_id = org_id
        self.client = client
        self._on_success = on_success
        self._on_error = on_error
        self.sync_timeout_sec = float(
            settings.SYNC_TIMEOUT_SEC if sync_timeout_sec is None else sync_timeout_sec
        )

        self._lock = threading.RLock()
        self._phase = IDLE
        self._status_text = ""
        self._attempt = 0
        self._path: Optional[str] = None
        self._settled = True
        self._detached = False
        self._sync_timer: Optional[threading.Timer] = None
        self.history: List[Tuple[str, str]] = []

    # ---- read side ----

    @property
    def phase(self) -> ConnectionPhase:
        return self._phase

    @property
    def status_text(self) -> str:
        return self._status_text

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def detached(self) -> bool:
        return self._detached

    # ---- internals (call with lock held) ----

    def _move(self, to: ConnectionPhase, status_text: Optional[str] = None) -> None:
        frm = self._phase
        if to not in ALLOWED_TRANSITIONS[frm]:
            raise InvalidTransition(f"{frm.value} -> {to.value}")
        self._phase = to
        if status_text is not None:
            self._status_text = status_text
        self.history.append((frm.value, to.value))
        log(
            event="onboarding_transition",
            orgId=self.org_id,
            attempt=self._attempt,
            path=self._path,
            fromPhase=frm.value,
            toPhase=to.value,
        )

    def _live(self, attempt: int, path: Optional[str] = None) -> bool:
        if self._detached or self._settled or attempt != self._attempt:
            return False
        return path is None or path == self._path

    def _start_attempt(self, path: str, status_text: str) -> int:
        if self._detached:
            raise InvalidTransition("view is unmounted")
        if self._phase != IDLE:
            raise InvalidTransition(f"cannot start a connection from {self._phase.value}")
        self._attempt += 1
        self._path = path
        self._settled = False
        self._move(CONNECTING, status_text)
        return self._attempt

    def _arm_sync_timer(self, attempt: int) -> None:
        if self.sync_timeout_sec <= 0:
            return
        self._cancel_sync_timer()
        t = threading.Timer(self.sync_timeout_sec, self._sync_expired, args=(attempt,))
        t.daemon = True
        self._sync_timer = t
        t.start()

    def _cancel_sync_timer(self) -> None:
        if self._sync_timer is not None:
            self._sync_timer.cancel()
            self._sync_timer = None

    # ---- callback emission (never under lock) ----

    def _deliver(self, fn, arg, kind: str) -> None:
        # The attempt is already settled; a failing consumer must not undo that.
        try:
            fn(arg)
        except Exception as e:
            log(
                event="onboarding_callback_raised",
                orgId=self.org_id,
                kind=kind,
                errorType=type(e).__name__,
                error=str(e)[:500],
            )

    def _emit_success(self, result: OnboardingResult, path: Optional[str]) -> None:
        _safe_metric(metrics.increment_success, path or PATH_AUTOMATED)
        log(event="onboarding_callback_success", orgId=self.org_id, path=path, result=result.to_dict())
        self._deliver(self._on_success, result, "success")

    def _emit_error(self, message: str, path: Optional[str], cancelled: bool = False) -> None:
        if cancelled:
            _safe_metric(metrics.increment_cancelled)
        else:
            _safe_metric(metrics.increment_error, path or PATH_AUTOMATED)
        log(event="onboarding_callback_error", orgId=self.org_id, path=path, cancelled=cancelled, error=message[:500])
        self._deliver(self._on_error, message, "error")

    def _finish(self, attempt: int, result: Optional[OnboardingResult] = None, error: Optional[str] = None) -> bool:
        with self._lock:
            if not self._live(attempt) or not self._phase.in_flight:
                return False
            self._settled = True
            self._cancel_sync_timer()
            path = self._path
            if error is None:
                self._move(SUCCESS, STATUS_CONNECTED)
            else:
                self._move(ERROR, error)

        if error is None:
            self._emit_success(result, path)
        else:
            self._emit_error(error, path)
        return True

    def _run_exchange(self, attempt: int, call, build, require_success: bool) -> None:
        # Network round-trip happens outside the lock so listener events keep flowing.
        start = time.time()
        try:
            data = call() or {}
            if require_success and not data.get("success"):
                raise BackendError(str(data.get("message") or MSG_EXCHANGE_FAILED))
            result = build(data)
        except Exception as e:
            self._finish(attempt, error=extract_error_message(e))
            return
        finally:
            _safe_metric(metrics.record_exchange_latency, int((time.time() - start) * 1000))
        self._finish(attempt, result=result)

    # ---- triggers ----

    def begin_automated(self, open_login: Callable[[Callable[[LoginResult], None]], None]) -> int:
        """
        idle -> connecting, then open the third-party login. ``open_login``
        receives the continuation to call with the LoginResult.
        """
        with self._lock:
            attempt = self._start_attempt(PATH_AUTOMATED, STATUS_OPENING)
        _safe_metric(metrics.increment_attempt, PATH_AUTOMATED)

        try:
            open_login(lambda result: self.handle_login_result(result, attempt=attempt))
        except Exception as e:
            self._finish(attempt, error=extract_error_message(e))
        return attempt

    def begin_manual(self, credentials: DurableCredentials) -> int:
        with self._lock:
            attempt = self._start_attempt(PATH_MANUAL, STATUS_MANUAL)
        _safe_metric(metrics.increment_attempt, PATH_MANUAL)

        self._run_exchange(
            attempt,
            lambda: self.client.connect_whatsapp(self.org_id, credentials),
            OnboardingResult.from_manual_connect,
            require_success=False,
        )
        return attempt

    def handle_login_result(self, result: LoginResult, attempt: Optional[int] = None) -> None:
        cancelled = False
        with self._lock:
            attempt = self._attempt if attempt is None else attempt
            if not self._live(attempt, PATH_AUTOMATED) or not self._phase.in_flight:
                return
            if not result.authorized:
                if self._phase != CONNECTING:
                    return
                self._settled = True
                self._move(IDLE, "")
                cancelled = True
            elif self._phase == CONNECTING:
                self._status_text = STATUS_EXCHANGING
            token = result.short_lived_token

        if cancelled:
            self._emit_error(MSG_LOGIN_CANCELLED, PATH_AUTOMATED, cancelled=True)
            return

        self._run_exchange(
            attempt,
            lambda: self.client.exchange_token(self.org_id, token),
            OnboardingResult.from_exchange,
            require_success=True,
        )

    def handle_event(self, event: CrossOriginEvent) -> None:
        message = None
        cancelled = False
        with self._lock:
            if not self._live(self._attempt, PATH_AUTOMATED) or not self._phase.in_flight:
                return
            data = event.payload or {}
            kind = event.event_type

            if kind == EVENT_FINISH_APP_ONBOARDING:
                if self._phase == CONNECTING and data.get("waba_id"):
                    self._move(SYNCING, STATUS_SYNCING)
                    self._arm_sync_timer(self._attempt)
                return

            if kind == EVENT_FINISH:
                if self._phase == CONNECTING and data.get("phone_number_id") and data.get("waba_id"):
                    self._status_text = STATUS_COMPLETING
                return

            if kind == EVENT_CANCEL:
                if self._phase != CONNECTING:
                    return
                self._settled = True
                self._move(IDLE, "")
                message = MSG_SETUP_CANCELLED
                cancelled = True
            elif kind == EVENT_ERROR:
                message = str(data.get("error_message") or MSG_SIGNUP_ERROR)
                self._settled = True
                self._cancel_sync_timer()
                self._move(ERROR, message)
            else:
                return

        self._emit_error(message, PATH_AUTOMATED, cancelled=cancelled)

    def _sync_expired(self, attempt: int) -> None:
        with self._lock:
            if not self._live(attempt) or self._phase != SYNCING:
                return
            self._settled = True
            self._sync_timer = None
            self._move(ERROR, MSG_SYNC_TIMEOUT)
            path = self._path
        self._emit_error(MSG_SYNC_TIMEOUT, path)

    def reset(self) -> None:
        """Operator "Try Again": any phase -> idle, status text cleared."""
        with self._lock:
            if self._detached:
                return
            self._cancel_sync_timer()
            self._settled = True
            if self._phase != IDLE:
                self._move(IDLE, "")
            self._status_text = ""

    def detach(self) -> None:
        """View unmounted: late continuations become no-ops."""
        with self._lock:
            self._detached = True
            self._settled = True
            self._cancel_sync_timer()
