import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from wa_connect.backend.client import BackendClient
from wa_connect.onboarding.connect import WhatsAppConnect
from wa_connect.onboarding.models import OnboardingResult
from wa_connect.onboarding.sdk import PageRuntime, RelayedSDKClient
from wa_connect.utils.time import now_ms


@dataclass
class OnboardingSession:
    org_id: int
    runtime: PageRuntime = field(default_factory=PageRuntime)
    view: Optional[WhatsAppConnect] = None
    last_result: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None
    # outcome ledger: {"kind": "success"|"error", "atMs": ..., ...}
    outcomes: List[Dict[str, Any]] = field(default_factory=list)

    def record_success(self, result: OnboardingResult) -> None:
        self.last_result = result.to_dict()
        self.last_error = None
        self.outcomes.append({"kind": "success", "atMs": now_ms(), "result": self.last_result})

    def record_error(self, message: str) -> None:
        self.last_error = message
        self.outcomes.append({"kind": "error", "atMs": now_ms(), "message": message})

    @property
    def mounted(self) -> bool:
        return self.view is not None and self.view.mounted

    def snapshot(self) -> Dict[str, Any]:
        out = self.view.snapshot() if self.view is not None else {"org_id": self.org_id, "mounted": False}
        out["last_result"] = self.last_result
        out["last_error"] = self.last_error
        return out


class SessionRegistry:
    """
    One onboarding page per organization. The page runtime (SDK global, injected
    scripts) outlives view remounts; the view and its listener do not.
    """

    def __init__(self, client_factory: Optional[Callable[[Optional[str]], Any]] = None):
        self._sessions: Dict[int, OnboardingSession] = {}
        self._lock = threading.Lock()
        self.client_factory = client_factory or (lambda user_id: BackendClient(user_id=user_id))

    def get(self, org_id: int) -> Optional[OnboardingSession]:
        return self._sessions.get(org_id)

    def mount(self, org_id: int, user_id: Optional[str] = None) -> OnboardingSession:
        with self._lock:
            session = self._sessions.get(org_id)
            if session is None:
                session = OnboardingSession(org_id=org_id)
                self._sessions[org_id] = session
            if session.mounted:
                return session
            session.view = WhatsAppConnect(
                org_id,
                self.client_factory(user_id),
                session.runtime,
                on_success=session.record_success,
                on_error=session.record_error,
            )
        session.view.mount()
        return session

    def unmount(self, org_id: int) -> bool:
        session = self._sessions.get(org_id)
        if session is None or not session.mounted:
            return False
        session.view.unmount()
        return True

    def sdk_loaded(self, org_id: int) -> bool:
        """The page reports that the SDK script finished loading."""
        session = self._sessions.get(org_id)
        if session is None:
            return False
        rt = session.runtime
        return rt.script_loaded(rt.sdk_client or RelayedSDKClient())

    def clear(self) -> None:
        with self._lock:
            sessions, self._sessions = list(self._sessions.values()), {}
        for s in sessions:
            if s.mounted:
                s.view.unmount()


sessions = SessionRegistry()
