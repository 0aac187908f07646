"""
SDK bootstrap
-------------
The third-party client library is a page-wide global: one script resource,
one init hook, one client object per page runtime. ``SDKBootstrapper`` wraps
that global behind an idempotent ``ensure_loaded`` that hands back a readiness
signal callers wait on, instead of probing the global themselves.
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from wa_connect.settings import settings
from wa_connect.observability.logging import log
from wa_connect.onboarding.listener import MessageBus


class SDKNotReadyError(RuntimeError):
    pass


class SDKReadiness:
    """One-way readiness flag: False -> True, never reset."""

    def __init__(self):
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def add_done_callback(self, fn: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(fn)
                return
        fn()

    def set(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            fn()


class PageRuntime:
    """
    Globals of one operator page: the SDK client slot, the pending init hook,
    the injected script resources and the cross-origin message channel.
    """

    def __init__(self):
        self.sdk_client: Any = None
        self.init_hook: Optional[Callable[[], None]] = None
        self.scripts: List[Dict[str, Any]] = []
        self.messages = MessageBus()
        self.lock = threading.RLock()

    def has_script(self, src: str) -> bool:
        return any(s.get("src") == src for s in self.scripts)

    def inject_script(self, src: str, **attrs) -> None:
        with self.lock:
            self.scripts.append({"src": src, **attrs})

    def script_loaded(self, client: Any) -> bool:
        """
        The loaded script publishes its client object, then invokes the init hook.
        Returns False when no hook was registered.
        """
        with self.lock:
            self.sdk_client = client
            hook, self.init_hook = self.init_hook, None
        if hook is None:
            return False
        hook()
        return True


class SDKBootstrapper:
    def __init__(self, runtime: PageRuntime, *, script_url: Optional[str] = None, version: Optional[str] = None):
        self.runtime = runtime
        self.script_url = script_url or settings.SDK_SCRIPT_URL
        self.version = version or settings.SDK_VERSION
        self.readiness = SDKReadiness()

    def ensure_loaded(self, app_id: str) -> SDKReadiness:
        rt = self.runtime
        with rt.lock:
            if self.readiness.is_ready:
                return self.readiness

            if rt.sdk_client is not None:
                self.readiness.set()
                log(event="sdk_ready", source="existing_client")
                return self.readiness

            def _init():
                rt.sdk_client.init(appId=app_id, cookie=True, xfbml=True, version=self.version)
                self.readiness.set()
                log(event="sdk_ready", source="init_hook", version=self.version)

            rt.init_hook = _init

            if not rt.has_script(self.script_url):
                rt.inject_script(self.script_url, async_=True, defer=True, crossorigin="anonymous")
                log(event="sdk_script_injected", src=self.script_url)

        return self.readiness

    @property
    def client(self) -> Any:
        if not self.readiness.is_ready or self.runtime.sdk_client is None:
            raise SDKNotReadyError("SDK client is not initialized")
        return self.runtime.sdk_client


def build_login_params(config_id: str) -> Dict[str, Any]:
    return {
        "config_id": config_id,
        "response_type": "code",
        "override_default_response_type": True,
        "extras": {
            "setup": {},
            "featureType": settings.SIGNUP_FEATURE_TYPE,
            "sessionInfoVersion": settings.SESSION_INFO_VERSION,
        },
    }


class RelayedSDKClient:
    """
    Server-side stand-in for the browser SDK object. ``login`` parks the
    callback until the page relays the popup's response via ``complete_login``.
    """

    def __init__(self):
        self.init_params: Dict[str, Any] = {}
        self.pending_login: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    def init(self, **params) -> None:
        self.init_params = dict(params)

    def login(self, callback: Callable[[Dict[str, Any]], None], params: Dict[str, Any]) -> None:
        with self._lock:
            self.pending_login = {"callback": callback, "params": params}

    @property
    def login_params(self) -> Optional[Dict[str, Any]]:
        pending = self.pending_login
        return pending["params"] if pending else None

    def complete_login(self, response: Optional[Dict[str, Any]]) -> bool:
        with self._lock:
            pending, self.pending_login = self.pending_login, None
        if pending is None:
            return False
        pending["callback"](response or {})
        return True
