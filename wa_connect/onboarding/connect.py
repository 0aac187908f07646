from typing import Any, Callable, Dict, Iterable, Optional

from wa_connect.observability.logging import log
from wa_connect.onboarding.config_loader import load_sdk_config
from wa_connect.onboarding.listener import CrossOriginListener
from wa_connect.onboarding.manual_form import ManualFallbackForm
from wa_connect.onboarding.models import ConnectionPhase, LoginResult, OnboardingResult, SDKConfig
from wa_connect.onboarding.sdk import PageRuntime, SDKBootstrapper, build_login_params
from wa_connect.onboarding.state_machine import ConnectionStateMachine, InvalidTransition

MSG_SDK_NOT_LOADED = "Facebook SDK not loaded. Please refresh the page."
MSG_NOT_CONFIGURED = "WhatsApp Embedded Signup not configured."

MODE_LOADING = "loading"
MODE_AUTOMATED = "automated"
MODE_MANUAL = "manual"


class WhatsAppConnect:
    """
    Onboarding view for one organization.

    mount() loads the public config, bootstraps the SDK when both identifiers
    are present and opens the cross-origin subscription; unmount() closes the
    subscription and detaches the state machine so late continuations are
    dropped.
    """

    def __init__(
        self,
        org_id: int,
        client,
        runtime: PageRuntime,
        on_success: Callable[[OnboardingResult], None],
        on_error: Callable[[str], None],
        *,
        trusted_origins: Optional[Iterable[str]] = None,
        sync_timeout_sec: Optional[float] = None,
    ):
        self.org_id = org_id
        self.client = client
        self.runtime = runtime
        self.on_error = on_error

        self.config = SDKConfig()
        self.config_loading = True
        self.mounted = False
        self.show_manual_fallback = False
        self.form = ManualFallbackForm()

        self.bootstrapper = SDKBootstrapper(runtime)
        self.machine = ConnectionStateMachine(
            org_id, client, on_success, on_error, sync_timeout_sec=sync_timeout_sec
        )
        self.listener = CrossOriginListener(self.machine, runtime.messages, trusted_origins)

    # ---- lifetime ----

    def mount(self) -> "WhatsAppConnect":
        if self.mounted:
            return self
        self.mounted = True
        self.listener.__enter__()

        self.config = load_sdk_config(self.client)
        if self.config.has_embedded_signup:
            self.bootstrapper.ensure_loaded(self.config.client_app_id)
        self.config_loading = False

        log(
            event="onboarding_view_mounted",
            orgId=self.org_id,
            hasEmbeddedSignup=self.has_embedded_signup,
            sdkReady=self.sdk_ready,
        )
        return self

    def unmount(self) -> None:
        if not self.mounted:
            return
        self.listener.__exit__(None, None, None)
        self.machine.detach()
        self.mounted = False
        log(event="onboarding_view_unmounted", orgId=self.org_id, phase=self.phase.value)

    def __enter__(self) -> "WhatsAppConnect":
        return self.mount()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    # ---- derived state ----

    @property
    def phase(self) -> ConnectionPhase:
        return self.machine.phase

    @property
    def status_text(self) -> str:
        return self.machine.status_text

    @property
    def has_embedded_signup(self) -> bool:
        return self.config.has_embedded_signup

    @property
    def sdk_ready(self) -> bool:
        return self.bootstrapper.readiness.is_ready

    @property
    def manual_form_visible(self) -> bool:
        return self.show_manual_fallback or not self.has_embedded_signup

    @property
    def can_toggle_automated(self) -> bool:
        return self.has_embedded_signup

    @property
    def connect_enabled(self) -> bool:
        return self.sdk_ready and self.phase == ConnectionPhase.IDLE and not self.manual_form_visible

    @property
    def mode(self) -> str:
        if self.config_loading:
            return MODE_LOADING
        if self.phase in (ConnectionPhase.SUCCESS, ConnectionPhase.SYNCING, ConnectionPhase.ERROR):
            return self.phase.value
        if self.manual_form_visible:
            return MODE_MANUAL
        return MODE_AUTOMATED

    # ---- operator actions ----

    def connect(self) -> bool:
        """Automated connect. Returns False when the SDK path is unavailable."""
        if not self.mounted:
            raise InvalidTransition("view is unmounted")
        if self.show_manual_fallback:
            raise InvalidTransition("manual entry is open")
        if not self.sdk_ready or self.runtime.sdk_client is None:
            self.on_error(MSG_SDK_NOT_LOADED)
            return False
        if not self.config.signup_config_id:
            self.on_error(MSG_NOT_CONFIGURED)
            return False

        sdk_client = self.bootstrapper.client
        params = build_login_params(self.config.signup_config_id)

        def open_login(done: Callable[[LoginResult], None]) -> None:
            sdk_client.login(lambda response: done(LoginResult.from_sdk_response(response)), params)

        self.machine.begin_automated(open_login)
        return True

    def submit_manual(self, phone_number_id: str, access_token: str, business_account_id: str = "") -> bool:
        if not self.mounted:
            raise InvalidTransition("view is unmounted")
        if not self.manual_form_visible:
            raise InvalidTransition("manual entry is not open")
        self.form.fill(phone_number_id, access_token, business_account_id)
        return self.form.submit(self.machine, self.on_error)

    def show_manual(self) -> None:
        self.show_manual_fallback = True

    def show_automated(self) -> None:
        if not self.has_embedded_signup:
            raise InvalidTransition("embedded signup is not configured")
        self.show_manual_fallback = False

    def reset(self) -> None:
        self.machine.reset()
        self.show_manual_fallback = False
        self.form.error = None

    def snapshot(self) -> Dict[str, Any]:
        sdk_client = self.runtime.sdk_client
        return {
            "org_id": self.org_id,
            "mounted": self.mounted,
            "mode": self.mode,
            "phase": self.phase.value,
            "status_text": self.status_text,
            "attempt": self.machine.attempt,
            "has_embedded_signup": self.has_embedded_signup,
            "sdk_ready": self.sdk_ready,
            "connect_enabled": self.connect_enabled,
            "can_toggle_automated": self.can_toggle_automated,
            "form_error": self.form.error,
            "scripts": [s.get("src") for s in self.runtime.scripts],
            "login_params": getattr(sdk_client, "login_params", None),
        }
