from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional


class ConnectionPhase(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ConnectionPhase.SUCCESS, ConnectionPhase.ERROR)

    @property
    def in_flight(self) -> bool:
        return self in (ConnectionPhase.CONNECTING, ConnectionPhase.SYNCING)


# Envelope tag and event names on the cross-origin channel
SIGNUP_CHANNEL = "WA_EMBEDDED_SIGNUP"
EVENT_FINISH = "FINISH"
EVENT_FINISH_APP_ONBOARDING = "FINISH_APP_ONBOARDING"
EVENT_CANCEL = "CANCEL"
EVENT_ERROR = "ERROR"

# wire name -> internal event type
WIRE_EVENTS = {
    "FINISH": EVENT_FINISH,
    "FINISH_WHATSAPP_BUSINESS_APP_ONBOARDING": EVENT_FINISH_APP_ONBOARDING,
    "CANCEL": EVENT_CANCEL,
    "ERROR": EVENT_ERROR,
}


@dataclass(frozen=True)
class SDKConfig:
    client_app_id: str = ""
    signup_config_id: str = ""

    @property
    def has_embedded_signup(self) -> bool:
        return bool(self.client_app_id) and bool(self.signup_config_id)

    @classmethod
    def from_public_config(cls, data: Dict[str, Any]) -> "SDKConfig":
        if not isinstance(data, dict):
            return cls()
        return cls(
            client_app_id=str(data.get("facebook_app_id") or "").strip(),
            signup_config_id=str(data.get("facebook_config_id") or "").strip(),
        )


@dataclass(frozen=True)
class LoginResult:
    authorized: bool
    short_lived_token: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def from_sdk_response(cls, response: Optional[Dict[str, Any]]) -> "LoginResult":
        """
        Map the SDK login response ``{authResponse?: {accessToken, code?}, status}``.
        Only the presence of ``authResponse`` decides authorization.
        """
        auth = (response or {}).get("authResponse") if isinstance(response, dict) else None
        if not isinstance(auth, dict) or not auth:
            return cls(authorized=False)
        return cls(
            authorized=True,
            short_lived_token=auth.get("accessToken"),
            code=auth.get("code"),
        )


@dataclass(frozen=True)
class CrossOriginEvent:
    source_origin: str
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    channel: str = SIGNUP_CHANNEL


@dataclass(frozen=True)
class DurableCredentials:
    phone_number_id: str
    access_token: str
    business_account_id: Optional[str] = None

    def to_request(self) -> Dict[str, str]:
        body = {
            "phone_number_id": self.phone_number_id,
            "access_token": self.access_token,
        }
        if self.business_account_id:
            body["business_account_id"] = self.business_account_id
        return body


@dataclass(frozen=True)
class OnboardingResult:
    business_name: Optional[str] = None
    business_phone: Optional[str] = None
    webhook_url: Optional[str] = None
    webhook_verify_token: Optional[str] = None

    @classmethod
    def from_exchange(cls, data: Dict[str, Any]) -> "OnboardingResult":
        return cls(
            business_name=data.get("business_name"),
            business_phone=data.get("business_phone"),
            webhook_url=data.get("webhook_url"),
            webhook_verify_token=data.get("webhook_verify_token"),
        )

    @classmethod
    def from_manual_connect(cls, data: Dict[str, Any]) -> "OnboardingResult":
        # manual connect only reports the webhook wiring back to the operator
        return cls(
            webhook_url=data.get("webhook_url"),
            webhook_verify_token=data.get("webhook_verify_token"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}
