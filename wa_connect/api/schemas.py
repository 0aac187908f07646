from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

Mode = Literal["loading", "automated", "manual", "syncing", "success", "error"]
Phase = Literal["idle", "connecting", "syncing", "success", "error"]


class ManualConnectRequest(BaseModel):
    # Blank values are allowed through so the form's own validation reports them.
    phone_number_id: str = ""
    access_token: str = ""
    business_account_id: Optional[str] = None


class ManualToggleRequest(BaseModel):
    manual: bool


class CrossOriginMessage(BaseModel):
    origin: str
    # Raw window message; only JSON text is decoded, anything else is dropped
    data: Any = None


class LoginCallbackRequest(BaseModel):
    authResponse: Optional[Dict[str, Any]] = None
    status: Optional[str] = None


class OnboardingSnapshot(BaseModel):
    org_id: int
    mounted: bool
    mode: Optional[Mode] = None
    phase: Optional[Phase] = None
    status_text: str = ""
    attempt: int = 0
    has_embedded_signup: bool = False
    sdk_ready: bool = False
    connect_enabled: bool = False
    can_toggle_automated: bool = False
    form_error: Optional[str] = None
    scripts: List[str] = Field(default_factory=list)
    login_params: Optional[Dict[str, Any]] = None
    last_result: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None


class SDKLoadedResponse(BaseModel):
    initialized: bool
    snapshot: OnboardingSnapshot
