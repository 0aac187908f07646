from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from wa_connect.api.auth import require_api_key, operator_user_id
from wa_connect.api.schemas import (
    CrossOriginMessage,
    LoginCallbackRequest,
    ManualConnectRequest,
    ManualToggleRequest,
    OnboardingSnapshot,
    SDKLoadedResponse,
)
from wa_connect.onboarding.sessions import OnboardingSession, sessions
from wa_connect.onboarding.state_machine import InvalidTransition

router = APIRouter(prefix="/onboarding", tags=["onboarding"], dependencies=[Depends(require_api_key)])


def _mounted_session(org_id: int) -> OnboardingSession:
    session = sessions.get(org_id)
    if session is None or not session.mounted:
        raise HTTPException(status_code=404, detail="Onboarding view is not mounted for this organization")
    return session


@router.post("/{org_id}/mount", response_model=OnboardingSnapshot)
async def mount(org_id: int, user_id: Optional[str] = Depends(operator_user_id)):
    # Config load is a network round-trip; keep it off the event loop.
    session = await run_in_threadpool(sessions.mount, org_id, user_id)
    return session.snapshot()


@router.get("/{org_id}", response_model=OnboardingSnapshot)
def get_snapshot(org_id: int):
    session = sessions.get(org_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown organization")
    return session.snapshot()


@router.delete("/{org_id}", response_model=OnboardingSnapshot)
def unmount(org_id: int):
    session = _mounted_session(org_id)
    sessions.unmount(org_id)
    return session.snapshot()


@router.post("/{org_id}/sdk-ready", response_model=SDKLoadedResponse)
def sdk_ready(org_id: int):
    session = _mounted_session(org_id)
    initialized = sessions.sdk_loaded(org_id)
    return {"initialized": initialized, "snapshot": session.snapshot()}


@router.post("/{org_id}/connect", response_model=OnboardingSnapshot)
async def connect(org_id: int):
    session = _mounted_session(org_id)
    try:
        await run_in_threadpool(session.view.connect)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.snapshot()


@router.post("/{org_id}/login-callback", response_model=OnboardingSnapshot)
async def login_callback(org_id: int, payload: LoginCallbackRequest):
    session = _mounted_session(org_id)
    sdk_client = session.runtime.sdk_client
    if sdk_client is None or not hasattr(sdk_client, "complete_login"):
        raise HTTPException(status_code=409, detail="SDK is not loaded")
    delivered = await run_in_threadpool(sdk_client.complete_login, payload.model_dump(exclude_none=True))
    if not delivered:
        raise HTTPException(status_code=409, detail="No login in progress")
    return session.snapshot()


@router.post("/{org_id}/message", response_model=OnboardingSnapshot)
def relay_message(org_id: int, message: CrossOriginMessage):
    # Unrelated or malformed traffic is accepted and dropped silently.
    session = _mounted_session(org_id)
    session.runtime.messages.publish(message.origin, message.data)
    return session.snapshot()


@router.post("/{org_id}/manual", response_model=OnboardingSnapshot)
async def submit_manual(org_id: int, form: ManualConnectRequest):
    session = _mounted_session(org_id)
    try:
        await run_in_threadpool(
            session.view.submit_manual,
            form.phone_number_id,
            form.access_token,
            form.business_account_id or "",
        )
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.snapshot()


@router.post("/{org_id}/manual/toggle", response_model=OnboardingSnapshot)
def toggle_manual(org_id: int, body: ManualToggleRequest):
    session = _mounted_session(org_id)
    try:
        if body.manual:
            session.view.show_manual()
        else:
            session.view.show_automated()
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.snapshot()


@router.post("/{org_id}/reset", response_model=OnboardingSnapshot)
def reset(org_id: int):
    session = _mounted_session(org_id)
    session.view.reset()
    return session.snapshot()
