from fastapi import APIRouter, Depends, HTTPException
from wa_connect.api.auth import require_api_key
from wa_connect.onboarding.sessions import sessions
import wa_connect.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_api_key)])


@router.get("/metrics")
def get_metrics():
    """Onboarding counters and exchange latency percentiles."""
    try:
        return metrics.get_onboarding_snapshot()
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Metrics unavailable: {type(e).__name__}")


@router.get("/onboarding/{org_id}/timeline")
def get_onboarding_timeline(org_id: int):
    """Phase transitions and callback outcomes for the organization's page."""
    session = sessions.get(org_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown organization")
    transitions = []
    if session.view is not None:
        transitions = [{"from": a, "to": b} for a, b in session.view.machine.history]
    return {
        "orgId": org_id,
        "mounted": session.mounted,
        "transitions": transitions,
        "outcomes": list(session.outcomes),
    }
