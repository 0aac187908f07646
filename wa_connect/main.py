from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from wa_connect.api.routes import router
from wa_connect.api.admin_routes import router as admin_router
from wa_connect.settings import settings

app = FastAPI(title="WhatsApp Connect Onboarding API")

# The onboarding page runs in the operator's browser and relays SDK/window events here.
origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Onboarding API is running. Mount a view with POST /onboarding/{org_id}/mount.",
    }


@app.get("/health")
def health():
    return {"status": "ok"}


print(
    f"[boot] backend={settings.BACKEND_API_URL} "
    f"trusted_origins={len(settings.trusted_origins())} sync_timeout_sec={settings.SYNC_TIMEOUT_SEC}"
)
