import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")

    # Backend service (organizations, credentials, token exchange)
    BACKEND_API_URL: str = os.getenv("BACKEND_API_URL", "http://localhost:8000/api")
    BACKEND_TIMEOUT_SEC: float = float(os.getenv("BACKEND_TIMEOUT_SEC", "10"))

    # Third-party SDK
    SDK_SCRIPT_URL: str = os.getenv("SDK_SCRIPT_URL", "https://connect.facebook.net/en_US/sdk.js")
    SDK_VERSION: str = os.getenv("SDK_VERSION", "v21.0")
    SIGNUP_FEATURE_TYPE: str = os.getenv("SIGNUP_FEATURE_TYPE", "whatsapp_business_app_onboarding")
    SESSION_INFO_VERSION: str = os.getenv("SESSION_INFO_VERSION", "3")

    # Cross-origin status messages are accepted only from these origins
    TRUSTED_ORIGINS: str = os.getenv(
        "TRUSTED_ORIGINS", "https://www.facebook.com,https://web.facebook.com"
    )

    # 0 keeps the coexistence "syncing" wait open until the operator leaves
    SYNC_TIMEOUT_SEC: float = float(os.getenv("SYNC_TIMEOUT_SEC", "0"))

    # Observability
    LOG_IGNORED_MESSAGES: bool = os.getenv("LOG_IGNORED_MESSAGES", "false").lower() == "true"
    ENABLE_SECRET_REDACTION: bool = os.getenv("ENABLE_SECRET_REDACTION", "true").lower() == "true"
    ENABLE_METRICS: bool = os.getenv("ENABLE_METRICS", "true").lower() == "true"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    def trusted_origins(self) -> tuple:
        return tuple(x.strip() for x in self.TRUSTED_ORIGINS.split(",") if x.strip())

settings = Settings()
