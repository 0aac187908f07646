from wa_connect.onboarding.models import SDKConfig
from wa_connect.observability.logging import log


def load_sdk_config(client) -> SDKConfig:
    """
    Fetch the public SDK identifiers once.

    Absence of configuration is an expected deployment state (self-hosted, no
    registered app), so every failure degrades to an empty SDKConfig and the
    view falls through to manual credential entry.
    """
    try:
        data = client.get_public_config()
    except Exception as e:
        log(event="sdk_config_load_failed", errorType=type(e).__name__, error=str(e)[:300])
        return SDKConfig()

    config = SDKConfig.from_public_config(data)
    log(
        event="sdk_config_loaded",
        hasAppId=bool(config.client_app_id),
        hasConfigId=bool(config.signup_config_id),
        hasEmbeddedSignup=config.has_embedded_signup,
    )
    return config
