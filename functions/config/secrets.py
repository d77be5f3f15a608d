"""Unified secret access for MultiBuild functions.

In production: Uses Google Cloud Secret Manager
In emulator/local runs: Reads environment variables

Usage:
    from config.secrets import get_llm_api_key, get_secret

    api_key = get_llm_api_key()
    custom_secret = get_secret('MY_SECRET_NAME')
"""

import os
from functools import lru_cache
from typing import Optional

import structlog

logger = structlog.get_logger()

LLM_API_KEY_SECRET = "GROQ_API_KEY"


def is_emulator_mode() -> bool:
    """Check if running in Firebase emulator mode or a local dev server."""
    return (
        os.environ.get('FUNCTIONS_EMULATOR') == 'true' or
        os.environ.get('FIRESTORE_EMULATOR_HOST') is not None or
        os.environ.get('USE_FIREBASE_EMULATORS', 'false').lower() == 'true'
    )


def get_secret(secret_id: str) -> Optional[str]:
    """
    Get secret from Secret Manager (production) or environment (local).

    Args:
        secret_id: The name of the secret (e.g., 'GROQ_API_KEY')

    Returns:
        The secret value, or None if not found. A missing secret is not an
        error: callers treat it as "feature disabled".
    """
    if is_emulator_mode():
        value = os.environ.get(secret_id)
        if value:
            logger.debug("secret_loaded", secret_id=secret_id, source="environment")
        else:
            logger.info("secret_not_set", secret_id=secret_id)
        return value

    # An explicit environment value wins over Secret Manager
    value = os.environ.get(secret_id)
    if value:
        return value

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        project_id = os.environ.get('GCLOUD_PROJECT') or os.environ.get('GOOGLE_CLOUD_PROJECT', 'multibuild-dev')
        name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"

        response = client.access_secret_version(request={"name": name})
        value = response.payload.data.decode("UTF-8")
        logger.debug("secret_loaded", secret_id=secret_id, source="secret_manager")
        return value

    except Exception as e:
        logger.warning("secret_manager_lookup_failed", secret_id=secret_id, error=str(e))
        return None


@lru_cache(maxsize=1)
def get_llm_api_key() -> Optional[str]:
    """Get the advisory LLM (Groq) API key from secrets."""
    return get_secret(LLM_API_KEY_SECRET)


def clear_secret_cache() -> None:
    """Clear cached secrets. Useful for testing or when secrets are rotated."""
    get_llm_api_key.cache_clear()
