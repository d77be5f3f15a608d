"""MultiBuild configuration.

This package contains:
- settings: Environment variables and configuration
- secrets: Unified secret access (Secret Manager / environment)
- errors: Custom exceptions and error codes
"""

from config.settings import settings
from config.errors import MultiBuildError
from config.secrets import get_secret, get_llm_api_key

__all__ = [
    "settings",
    "MultiBuildError",
    "get_secret",
    "get_llm_api_key",
]
