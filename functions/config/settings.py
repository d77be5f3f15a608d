"""MultiBuild configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are loaded via Google Secret Manager (production) or environment variables (emulator).
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for non-secret configuration (emulator hosts, feature flags, etc.)
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: The advisory API key (GROQ_API_KEY) is accessed via the config.secrets
    module. The llm_api_key property delegates to it so a missing key simply
    disables AI analysis.
    """

    # LLM Configuration (non-secrets). Groq serves an OpenAI-compatible API.
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "llama-3.3-70b-versatile"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.7")))
    llm_base_url: str = field(default_factory=lambda: os.getenv("LLM_BASE_URL", "https://api.groq.com/openai/v1"))
    llm_max_tokens: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "1024")))

    # Firebase Configuration
    firebase_project_id: Optional[str] = field(default_factory=lambda: os.getenv("FIREBASE_PROJECT_ID"))
    use_firebase_emulators: bool = field(default_factory=lambda: _env_flag("USE_FIREBASE_EMULATORS", "false"))
    firestore_emulator_host: str = field(default_factory=lambda: os.getenv("FIRESTORE_EMULATOR_HOST", "localhost:8081"))

    # Session persistence
    session_backend: str = field(default_factory=lambda: os.getenv("SESSION_BACKEND", "memory"))
    session_history_limit: int = field(default_factory=lambda: int(os.getenv("SESSION_HISTORY_LIMIT", "50")))

    # Workflow Configuration
    confidence_threshold: float = field(default_factory=lambda: float(os.getenv("WORKFLOW_CONFIDENCE_THRESHOLD", "0.7")))
    auto_advance: bool = field(default_factory=lambda: _env_flag("WORKFLOW_AUTO_ADVANCE", "true"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Internal: cached secret value (use llm_api_key property instead)
    _llm_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def llm_api_key(self) -> Optional[str]:
        """Get the advisory LLM API key from Secret Manager or environment."""
        if self._llm_api_key is None:
            from config.secrets import get_llm_api_key
            self._llm_api_key = get_llm_api_key()
        return self._llm_api_key

    def validate(self) -> None:
        """Validate settings values.

        Raises:
            ValueError: If a setting is out of range.
        """
        if self.session_backend not in ("memory", "firestore"):
            raise ValueError(f"Unknown SESSION_BACKEND: {self.session_backend}")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("WORKFLOW_CONFIDENCE_THRESHOLD must be between 0 and 1")
        if self.session_history_limit < 2:
            raise ValueError("SESSION_HISTORY_LIMIT must keep at least one exchange")

    @property
    def is_emulator_mode(self) -> bool:
        """Check if running in emulator mode."""
        return self.use_firebase_emulators


# Singleton settings instance
settings = Settings()
