"""LLM service for MultiBuild.

Provides LangChain/OpenAI integration for the AI advisory. Groq serves an
OpenAI-compatible API, so ChatOpenAI is pointed at its base URL.
"""

from typing import Dict, Any, Optional, List
import structlog
from langchain_openai import ChatOpenAI
from langchain_core.messages import BaseMessage

from config.settings import settings
from config.errors import MultiBuildError, ErrorCode

logger = structlog.get_logger()

# Values shipped in example .env files
PLACEHOLDER_KEYS = frozenset({"", "your_groq_api_key_here", "changeme"})

_AUTH_MARKERS = ("401", "403", "unauthorized", "invalid api key", "invalid_api_key", "authentication")
_NETWORK_MARKERS = ("connection", "timeout", "timed out", "network", "unreachable", "name resolution")


class LLMService:
    """Service for LLM operations using LangChain.

    Provides a wrapper around ChatOpenAI with token tracking
    and error handling. A service without an API key is valid but
    unconfigured: ``generate`` raises LLM_NOT_CONFIGURED.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: Optional[int] = None
    ):
        """Initialize LLMService.

        Args:
            model: Model name (default from settings).
            temperature: Temperature (default from settings).
            api_key: Groq API key (default from settings, may be absent).
            base_url: OpenAI-compatible endpoint (default from settings).
            max_tokens: Default response token limit.
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.base_url = base_url or settings.llm_base_url
        self.max_tokens = max_tokens or settings.llm_max_tokens

        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def is_configured(self) -> bool:
        """True when a usable API key is present."""
        return bool(self.api_key) and self.api_key.strip() not in PLACEHOLDER_KEYS

    @property
    def client(self) -> ChatOpenAI:
        """Get LangChain ChatOpenAI client (lazy initialization).

        Raises:
            MultiBuildError: If no API key is configured.
        """
        if not self.is_configured:
            raise MultiBuildError(
                code=ErrorCode.LLM_NOT_CONFIGURED,
                message="No API key configured for the AI advisory"
            )
        if self._client is None:
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key,
                base_url=self.base_url,
                max_tokens=self.max_tokens
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all calls."""
        return self._total_tokens_used

    async def generate(
        self,
        messages: List[BaseMessage],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response from the LLM.

        Args:
            messages: List of LangChain messages.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.

        Raises:
            MultiBuildError: If the service is unconfigured or the call fails.
        """
        client = self.client

        try:
            kwargs = {}
            if max_tokens:
                kwargs["max_tokens"] = max_tokens

            response = await client.ainvoke(messages, **kwargs)

            # Track token usage if available
            tokens_used = 0
            if hasattr(response, "response_metadata"):
                usage = response.response_metadata.get("token_usage", {})
                tokens_used = usage.get("total_tokens", 0)
                self._total_tokens_used += tokens_used

            logger.info(
                "llm_generated",
                model=self.model,
                tokens_used=tokens_used,
                content_length=len(response.content)
            )

            return {
                "content": response.content,
                "tokens_used": tokens_used
            }

        except Exception as e:
            raise self._map_error(e)

    def _map_error(self, error: Exception) -> MultiBuildError:
        error_msg = str(error)
        lowered = error_msg.lower()
        details = {"original_error": error_msg, "model": self.model}

        if "rate_limit" in lowered or "rate limit" in lowered or "429" in lowered:
            return MultiBuildError(
                code=ErrorCode.LLM_RATE_LIMIT,
                message="LLM rate limit exceeded",
                details=details
            )
        if "context_length" in lowered or "maximum context" in lowered:
            return MultiBuildError(
                code=ErrorCode.LLM_CONTEXT_TOO_LONG,
                message="Input too long for model context",
                details=details
            )
        if any(marker in lowered for marker in _AUTH_MARKERS):
            return MultiBuildError(
                code=ErrorCode.LLM_AUTH_ERROR,
                message="LLM rejected the API key",
                details=details
            )
        if isinstance(error, (ConnectionError, TimeoutError)) or any(m in lowered for m in _NETWORK_MARKERS):
            return MultiBuildError(
                code=ErrorCode.LLM_NETWORK_ERROR,
                message="Could not reach the LLM service",
                details=details
            )
        return MultiBuildError(
            code=ErrorCode.LLM_ERROR,
            message=f"LLM generation failed: {error_msg}",
            details=details
        )
