"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any, Sequence
from groq import AsyncGroq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from models.conversation import ChatMessage
from config import GROQ_API_KEY, LLM_MODEL, LLM_TEMPERATURE, LLM_MAX_TOKENS

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for chat completions against the Groq API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Model identifier used for every request (defaults to LLM_MODEL)
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model or LLM_MODEL
        self.client = AsyncGroq(api_key=self.api_key)
        logger.info(f"LLMClient initialized (model={self.model})")

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        max_tokens: int = LLM_MAX_TOKENS
    ) -> LLMResponse:
        """
        Generate a reply for an ordered list of role-tagged messages.

        Args:
            messages: system, history and user entries in chronological order
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with the first choice's text, token counts and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        model = self.model
        start_time = time.time()

        try:
            logger.debug(f"Requesting completion: model={model}, messages={len(messages)}")

            response = await self.client.chat.completions.create(
                model=model,
                messages=[message.to_dict() for message in messages],
                max_tokens=max_tokens,
                temperature=LLM_TEMPERATURE
            )

            latency_ms = int((time.time() - start_time) * 1000)
            text = response.choices[0].message.content if response.choices else None

        except RateLimitError as e:
            raise self._error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e
            )
        except AuthenticationError as e:
            raise self._error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )
        except APITimeoutError as e:
            raise self._error("TIMEOUT_ERROR", "Request timed out.", model, start_time, e)
        except APIError as e:
            raise self._error("API_ERROR", f"Groq API error: {e}", model, start_time, e)
        except Exception as e:
            raise self._error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {e}",
                model, start_time, e,
                error_type=type(e).__name__
            )

        if not text or not text.strip():
            raise self._error(
                "EMPTY_RESPONSE",
                "Completion returned no content.",
                model, start_time, None
            )

        usage = response.usage
        tokens_input = usage.prompt_tokens if usage else 0
        tokens_output = usage.completion_tokens if usage else 0

        logger.info(
            f"Generated response: model={model}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )

        return LLMResponse(
            text=text,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=model
        )

    @staticmethod
    def _error(
        code: str,
        message: str,
        model: str,
        start_time: float,
        cause: Optional[Exception],
        **extra: Any
    ) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        details: Dict[str, Any] = {"model": model, "latency_ms": latency_ms, **extra}
        if cause is not None:
            details["original_error"] = str(cause)
        if code == "RATE_LIMIT_ERROR":
            details["retry_after"] = 60

        error = LLMError(code=code, message=message, details=details)
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={cause}",
            exc_info=cause is not None,
            extra={"error_code": code}
        )
        return LLMClientError(error)
