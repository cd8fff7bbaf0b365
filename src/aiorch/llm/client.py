"""
LLM Client - uniform interface to one completion backend via LiteLLM.

Provides ``complete`` (single response) and ``stream`` (pull-based chunk
sequence). Backend payloads are normalized: missing content becomes ``""``,
missing usage becomes zero counters, unknown finish reasons become ``stop``.
Failures are raised as ``LLMError`` and never retried here.
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import litellm

from ..core.config import Settings
from ..exceptions import ConfigurationError, LLMError
from ..models.contracts import (
    AssistantMessage,
    LLMChoice,
    LLMRequest,
    LLMResponse,
    LLMStreamChoice,
    LLMStreamChunk,
    LLMStreamDelta,
    LLMToolCall,
    LLMToolCallDelta,
    LLMUsage,
)
from ..models.enums import FinishReason, MessageRole
from ..utils.error_handler import exception_message
from ..utils.logging import get_logger
from .stream import CompletionStream

logger = get_logger(__name__)

CompletionBackend = Callable[..., Awaitable[Any]]

_FINISH_REASONS = {reason.value: reason for reason in FinishReason}
# Legacy OpenAI finish reason for function calling
_FINISH_REASONS["function_call"] = FinishReason.TOOL_CALLS


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a LiteLLM object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def _finish_reason(raw: Any) -> FinishReason:
    return _FINISH_REASONS.get(str(raw), FinishReason.STOP) if raw else FinishReason.STOP


def _usage(raw: Any) -> LLMUsage:
    prompt = int(_field(raw, "prompt_tokens", 0))
    completion = int(_field(raw, "completion_tokens", 0))
    total = int(_field(raw, "total_tokens", prompt + completion))
    return LLMUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


class LLMClient:
    """
    Async client for one OpenAI-compatible completion endpoint.

    Example:
        client = LLMClient(api_key="sk-...")
        response = await client.complete(LLMRequest(
            model="openrouter/anthropic/claude-3.5-sonnet",
            messages=[UserMessage(content="Hello")],
        ))
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        site_url: Optional[str] = None,
        site_name: Optional[str] = None,
        timeout: float = 60.0,
        backend: Optional[CompletionBackend] = None,
    ):
        """
        Initialize LLM client.

        Args:
            api_key: Backend API key (required unless ``backend`` is injected)
            api_base: Backend base URL
            site_url: Attribution header ``HTTP-Referer``
            site_name: Attribution header ``X-Title``
            timeout: Request timeout in seconds
            backend: Replacement for ``litellm.acompletion`` (tests, adapters)

        Raises:
            ConfigurationError: If no API key is configured for the real backend
        """
        if backend is None and not api_key:
            raise ConfigurationError(
                "LLM API key is required", field="llm_api_key"
            )
        self.api_key = api_key
        self.api_base = api_base
        self.timeout = timeout
        self._backend: CompletionBackend = backend or litellm.acompletion

        self.extra_headers: Dict[str, str] = {}
        if site_url:
            self.extra_headers["HTTP-Referer"] = site_url
        if site_name:
            self.extra_headers["X-Title"] = site_name

    @classmethod
    def from_settings(
        cls, settings: Settings, backend: Optional[CompletionBackend] = None
    ) -> "LLMClient":
        return cls(
            api_key=settings.llm_api_key,
            api_base=settings.llm_api_base,
            site_url=settings.llm_site_url,
            site_name=settings.llm_site_name,
            timeout=settings.llm_timeout,
            backend=backend,
        )

    def _build_kwargs(self, request: LLMRequest, stream: bool = False) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": request.model,
            "messages": request.wire_messages(),
            "timeout": self.timeout,
        }
        if request.tools:
            kwargs["tools"] = [tool.to_wire() for tool in request.tools]
            if request.tool_choice is not None:
                kwargs["tool_choice"] = request.tool_choice
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = dict(self.extra_headers)
        if stream:
            kwargs["stream"] = True
            kwargs["stream_options"] = {"include_usage": True}
        return kwargs

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """
        Request a single completion.

        Args:
            request: Validated completion request

        Returns:
            Normalized LLMResponse

        Raises:
            LLMError: On any backend failure or malformed response
        """
        start_time = time.perf_counter()
        try:
            raw = await self._backend(**self._build_kwargs(request))
            response = self._normalize_response(raw, request.model)
        except LLMError:
            raise
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            logger.error(
                "llm_completion_failed",
                model=request.model,
                error_type=type(e).__name__,
                status_code=status_code,
            )
            raise LLMError(
                f"LLM completion failed: {exception_message(e)}",
                details={"model": request.model, "error_type": type(e).__name__},
                status_code=status_code,
            ) from e

        logger.debug(
            "llm_completion_received",
            model=response.model,
            finish_reason=response.choices[0].finish_reason.value if response.choices else None,
            total_tokens=response.usage.total_tokens,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return response

    def stream(self, request: LLMRequest) -> CompletionStream:
        """
        Open a lazy completion stream.

        No backend call is made until the first chunk is pulled.
        """
        kwargs = self._build_kwargs(request, stream=True)

        async def opener():
            return await self._backend(**kwargs)

        return CompletionStream(opener, self._normalize_chunk, model=request.model)

    def _normalize_response(self, raw: Any, requested_model: str) -> LLMResponse:
        raw_choices: List[Any] = list(_field(raw, "choices", []) or [])
        choices = []
        for position, raw_choice in enumerate(raw_choices):
            message = _field(raw_choice, "message")
            tool_calls = tuple(
                LLMToolCall(
                    id=str(_field(tc, "id", "")),
                    name=str(_field(_field(tc, "function"), "name", "")),
                    arguments=str(_field(_field(tc, "function"), "arguments", "")),
                )
                for tc in (_field(message, "tool_calls", []) or [])
            )
            choices.append(
                LLMChoice(
                    index=int(_field(raw_choice, "index", position)),
                    message=AssistantMessage(
                        content=str(_field(message, "content", "")),
                        tool_calls=tool_calls,
                    ),
                    finish_reason=_finish_reason(_field(raw_choice, "finish_reason")),
                )
            )

        return LLMResponse(
            id=str(_field(raw, "id", "")),
            model=str(_field(raw, "model", requested_model)),
            choices=choices,
            usage=_usage(_field(raw, "usage")),
        )

    def _normalize_chunk(self, raw: Any) -> LLMStreamChunk:
        choices = []
        for position, raw_choice in enumerate(_field(raw, "choices", []) or []):
            delta = _field(raw_choice, "delta")
            role = _field(delta, "role")
            fragments = tuple(
                LLMToolCallDelta(
                    index=int(_field(tc, "index", i)),
                    id=str(_field(tc, "id", "")),
                    name=str(_field(_field(tc, "function"), "name", "")),
                    arguments=str(_field(_field(tc, "function"), "arguments", "")),
                )
                for i, tc in enumerate(_field(delta, "tool_calls", []) or [])
            )
            raw_finish = _field(raw_choice, "finish_reason")
            choices.append(
                LLMStreamChoice(
                    index=int(_field(raw_choice, "index", position)),
                    delta=LLMStreamDelta(
                        role=MessageRole(role) if role in MessageRole._value2member_map_ else None,
                        content=_field(delta, "content"),
                        tool_calls=fragments,
                    ),
                    finish_reason=_finish_reason(raw_finish) if raw_finish else None,
                )
            )

        raw_usage = _field(raw, "usage")
        return LLMStreamChunk(
            id=str(_field(raw, "id", "")),
            model=str(_field(raw, "model", "")),
            choices=choices,
            usage=_usage(raw_usage) if raw_usage is not None else None,
        )
