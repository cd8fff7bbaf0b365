"""
Explicit pull-based completion streams.

A ``CompletionStream`` is lazy (the backend call is issued on the first pull),
finite and consumed exactly once. Abandoning it early is an explicit
operation (``aclose``); partial content already observed stands.
"""

from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from ..exceptions import LLMError
from ..models.contracts import (
    AssistantMessage,
    LLMChoice,
    LLMResponse,
    LLMStreamChunk,
    LLMToolCall,
    LLMUsage,
)
from ..models.enums import FinishReason
from ..utils.error_handler import exception_message
from ..utils.logging import get_logger

logger = get_logger(__name__)

StreamOpener = Callable[[], Awaitable[AsyncIterator[Any]]]
ChunkNormalizer = Callable[[Any], LLMStreamChunk]


class CompletionStream:
    """
    Single-consumer sequence of ``LLMStreamChunk``.

    Example:
        async with client.stream(request) as stream:
            async for chunk in stream:
                print(chunk.choices[0].delta.content or "", end="")

    ``next_chunk()`` returns ``None`` once the sequence ends. Pulling again
    after the end, or after ``aclose()``, raises ``RuntimeError``.
    """

    def __init__(self, opener: StreamOpener, normalize: ChunkNormalizer, model: str = ""):
        self._opener = opener
        self._normalize = normalize
        self._model = model
        self._source: Optional[AsyncIterator[Any]] = None
        self._closed = False
        self._exhausted = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    async def next_chunk(self) -> Optional[LLMStreamChunk]:
        """
        Pull the next chunk.

        Returns:
            The next chunk, or None when the backend sequence has ended

        Raises:
            RuntimeError: If the stream was closed or already exhausted
            LLMError: If the backend fails while opening or streaming
        """
        if self._closed:
            raise RuntimeError("Completion stream is closed")
        if self._exhausted:
            raise RuntimeError("Completion stream is exhausted and cannot be restarted")

        try:
            if self._source is None:
                source = await self._opener()
                self._source = source.__aiter__()
            raw = await self._source.__anext__()
        except StopAsyncIteration:
            self._exhausted = True
            await self._release()
            return None
        except LLMError:
            await self.aclose()
            raise
        except Exception as e:
            await self.aclose()
            raise LLMError(
                f"LLM stream failed: {exception_message(e)}",
                details={"model": self._model, "error_type": type(e).__name__},
                status_code=getattr(e, "status_code", None),
            ) from e

        return self._normalize(raw)

    async def aclose(self) -> None:
        """Abandon the stream and release the backend connection. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._release()

    async def _release(self) -> None:
        source, self._source = self._source, None
        closer = getattr(source, "aclose", None)
        if closer is not None:
            try:
                await closer()
            except Exception as e:
                # Release failures must not mask the consumer's own outcome
                logger.warning("llm_stream_close_failed", error=exception_message(e))

    def __aiter__(self) -> "CompletionStream":
        if self._closed or self._exhausted:
            raise RuntimeError("Completion stream cannot be iterated again")
        return self

    async def __anext__(self) -> LLMStreamChunk:
        chunk = await self.next_chunk()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    async def __aenter__(self) -> "CompletionStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class StreamAccumulator:
    """
    Folds streaming chunks into a complete ``LLMResponse``.

    Content deltas are concatenated; tool-call fragments are assembled by
    their index; the last reported finish reason and usage win.
    """

    def __init__(self) -> None:
        self.id = ""
        self.model = ""
        self._content: list[str] = []
        self._tool_calls: dict[int, dict[str, Any]] = {}
        self.finish_reason: Optional[FinishReason] = None
        self.usage: Optional[LLMUsage] = None

    def add(self, chunk: LLMStreamChunk) -> None:
        self.id = chunk.id or self.id
        self.model = chunk.model or self.model
        if chunk.usage is not None:
            self.usage = chunk.usage

        for choice in chunk.choices:
            delta = choice.delta
            if delta.content:
                self._content.append(delta.content)
            for fragment in delta.tool_calls:
                slot = self._tool_calls.setdefault(
                    fragment.index, {"id": "", "name": "", "arguments": []}
                )
                if fragment.id:
                    slot["id"] = fragment.id
                if fragment.name:
                    slot["name"] = fragment.name
                if fragment.arguments:
                    slot["arguments"].append(fragment.arguments)
            if choice.finish_reason is not None:
                self.finish_reason = choice.finish_reason

    @property
    def content(self) -> str:
        return "".join(self._content)

    def to_response(self) -> LLMResponse:
        tool_calls = tuple(
            LLMToolCall(id=slot["id"], name=slot["name"], arguments="".join(slot["arguments"]))
            for _, slot in sorted(self._tool_calls.items())
        )
        return LLMResponse(
            id=self.id,
            model=self.model,
            choices=[
                LLMChoice(
                    index=0,
                    message=AssistantMessage(content=self.content, tool_calls=tool_calls),
                    finish_reason=self.finish_reason or FinishReason.STOP,
                )
            ],
            usage=self.usage or LLMUsage(),
        )
