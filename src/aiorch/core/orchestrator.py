"""
Orchestrator: the top-level entry point for one user turn.

Context Assembler -> Prompt Builder -> Tool Loop -> persist response.

Reads run as the AI actor (fresh request id per run); the assistant message is
appended through the chat collaborator as the system actor. Expected failures
come back as ``Result`` errors; only infrastructure defects raise.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncIterator
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import LLMError, OrchestrationCancelled, ValidationError
from ..llm.client import LLMClient
from ..models.actor import AI_ACTOR, ActorContext
from ..models.context import AIContext
from ..models.contracts import PromptBuilderInput, PromptBuilderOutput
from ..models.enums import ErrorCode
from ..models.result import Result
from ..models.schemas import (
    AIResponse,
    DoneEvent,
    ErrorEvent,
    MessageCompleteEvent,
    MessageDeltaEvent,
    MessageStartEvent,
    OrchestratorInput,
    OrchestratorResult,
    StreamEvent,
    ToolCompleteEvent,
    ToolStartEvent,
)
from ..tools.executor import ToolExecutor
from ..tools.mcp import create_mcp_client
from ..tools.workflow import create_workflow_client
from ..utils.error_handler import ErrorHandler
from ..utils.logging import bind_request_id, orchestrator_logger, unbind_request_id
from .config import OrchestratorConfig, Settings, get_settings
from .context_assembler import ContextAssembler
from .prompt_builder import PromptBuilder
from .tool_loop import ToolLoop, ToolLoopContext, ToolLoopResult

OrchestratorRequest = Union[OrchestratorInput, dict[str, Any]]


def _validation_message(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in e['loc']) or 'input'}: {e['msg']}"
        for e in error.errors()
    )


class Orchestrator:
    """
    Runs the full generation pipeline for a chat turn.

    Example:
        async with Orchestrator.from_settings(services) as orchestrator:
            result = await orchestrator.run(
                {"user_message": "What is 2+2?", "chat_id": chat_id, "user_id": user_id}
            )
        if result.success:
            print(result.data.content)
    """

    def __init__(
        self,
        llm_client: LLMClient,
        tool_executor: ToolExecutor,
        assembler: ContextAssembler,
        config: Optional[OrchestratorConfig] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        self.llm = llm_client
        self.executor = tool_executor
        self.assembler = assembler
        self.config = config or OrchestratorConfig()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.logger = orchestrator_logger

    @classmethod
    def from_settings(
        cls,
        services: Any,
        settings: Optional[Settings] = None,
        llm_client: Optional[LLMClient] = None,
        tool_executor: Optional[ToolExecutor] = None,
    ) -> "Orchestrator":
        """
        Wire an orchestrator from settings and one object implementing every
        collaborator interface.

        The LLM client and tool executor are built from settings unless given.
        """
        settings = settings or get_settings()
        llm_client = llm_client or LLMClient.from_settings(settings)
        if tool_executor is None:
            tool_executor = ToolExecutor.with_builtin_tools(
                mcp_client=create_mcp_client(settings.mcp_servers),
                workflow_client=create_workflow_client(
                    settings.workflow_base_url, settings.workflow_webhook_secret
                ),
                default_timeout=settings.tool_call_timeout,
            )
        return cls(
            llm_client=llm_client,
            tool_executor=tool_executor,
            assembler=ContextAssembler.from_services(services, settings),
            config=settings.orchestrator_config(),
        )

    async def aclose(self) -> None:
        """Release the tool executor's remote clients."""
        await self.executor.aclose()

    async def __aenter__(self) -> "Orchestrator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # -- pipeline steps ---------------------------------------------------

    def _prepare(self, request: OrchestratorRequest) -> tuple[OrchestratorInput, OrchestratorConfig]:
        """
        Validate the request and merge its overrides over the base config.

        Raises:
            ValidationError: On malformed input or invalid overrides
        """
        try:
            if not isinstance(request, OrchestratorInput):
                request = OrchestratorInput.model_validate(request)
            config = self.config.with_overrides(request.config_overrides)
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e), details={"errors": e.error_count()})
        return request, config

    def _build_prompt(
        self, context: AIContext, request: OrchestratorInput, config: OrchestratorConfig
    ) -> tuple[PromptBuilderOutput, list[str]]:
        with ErrorHandler.log_duration("prompt_build", log_level="debug"):
            prompt = self.prompt_builder.build(
                PromptBuilderInput.from_context(context, request.user_message)
            )
        warnings = []
        if prompt.estimated_tokens > config.max_input_tokens:
            self.logger.log_event(
                "prompt_over_budget",
                level="warning",
                estimated_tokens=prompt.estimated_tokens,
                max_input_tokens=config.max_input_tokens,
            )
            warnings.append(
                f"Prompt estimate {prompt.estimated_tokens} tokens exceeds "
                f"max_input_tokens {config.max_input_tokens}"
            )
        return prompt, warnings

    async def _run_loop(
        self,
        prompt: PromptBuilderOutput,
        request: OrchestratorInput,
        config: OrchestratorConfig,
        actor: ActorContext,
        cancel_event: Optional[asyncio.Event],
    ) -> ToolLoopResult:
        loop = ToolLoop(self.llm, self.executor, config)
        return await loop.run(
            prompt.messages,
            prompt.tools,
            ToolLoopContext(
                user_id=request.user_id,
                chat_id=request.chat_id,
                request_id=actor.request_id,
            ),
            cancel_event=cancel_event,
        )

    async def _persist(
        self, actor: ActorContext, chat_id: str, result: OrchestratorResult
    ) -> Optional[str]:
        """Persist the assistant message; returns a warning on failure."""
        persisted = await self.assembler.persist_response(actor, chat_id, AIResponse.from_result(result))
        if persisted.success:
            result.message_id = persisted.data.id
            return None
        self.logger.log_event(
            "response_persist_failed",
            level="warning",
            chat_id=chat_id,
            code=persisted.code,
            error=persisted.error.message,
        )
        return f"Response not persisted: {persisted.error.message}"

    async def _pipeline(
        self,
        request: OrchestratorInput,
        config: OrchestratorConfig,
        actor: ActorContext,
        cancel_event: Optional[asyncio.Event],
    ) -> Result[OrchestratorResult]:
        context_result = await self.assembler.build_context(
            actor, request.chat_id, request.user_message, user_id=request.user_id
        )
        if not context_result.success:
            return Result.from_error(context_result.error)

        prompt, warnings = self._build_prompt(context_result.data, request, config)
        loop_result = await self._run_loop(prompt, request, config, actor, cancel_event)

        result = OrchestratorResult(
            content=loop_result.content,
            model=loop_result.model,
            usage=loop_result.usage,
            iterations=loop_result.iterations,
            tool_calls=loop_result.tool_calls,
            stopped_reason=loop_result.stopped_reason,
        )
        persist_warning = await self._persist(actor, request.chat_id, result)

        outcome = Result.ok(result)
        for warning in [*context_result.warnings, *warnings]:
            outcome.add_warning(warning)
        if persist_warning:
            outcome.add_warning(persist_warning)
        return outcome

    # -- public API -------------------------------------------------------

    async def run(
        self,
        request: OrchestratorRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[OrchestratorResult]:
        """
        Run one orchestration turn.

        Args:
            request: ``OrchestratorInput`` or a dict of its fields
            cancel_event: Optional signal checked between tool-loop iterations

        Returns:
            Result with the OrchestratorResult. Failure codes:
            ``VALIDATION_ERROR``, the context assembler's hard failure
            (``NOT_FOUND``, ``PERMISSION_DENIED``), ``LLM_ERROR``,
            ``TIMEOUT`` and ``CANCELLED``.
        """
        try:
            request, config = self._prepare(request)
        except ValidationError as e:
            self.logger.log_event("orchestration_rejected", level="warning", error=e.message)
            return Result.err(ErrorCode.VALIDATION_ERROR, e.message, e.details)

        actor = AI_ACTOR.with_request_id(f"orch-{uuid.uuid4().hex}")
        bind_request_id(actor.request_id)
        start = time.perf_counter()
        self.logger.log_operation_start(
            "orchestration", {"chat_id": request.chat_id, "model": config.model}
        )

        try:
            outcome = await asyncio.wait_for(
                self._pipeline(request, config, actor, cancel_event),
                timeout=config.total_timeout,
            )
        except asyncio.TimeoutError:
            self.logger.log_event(
                "orchestration_timeout",
                level="warning",
                chat_id=request.chat_id,
                total_timeout=config.total_timeout,
            )
            return Result.err(
                ErrorCode.TIMEOUT,
                f"Orchestration exceeded total timeout of {config.total_timeout:g}s",
                {"total_timeout": config.total_timeout},
            )
        except (LLMError, OrchestrationCancelled) as e:
            self.logger.log_operation_error("orchestration", e, {"chat_id": request.chat_id})
            return ErrorHandler.result_from_exception(e)
        finally:
            unbind_request_id()

        duration_ms = (time.perf_counter() - start) * 1000
        if outcome.success:
            self.logger.log_operation_complete(
                "orchestration",
                duration_ms=duration_ms,
                details={
                    "iterations": outcome.data.iterations,
                    "tool_calls": len(outcome.data.tool_calls),
                    "stopped_reason": outcome.data.stopped_reason.value,
                    "total_tokens": outcome.data.usage.total_tokens,
                },
            )
        return outcome

    async def stream(
        self,
        request: OrchestratorRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Run one turn and report it as a sequence of stream events.

        The tool loop runs to completion before tool, delta and completion
        events are emitted. The sequence always ends with a ``done`` event.
        """
        try:
            request, config = self._prepare(request)
        except ValidationError as e:
            yield ErrorEvent(code=ErrorCode.VALIDATION_ERROR.value, message=e.message)
            yield DoneEvent()
            return

        actor = AI_ACTOR.with_request_id(f"orch-stream-{uuid.uuid4().hex}")
        bind_request_id(actor.request_id)
        try:
            context_result = await self.assembler.build_context(
                actor, request.chat_id, request.user_message, user_id=request.user_id
            )
            if not context_result.success:
                yield ErrorEvent(code=context_result.code, message=context_result.error.message)
                yield DoneEvent()
                return

            prompt, _ = self._build_prompt(context_result.data, request, config)
            message_id = f"msg-{uuid.uuid4().hex[:12]}"
            yield MessageStartEvent(message_id=message_id)

            try:
                loop_result = await asyncio.wait_for(
                    self._run_loop(prompt, request, config, actor, cancel_event),
                    timeout=config.total_timeout,
                )
            except asyncio.TimeoutError:
                self.logger.log_event(
                    "orchestration_timeout",
                    level="warning",
                    chat_id=request.chat_id,
                    total_timeout=config.total_timeout,
                )
                yield ErrorEvent(
                    code=ErrorCode.TIMEOUT.value,
                    message=f"Orchestration exceeded total timeout of {config.total_timeout:g}s",
                )
            except (LLMError, OrchestrationCancelled) as e:
                self.logger.log_operation_error("orchestration_stream", e, {"chat_id": request.chat_id})
                yield ErrorEvent(code=e.error_code.value, message=e.message)
            else:
                for record in loop_result.tool_calls:
                    yield ToolStartEvent(
                        tool_call_id=record.tool_call_id,
                        tool_name=record.tool_name,
                        input=record.input,
                    )
                    yield ToolCompleteEvent(
                        tool_call_id=record.tool_call_id,
                        tool_name=record.tool_name,
                        output=record.output,
                        status=record.status,
                        duration_ms=record.duration_ms,
                    )
                yield MessageDeltaEvent(content=loop_result.content)
                yield MessageCompleteEvent(
                    message_id=message_id,
                    model=loop_result.model,
                    input_tokens=loop_result.usage.prompt_tokens,
                    output_tokens=loop_result.usage.completion_tokens,
                    stopped_reason=loop_result.stopped_reason,
                )
                await self._persist(
                    actor,
                    request.chat_id,
                    OrchestratorResult(
                        content=loop_result.content,
                        model=loop_result.model,
                        usage=loop_result.usage,
                        iterations=loop_result.iterations,
                        tool_calls=loop_result.tool_calls,
                        stopped_reason=loop_result.stopped_reason,
                    ),
                )

            yield DoneEvent()
        finally:
            unbind_request_id()
