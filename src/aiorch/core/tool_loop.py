"""
Tool Loop: the iterative completion / tool-execution state machine.

    AWAITING_COMPLETION --(finish_reason != tool_calls)--> DONE
    AWAITING_COMPLETION --(tool_calls)--> EXECUTING_TOOLS --> AWAITING_COMPLETION

All tool calls of one assistant turn run concurrently; their ``tool``
messages are appended in the order the calls were requested. Tool failures
are fed back to the model as message content. LLM client errors propagate.

Bounds, checked after each tool batch:

* ``max_tool_calls``: a batch is never truncated; once the cumulative count
  reaches the limit no further completion is requested.
* ``max_iterations``: completion round-trips. Reaching it stops the loop.

When both hold, ``max_tool_calls`` is reported.
"""

import asyncio
import json
import time
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..exceptions import LLMError, OrchestrationCancelled
from ..llm.client import LLMClient
from ..models.contracts import (
    AssistantMessage,
    LLMMessage,
    LLMRequest,
    LLMToolCall,
    LLMToolDefinition,
    LLMUsage,
    ToolCallRecord,
    ToolExecutionContext,
    ToolExecutionResult,
    ToolMessage,
)
from ..models.enums import FinishReason, StoppedReason, ToolCallStatus
from ..tools.executor import ToolExecutor
from ..utils.error_handler import exception_message
from ..utils.logging import tool_loop_logger
from .config import OrchestratorConfig


class ToolLoopContext(BaseModel):
    """Identity forwarded to every tool call of the run."""

    user_id: str
    chat_id: str
    request_id: str


class ToolLoopResult(BaseModel):
    content: str
    model: str
    iterations: int
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)
    stopped_reason: StoppedReason = StoppedReason.COMPLETED
    usage: LLMUsage = Field(default_factory=LLMUsage)
    messages: list[LLMMessage] = Field(
        default_factory=list, description="Full message list sent on the last completion"
    )


def parse_tool_arguments(raw: str) -> dict[str, Any]:
    """
    Decode a raw tool-call argument payload.

    Empty payloads become ``{}``; non-object JSON is wrapped as ``{"value": ...}``.

    Raises:
        json.JSONDecodeError: If the payload is not valid JSON
    """
    if not raw or not raw.strip():
        return {}
    value = json.loads(raw)
    return value if isinstance(value, dict) else {"value": value}


class ToolLoop:
    """
    Drives completions and tool batches until the model answers or a bound hits.

    Example:
        loop = ToolLoop(llm_client, executor, config)
        result = await loop.run(prompt.messages, prompt.tools, context)
    """

    def __init__(
        self,
        llm_client: LLMClient,
        tool_executor: ToolExecutor,
        config: OrchestratorConfig,
    ):
        self.llm = llm_client
        self.executor = tool_executor
        self.config = config
        self.logger = tool_loop_logger

    def _request(self, messages: list[LLMMessage], tools: list[LLMToolDefinition]) -> LLMRequest:
        return LLMRequest(
            model=self.config.model,
            messages=list(messages),
            tools=tools or None,
            max_tokens=self.config.max_output_tokens,
            temperature=self.config.temperature,
        )

    async def _execute_call(
        self, call: LLMToolCall, context: ToolExecutionContext
    ) -> tuple[ToolCallRecord, ToolMessage]:
        start = time.perf_counter()
        try:
            arguments = parse_tool_arguments(call.arguments)
        except json.JSONDecodeError as e:
            result = ToolExecutionResult(
                success=False, error_message=f"Invalid tool arguments: {e.msg}"
            )
            arguments = {}
        else:
            try:
                result = await self.executor.execute(call.name, arguments, context)
            except Exception as e:
                # Executor defects are isolated to this call
                result = ToolExecutionResult(
                    success=False,
                    error_message=exception_message(e),
                    duration_ms=(time.perf_counter() - start) * 1000,
                )

        try:
            content = result.to_tool_content()
        except (TypeError, ValueError) as e:
            result = ToolExecutionResult(
                success=False,
                error_message=f"Tool output could not be serialized: {exception_message(e)}",
                duration_ms=result.duration_ms,
            )
            content = result.to_tool_content()

        record = ToolCallRecord(
            tool_call_id=call.id,
            tool_name=call.name,
            input=arguments,
            output=result.output if result.success else None,
            status=ToolCallStatus.SUCCESS if result.success else ToolCallStatus.FAILURE,
            error_message=result.error_message,
            duration_ms=result.duration_ms,
        )
        self.logger.log_event(
            "tool_call_completed",
            tool_call_id=call.id,
            tool_name=call.name,
            status=record.status.value,
            duration_ms=round(record.duration_ms, 2),
        )
        return record, ToolMessage(content=content, tool_call_id=call.id)

    async def run(
        self,
        messages: list[LLMMessage],
        tools: list[LLMToolDefinition],
        context: ToolLoopContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ToolLoopResult:
        """
        Run the loop to completion or to a bound.

        Args:
            messages: Prompt messages from the prompt builder
            tools: Tool schemas offered to the model
            context: Identity forwarded to tool calls
            cancel_event: Optional signal checked between iterations

        Returns:
            ToolLoopResult with final content, records and summed usage

        Raises:
            LLMError: On completion backend failure or an empty choice list
            OrchestrationCancelled: If ``cancel_event`` is set between iterations
        """
        conversation: list[LLMMessage] = list(messages)
        records: list[ToolCallRecord] = []
        usage = LLMUsage()
        iterations = 0
        model = self.config.model
        content = ""
        tool_context = ToolExecutionContext(
            user_id=context.user_id,
            chat_id=context.chat_id,
            request_id=context.request_id,
            timeout=self.config.tool_call_timeout,
        )

        def finish(reason: StoppedReason) -> ToolLoopResult:
            self.logger.log_event(
                "tool_loop_stopped",
                stopped_reason=reason.value,
                iterations=iterations,
                tool_calls=len(records),
                total_tokens=usage.total_tokens,
            )
            return ToolLoopResult(
                content=content,
                model=model,
                iterations=iterations,
                tool_calls=records,
                stopped_reason=reason,
                usage=usage,
                messages=conversation,
            )

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise OrchestrationCancelled(iterations=iterations, tool_calls=len(records))

            response = await self.llm.complete(self._request(conversation, tools))
            iterations += 1
            usage = usage + response.usage

            if not response.choices:
                raise LLMError("No choice returned from LLM", details={"model": response.model})

            choice = response.choices[0]
            assistant = choice.message
            content = assistant.content
            model = response.model or model

            self.logger.log_event(
                "tool_loop_iteration",
                iteration=iterations,
                finish_reason=choice.finish_reason.value,
                tool_calls_requested=len(assistant.tool_calls),
            )

            if choice.finish_reason != FinishReason.TOOL_CALLS or not assistant.tool_calls:
                return finish(StoppedReason.COMPLETED)

            if len(records) >= self.config.max_tool_calls:
                return finish(StoppedReason.MAX_TOOL_CALLS)

            conversation.append(assistant)
            outcomes = await asyncio.gather(
                *(self._execute_call(call, tool_context) for call in assistant.tool_calls)
            )
            for record, tool_message in outcomes:
                records.append(record)
                conversation.append(tool_message)

            if len(records) >= self.config.max_tool_calls:
                return finish(StoppedReason.MAX_TOOL_CALLS)
            if iterations >= self.config.max_iterations:
                return finish(StoppedReason.MAX_ITERATIONS)
