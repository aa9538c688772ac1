"""Reasoning engine: a bounded think → act → observe loop over tools."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from ..autonomy.gate import ActionContext
from ..config import ReasoningConfig
from ..errors import EmbeddingError, ProviderError, ToolError
from ..tools import ToolRegistry, ToolResult
from .models import (
    ReasoningContext,
    ReasoningResult,
    ReasoningStep,
    StepType,
    StopReason,
)
from .prompt import build_system_prompt, build_user_content, format_tool_result
from .provider import (
    CapabilityProvider,
    ProviderRequest,
    ProviderResponse,
    ToolCall,
    parse_tool_arguments,
)
from .stream import ReasoningStream

if TYPE_CHECKING:
    from ..autonomy import ActionLog, ConfirmationDecision, ConfirmationGate
    from ..memory import Memory, MemoryManager, MemoryWithScore
    from ..trace_logger import ReasoningTraceLogger

logger = logging.getLogger(__name__)

StepCallback = Callable[[ReasoningStep], None]
ConfirmationHandler = Callable[
    [str, dict[str, Any], "ConfirmationDecision"], Awaitable[bool]
]

FALLBACK_ANSWER = "Unable to generate a response."
SUMMARY_OBSERVATIONS = 3


def calculate_confidence(
    steps: list[ReasoningStep],
    tools_used: list[str],
    iteration_count: int,
) -> float:
    """Score how much the answer is backed by successful tool calls."""
    confidence = 0.5

    distinct_tools = len(set(tools_used))
    if distinct_tools >= 1:
        confidence += 0.2
    if distinct_tools >= 3:
        confidence += 0.1

    if iteration_count > 5:
        confidence -= 0.1

    observations = [s for s in steps if s.type is StepType.OBSERVATION]
    successful = sum(1 for s in observations if s.tool_result and s.tool_result.success)
    failed = len(observations) - successful
    if failed > successful:
        confidence -= 0.2

    return max(0.0, min(1.0, round(confidence, 10)))


def summarize_observations(steps: list[ReasoningStep]) -> str:
    """Join the last few successful observations for a degraded answer."""
    observations = [
        s.content
        for s in steps
        if s.type is StepType.OBSERVATION and s.tool_result and s.tool_result.success
    ][-SUMMARY_OBSERVATIONS:]

    if not observations:
        return "I couldn't gather sufficient information to provide a complete answer."
    return "\n\n".join(observations)


class _Trace:
    """Mutable state of a single invocation."""

    def __init__(self, publish: StepCallback | None) -> None:
        self.steps: list[ReasoningStep] = []
        self.tools_used: list[str] = []
        self.sources: list[str] = []
        self._publish = publish

    def add(self, step_type: StepType, content: str, **tool: Any) -> ReasoningStep:
        step = ReasoningStep(id=len(self.steps), type=step_type, content=content, **tool)
        self.steps.append(step)
        if self._publish is not None:
            self._publish(step)
        return step

    def record_tool(self, tool_name: str, result: ToolResult) -> None:
        if tool_name not in self.tools_used:
            self.tools_used.append(tool_name)
        source = f"Tool: {tool_name}"
        if result.success and source not in self.sources:
            self.sources.append(source)


class ReasoningEngine:
    """Multi-step reasoning over a capability provider and a tool registry.

    Each provider turn either requests tools, which are gated, executed,
    logged and fed back as observations, or returns the final answer. The
    loop is bounded by ``config.max_iterations``.
    """

    def __init__(
        self,
        provider: CapabilityProvider,
        registry: ToolRegistry,
        config: ReasoningConfig | None = None,
        memory: MemoryManager | None = None,
        gate: ConfirmationGate | None = None,
        action_log: ActionLog | None = None,
        confirm: ConfirmationHandler | None = None,
        trace_logger: ReasoningTraceLogger | None = None,
        on_step: StepCallback | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            provider: Capability provider for each turn.
            registry: Tools the provider may call.
            config: Iteration cap and timeouts.
            memory: Optional memory manager used for context and session-end learning.
            gate: Optional confirmation gate consulted before every tool call.
            action_log: Optional audit log receiving every execution attempt.
            confirm: Async handler asked to approve gated calls. Without one,
                gated calls are not executed.
            trace_logger: Optional per-session JSONL trace.
            on_step: Callback for every appended step.
        """
        self.provider = provider
        self.registry = registry
        self.config = config or ReasoningConfig()
        self.memory = memory
        self.gate = gate
        self.action_log = action_log
        self.confirm = confirm
        self.trace = trace_logger
        self.on_step = on_step

    async def reason(self, context: ReasoningContext) -> ReasoningResult:
        """Run the reasoning loop to completion."""
        return await self._run(context, self.on_step)

    def reason_stream(self, context: ReasoningContext) -> ReasoningStream:
        """Start the reasoning loop in a task and stream its steps.

        Must be called from a running event loop.
        """
        stream = ReasoningStream()

        def publish(step: ReasoningStep) -> None:
            if self.on_step is not None:
                self.on_step(step)
            stream.publish(step)

        stream.attach(asyncio.create_task(self._run(context, publish)))
        return stream

    async def on_session_end(self, turns: list[dict[str, Any]]) -> list[Memory]:
        """Hook called when a session ends to extract facts and preferences.

        Args:
            turns: The conversation messages to analyze.

        Returns:
            Facts stored as memories (empty if no memory manager or no facts).
        """
        if not self.memory:
            return []

        facts = await self.memory.extract_facts(turns)
        await self.memory.learn_preferences(turns)
        return facts

    async def _run(
        self, context: ReasoningContext, publish: StepCallback | None
    ) -> ReasoningResult:
        trace = _Trace(publish)
        session_id = context.session_id
        tool_schemas = self.registry.get_tools_schema()

        memories = await self._recall(context)
        memory_block = self.memory.format_for_context(memories) if memories else ""
        transcript: list[dict[str, Any]] = [
            *context.prior_turns,
            {
                "role": "user",
                "content": build_user_content(
                    context.query, [memory_block, *context.extra_context]
                ),
            },
        ]
        system_prompt = context.system_prompt or build_system_prompt(tool_schemas)

        if self.trace:
            self.trace.log_query(session_id, context.query, memories=len(memories))
        logger.debug(
            "Starting reasoning loop: query=%r tools=%d",
            context.query[:100], len(tool_schemas),
        )

        iteration_count = 0
        try:
            while iteration_count < self.config.max_iterations:
                iteration_count += 1

                if self.trace:
                    self.trace.log_provider_request(
                        session_id, iteration_count, len(transcript), len(tool_schemas)
                    )
                response = await self._call_provider(
                    ProviderRequest(system_prompt, transcript, tool_schemas)
                )
                if self.trace:
                    self.trace.log_provider_response(
                        session_id, bool(response.text), len(response.tool_calls)
                    )

                if response.tool_calls:
                    await self._act(trace, transcript, response, session_id)
                    continue

                final_answer = response.text or FALLBACK_ANSWER
                trace.add(StepType.ANSWER, final_answer)
                confidence = calculate_confidence(
                    trace.steps, trace.tools_used, iteration_count
                )
                logger.info(
                    "Reasoning completed: iterations=%d tools=%d steps=%d confidence=%.2f",
                    iteration_count, len(trace.tools_used), len(trace.steps), confidence,
                )
                return self._finish(
                    trace, session_id, final_answer, iteration_count,
                    confidence, StopReason.COMPLETE,
                )

        except ProviderError as e:
            logger.error("Reasoning failed: %s", e)
            if self.trace:
                self.trace.log_error(session_id, str(e), context="provider")
            error_answer = f"Error during reasoning: {e}"
            trace.add(StepType.ANSWER, error_answer)
            trace.sources.clear()
            return self._finish(
                trace, session_id, error_answer, iteration_count,
                0.0, StopReason.PROVIDER_ERROR,
            )

        logger.warning(
            "Max iterations reached: max=%d tools=%d",
            self.config.max_iterations, len(trace.tools_used),
        )
        timeout_answer = (
            "I've gathered information but need to stop here. Based on what I've found:\n\n"
            + summarize_observations(trace.steps)
        )
        trace.add(StepType.ANSWER, timeout_answer)
        return self._finish(
            trace, session_id, timeout_answer, iteration_count,
            0.5, StopReason.MAX_ITERATIONS,
        )

    def _finish(
        self,
        trace: _Trace,
        session_id: str,
        final_answer: str,
        iteration_count: int,
        confidence: float,
        stop_reason: StopReason,
    ) -> ReasoningResult:
        if self.trace:
            self.trace.log_answer(session_id, final_answer, confidence)
            self.trace.log_stop(
                session_id, stop_reason.value, iteration_count, len(trace.tools_used)
            )
        return ReasoningResult(
            steps=trace.steps,
            final_answer=final_answer,
            tools_used=list(trace.tools_used),
            iteration_count=iteration_count,
            confidence=confidence,
            sources=list(trace.sources),
            stop_reason=stop_reason,
        )

    async def _recall(self, context: ReasoningContext) -> list[MemoryWithScore]:
        """Recall memories relevant to the query, best effort."""
        if self.memory is None:
            return []
        try:
            return await self.memory.recall(context.query)
        except EmbeddingError as e:
            logger.warning("Memory recall failed, continuing without memory: %s", e)
            return []

    async def _call_provider(self, request: ProviderRequest) -> ProviderResponse:
        """Call the provider with a timeout, normalising every failure to ProviderError."""
        try:
            return await asyncio.wait_for(
                self.provider.complete(request),
                timeout=self.config.provider_timeout,
            )
        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Provider call timed out after {self.config.provider_timeout}s"
            ) from e
        except Exception as e:
            raise ProviderError(str(e) or type(e).__name__) from e

    async def _act(
        self,
        trace: _Trace,
        transcript: list[dict[str, Any]],
        response: ProviderResponse,
        session_id: str,
    ) -> None:
        """Execute one turn's tool calls and append their observations in issue order."""
        if response.text and response.text.strip():
            trace.add(StepType.THOUGHT, response.text)

        transcript.append({
            "role": "assistant",
            "content": response.text,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments_json},
                }
                for call in response.tool_calls
            ],
        })

        calls: list[tuple[ToolCall, dict[str, Any]]] = []
        for call in response.tool_calls:
            args = parse_tool_arguments(call.arguments_json)
            trace.add(
                StepType.ACTION,
                f"Calling {call.name}",
                tool_name=call.name,
                tool_args=args,
            )
            if self.trace:
                self.trace.log_tool_call(session_id, call.name, args, call.id)
            calls.append((call, args))

        outcomes = await asyncio.gather(
            *(self._execute(call, args, session_id) for call, args in calls)
        )

        for (call, _), (result, executed) in zip(calls, outcomes):
            if executed:
                trace.record_tool(call.name, result)
            trace.add(
                StepType.OBSERVATION,
                result.result,
                tool_name=call.name,
                tool_result=result,
            )
            transcript.append({
                "role": "tool",
                "tool_call_id": call.id,
                "content": format_tool_result(
                    call.name, result.success, result.result, result.error
                ),
            })

    async def _execute(
        self, call: ToolCall, args: dict[str, Any], session_id: str
    ) -> tuple[ToolResult, bool]:
        """Gate, run and log a single tool call.

        Returns:
            The tool result and whether the tool was actually executed.
        """
        if not await self._approved(call.name, args, session_id):
            return ToolResult.failure(
                f"{call.name} was not executed: user confirmation is required"
            ), False

        start_time = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self.registry.execute(call.name, args),
                timeout=self.config.tool_timeout,
            )
        except ToolError as e:
            result = ToolResult.failure(str(e))
        except asyncio.TimeoutError:
            result = ToolResult.failure(
                f"{call.name} timed out after {self.config.tool_timeout}s"
            )
        duration_ms = (time.perf_counter() - start_time) * 1000

        if self.action_log is not None:
            self.action_log.record(session_id, call.name, args, result, duration_ms)

        if self.trace:
            self.trace.log_tool_result(
                session_id,
                tool_name=call.name,
                success=result.success,
                output=result.result,
                error=result.error,
                tool_call_id=call.id,
                duration_ms=duration_ms,
            )
        return result, True

    async def _approved(self, tool_name: str, args: dict[str, Any], session_id: str) -> bool:
        """Consult the confirmation gate, asking the handler when required."""
        if self.gate is None:
            return True

        decision = self.gate.requires_confirmation(
            tool_name, args, ActionContext.from_arguments(args)
        )
        if not decision.required:
            return True

        approved = False
        if self.confirm is not None:
            try:
                approved = await self.confirm(tool_name, args, decision)
            except Exception:
                logger.exception("Confirmation handler failed for %s", tool_name)

        logger.info(
            "Confirmation for %s: %s (%s)",
            tool_name, "approved" if approved else "declined", decision.reason,
        )
        if self.trace:
            self.trace.log_confirmation(session_id, tool_name, approved, decision.reason)
        return approved
