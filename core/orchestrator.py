"""
Chat Orchestrator - Tool-Calling Loop

Implements the bounded ask-model / dispatch-tools cycle:
1. Build the conversation (user context, history, question)
2. Ask the model with the role's tools
3. If it requests functions: record the calls, dispatch them in emission
   order, record the responses, and ask again
4. If it answers in text: sanitize and finish
5. If the iteration budget runs out while the model still requests
   functions: ask once more for a summary without tools (fallback)

All state lives in an OrchestrationState created per question.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from config import FALLBACK_INSTRUCTION, FALLBACK_PROMPT, FUNCTION_CALLING_INSTRUCTION
from .capabilities import CapabilityRegistry
from .conversation import Conversation, ConversationBuilder, FunctionCall
from .dispatcher import ToolDispatcher, ToolResult
from .errors import ModelUnavailableError
from .sanitizer import ResponseSanitizer

logger = logging.getLogger(__name__)

# generate_fn(contents=..., tools=..., system_instruction=..., tool_mode=...)
# must return an object with ``text`` and ``function_calls``.
GenerateFn = Callable[..., Any]


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class OrchestrationStatus(Enum):
    """Orchestration loop state."""
    AWAIT_MODEL = "await_model"
    DISPATCH_TOOLS = "dispatch_tools"
    FALLBACK = "fallback"
    DONE = "done"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class OrchestrationState:
    """
    State of one question's run through the loop.

    Never shared between requests; discarded once the answer is produced.
    """
    conversation: Conversation
    max_iterations: int
    role: Optional[str] = None
    iteration_count: int = 0
    accumulated_results: List[ToolResult] = field(default_factory=list)
    status: OrchestrationStatus = OrchestrationStatus.AWAIT_MODEL

    # Results
    final_response: str = ""
    used_fallback: bool = False
    error_message: Optional[str] = None

    # Metadata
    start_time: float = field(default_factory=time.time)
    total_execution_time: float = 0.0

    @property
    def answered(self) -> bool:
        return self.status == OrchestrationStatus.DONE and bool(self.final_response)

    def add_results(self, results: Sequence[ToolResult]) -> None:
        self.accumulated_results.extend(results)

    def get_execution_summary(self) -> Dict[str, Any]:
        """Get a summary of the execution."""
        return {
            "status": self.status.value,
            "iterations": self.iteration_count,
            "num_tool_calls": len(self.accumulated_results),
            "tools_used": sorted({r.name for r in self.accumulated_results}),
            "used_fallback": self.used_fallback,
            "had_errors": any(not r.success for r in self.accumulated_results),
            "execution_time": self.total_execution_time,
        }


# ============================================================================
# ORCHESTRATOR
# ============================================================================

class ChatOrchestrator:
    """
    Runs the tool-calling loop for one question at a time.

    The orchestrator itself holds only read-only collaborators, so one
    instance can serve concurrent questions.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        dispatcher: ToolDispatcher,
        generate_fn: GenerateFn,
        sanitizer: Optional[ResponseSanitizer] = None,
        max_iterations: int = 5,
        builder: Optional[ConversationBuilder] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            registry: Capability registry used to scope tools by role
            dispatcher: Executes function calls
            generate_fn: The "ask the model" boundary
            sanitizer: Output filter (defaults to one over the registry names)
            max_iterations: Maximum dispatch rounds before the fallback
            builder: Conversation builder
        """
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations < 1:
            raise ValueError(f"max_iterations must be an integer greater than zero, got {max_iterations!r}")

        self.registry = registry
        self.dispatcher = dispatcher
        self.generate_fn = generate_fn
        self.sanitizer = sanitizer or ResponseSanitizer(registry.names())
        self.max_iterations = max_iterations
        self.builder = builder or ConversationBuilder()

    def run(
        self,
        user_context: Optional[Mapping[str, Any]],
        session_history: Optional[Sequence[Mapping[str, Any]]],
        question: str,
        role: Optional[str],
    ) -> OrchestrationState:
        """
        Answer one question.

        Args:
            user_context: Snapshot of the current user
            session_history: Prior turns, oldest first
            question: The user's question
            role: Requesting user's role; decides the available tools

        Returns:
            Final OrchestrationState; ``status`` is DONE with a sanitized
            ``final_response``, or EMPTY when no answer could be produced

        Raises:
            ModelUnavailableError: If the model could not be reached
        """
        state = OrchestrationState(
            conversation=self.builder.build(user_context, session_history, question),
            max_iterations=self.max_iterations,
            role=getattr(role, "value", role),
        )
        tools = self.registry.to_function_declarations(role)
        allowed = {d["name"] for d in tools}

        logger.info(f"🤖 Answering question for role={state.role} with {len(tools)} tool(s)")

        try:
            while state.iteration_count < self.max_iterations:
                state.status = OrchestrationStatus.AWAIT_MODEL
                response = self._ask_model(state.conversation, tools, FUNCTION_CALLING_INSTRUCTION)

                if not response.function_calls:
                    logger.info("✅ No more tools needed")
                    return self._finish(state, response.text)

                state.status = OrchestrationStatus.DISPATCH_TOOLS
                self._dispatch(state, response.function_calls, allowed)

            logger.warning(f"⚠️  Reached max iterations ({self.max_iterations}), summarizing")
            state.status = OrchestrationStatus.FALLBACK
            state.used_fallback = True
            return self._finish(state, self._fallback(state, tools))

        except ModelUnavailableError as e:
            logger.error(f"❌ Model unavailable: {e}")
            state.status = OrchestrationStatus.ERROR
            state.error_message = str(e)
            state.total_execution_time = time.time() - state.start_time
            raise

    # ------------------------------------------------------------------

    def _ask_model(self, conversation: Conversation, tools: List[Dict[str, Any]], instruction: str, tool_mode: str = "AUTO"):
        return self.generate_fn(
            contents=conversation.to_contents(),
            tools=tools,
            system_instruction=instruction,
            tool_mode=tool_mode,
        )

    def _dispatch(self, state: OrchestrationState, calls: Sequence[FunctionCall], allowed) -> None:
        calls = list(calls)
        logger.info(f"🔧 Iteration {state.iteration_count + 1}: {[c.name for c in calls]}")

        state.conversation = self.builder.with_function_calls(state.conversation, calls)
        results = self.dispatcher.execute_many(calls, allowed=allowed)
        state.conversation = self.builder.with_function_responses(state.conversation, results)
        state.add_results(results)
        state.iteration_count += 1

        for result in results:
            if not result.success:
                logger.warning(f"⚠️  Tool {result.name} returned an error to the model")

    def _fallback(self, state: OrchestrationState, tools: List[Dict[str, Any]]) -> str:
        """One last tool-free request; failures and silence both give ''."""
        contents = state.conversation.to_contents()
        contents[-1]["parts"].append({"text": FALLBACK_PROMPT})

        try:
            response = self.generate_fn(
                contents=contents,
                tools=tools,
                system_instruction=FALLBACK_INSTRUCTION,
                tool_mode="NONE",
            )
        except ModelUnavailableError as e:
            logger.error(f"❌ Fallback summarization failed: {e}")
            state.error_message = str(e)
            return ""

        if response.function_calls:
            logger.warning("⚠️  Model requested tools during fallback; ignoring them")
        return response.text or ""

    def _finish(self, state: OrchestrationState, text: Optional[str]) -> OrchestrationState:
        state.final_response = self.sanitizer.format(text or "")
        state.status = OrchestrationStatus.DONE if state.final_response else OrchestrationStatus.EMPTY
        state.total_execution_time = time.time() - state.start_time

        if state.status == OrchestrationStatus.EMPTY:
            logger.warning("⚠️  No answer could be produced")
        else:
            logger.info(
                f"✅ Answer ready after {state.iteration_count} iteration(s), "
                f"{len(state.accumulated_results)} tool call(s)"
            )
        return state
