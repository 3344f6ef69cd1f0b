"""
Tool Dispatcher

Resolves a model-emitted function call to its handler, runs it, and turns
the outcome into text the model can read. Unknown tools and handler
failures never escape: they become error text so the loop can continue.
The one exception is ModelUnavailableError (e.g. the knowledge base search
could not embed its query), which is fatal for the request.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Dict, List, Mapping, Optional, Sequence, Union

from .capabilities import ToolName
from .conversation import FunctionCall, serialize_result
from .errors import DomainError, ModelUnavailableError, ToolExecutionError, ToolResolutionError

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Any]

GENERIC_FAILURE = "the service did not respond as expected"


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class ToolResult:
    """
    Result from a tool execution.

    Attributes:
        name: Name of the tool that was called
        result: Serialized result, or the error text on failure
        success: Whether the tool executed successfully
        error: Safe error description if unsuccessful
        execution_time: Time taken to execute (seconds)
        metadata: Additional metadata about the execution
    """
    name: str
    result: str
    success: bool = True
    error: Optional[str] = None
    execution_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# DISPATCHER
# ============================================================================

class ToolDispatcher:
    """
    Static name → handler table with an explicit unknown-tool arm.

    Args:
        handlers: Mapping of ToolName to a callable taking the parsed args
        max_workers: Run a batch concurrently when greater than 1; results
            are always returned in emission order
    """

    def __init__(self, handlers: Mapping[Union[ToolName, str], Handler], max_workers: int = 1):
        self._handlers: Dict[ToolName, Handler] = {}
        for name, handler in handlers.items():
            tool = ToolName(name)
            self._handlers[tool] = handler
        self.max_workers = max(1, int(max_workers or 1))

    @property
    def tool_names(self) -> List[str]:
        return [t.value for t in self._handlers]

    def resolve(self, name: str, allowed: Optional[Collection[str]] = None) -> Handler:
        """
        Look up the handler for a function name.

        Args:
            name: Function name emitted by the model
            allowed: Names the requesting role may call; None allows all

        Raises:
            ToolResolutionError: If the name is not a registered or allowed tool
        """
        tool = ToolName.parse(name)
        if tool is None or tool not in self._handlers:
            raise ToolResolutionError(name)
        if allowed is not None and tool.value not in allowed:
            raise ToolResolutionError(name)
        return self._handlers[tool]

    def execute(self, call: FunctionCall, allowed: Optional[Collection[str]] = None) -> ToolResult:
        """
        Execute one function call.

        Args:
            call: The model's function call
            allowed: Names the requesting role may call; None allows all

        Returns:
            ToolResult whose ``result`` is always a string
        """
        start_time = time.time()
        args = dict(call.args or {})

        try:
            handler = self.resolve(call.name, allowed)
        except ToolResolutionError as e:
            logger.warning(f"⚠️  {e}")
            message = f"Error: tool '{call.name}' is not available."
            return ToolResult(
                name=call.name,
                result=message,
                success=False,
                error=message,
                execution_time=time.time() - start_time,
                metadata={"args": args},
            )

        logger.info(f"🔧 Calling tool: {call.name} with args: {args}")

        try:
            raw = self._invoke(call.name, handler, args)
        except ToolExecutionError as e:
            logger.error(f"❌ Tool {call.name} failed: {e.cause!r}", exc_info=e.cause)
            message = f"Error: the request could not be completed ({e.public_message})."
            return ToolResult(
                name=call.name,
                result=message,
                success=False,
                error=message,
                execution_time=time.time() - start_time,
                metadata={"args": args},
            )

        return ToolResult(
            name=call.name,
            result=serialize_result(raw),
            success=True,
            execution_time=time.time() - start_time,
            metadata={"args": args},
        )

    @staticmethod
    def _invoke(name: str, handler: Handler, args: Dict[str, Any]) -> Any:
        """Run a handler, mapping any failure to ToolExecutionError."""
        try:
            return handler(args)
        except ModelUnavailableError:
            raise
        except DomainError as e:
            raise ToolExecutionError(name, e.public_message or GENERIC_FAILURE, e) from e
        except (TypeError, ValueError, KeyError) as e:
            raise ToolExecutionError(name, "the request had invalid or missing parameters", e) from e
        except Exception as e:
            raise ToolExecutionError(name, GENERIC_FAILURE, e) from e

    def execute_many(
        self,
        calls: Sequence[FunctionCall],
        allowed: Optional[Collection[str]] = None,
    ) -> List[ToolResult]:
        """
        Execute a batch of calls.

        Returns:
            One ToolResult per call, in the same order as ``calls``
        """
        calls = list(calls)
        if self.max_workers == 1 or len(calls) < 2:
            return [self.execute(call, allowed) for call in calls]

        # map() yields in submission order regardless of completion order
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(calls))) as pool:
            return list(pool.map(lambda call: self.execute(call, allowed), calls))
