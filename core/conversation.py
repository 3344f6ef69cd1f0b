"""
Conversation Builder

Assembles the ordered turns that form the model's input:
1. A model turn carrying the serialized user context
2. Prior session turns, oldest first
3. The current question

A Conversation is immutable. Extending it returns a new Conversation, so
each request owns its own turns and nothing is mutated in place.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from config import USER_CONTEXT_TEMPLATE, NO_USER_CONTEXT, format_prompt
from .errors import ConversationError

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class Speaker(Enum):
    USER = "user"
    MODEL = "model"

    @classmethod
    def normalize(cls, role: Any) -> "Speaker":
        """``user`` stays user; every other recorded role becomes model."""
        if isinstance(role, Speaker):
            return role
        if isinstance(role, str) and role.strip().lower() == "user":
            return cls.USER
        return cls.MODEL


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class FunctionCallPart:
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FunctionResponsePart:
    name: str
    result: str


Part = Union[TextPart, FunctionCallPart, FunctionResponsePart]


@dataclass(frozen=True)
class FunctionCall:
    """A function call emitted by the model."""
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Turn:
    speaker: Speaker
    parts: Tuple[Part, ...]

    @property
    def function_calls(self) -> List[FunctionCallPart]:
        return [p for p in self.parts if isinstance(p, FunctionCallPart)]

    @property
    def function_responses(self) -> List[FunctionResponsePart]:
        return [p for p in self.parts if isinstance(p, FunctionResponsePart)]

    def to_content(self) -> Dict[str, Any]:
        """Provider-neutral ``{"role", "parts"}`` dict."""
        parts: List[Dict[str, Any]] = []
        for part in self.parts:
            if isinstance(part, TextPart):
                parts.append({"text": part.text})
            elif isinstance(part, FunctionCallPart):
                parts.append({"function_call": {"name": part.name, "args": dict(part.args)}})
            else:
                parts.append({"function_response": {"name": part.name, "response": {"result": part.result}}})
        return {"role": self.speaker.value, "parts": parts}


@dataclass(frozen=True)
class Conversation:
    """Append-only sequence of turns."""
    turns: Tuple[Turn, ...] = ()

    def __len__(self) -> int:
        return len(self.turns)

    def __iter__(self):
        return iter(self.turns)

    @property
    def last(self) -> Optional[Turn]:
        return self.turns[-1] if self.turns else None

    @property
    def awaiting_responses(self) -> bool:
        """True when the last turn is a model turn whose calls are unanswered."""
        last = self.last
        return last is not None and last.speaker is Speaker.MODEL and bool(last.function_calls)

    def append(self, turn: Turn) -> "Conversation":
        """
        Return a new Conversation with ``turn`` added.

        Raises:
            ConversationError: If the turn would break call/response pairing
        """
        if self.awaiting_responses:
            expected = [c.name for c in self.last.function_calls]
            received = [r.name for r in turn.function_responses]
            if turn.speaker is not Speaker.USER or received != expected:
                raise ConversationError(
                    f"Function calls {expected} must be answered before any other turn; got {received}"
                )
        elif turn.function_responses:
            raise ConversationError("Function responses without preceding function calls")
        return Conversation(self.turns + (turn,))

    def to_contents(self) -> List[Dict[str, Any]]:
        return [turn.to_content() for turn in self.turns]


# ============================================================================
# BUILDER
# ============================================================================

def serialize_result(result: Any) -> str:
    """Turn any collaborator result into a single string."""
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(result)


def serialize_user_context(user_context: Optional[Mapping[str, Any]]) -> str:
    if not user_context:
        return NO_USER_CONTEXT
    return format_prompt(
        USER_CONTEXT_TEMPLATE,
        user_context=json.dumps(dict(user_context), default=str, ensure_ascii=False),
    )


class ConversationBuilder:
    """Builds and extends Conversations for the orchestration loop."""

    def build(
        self,
        user_context: Optional[Mapping[str, Any]],
        session_history: Optional[Sequence[Mapping[str, Any]]],
        current_question: str,
    ) -> Conversation:
        """
        Build the initial conversation for a question.

        Args:
            user_context: Role-shaped snapshot of the current user
            session_history: Prior turns as ``{"role", "content"}`` mappings, oldest first
            current_question: The user's question

        Returns:
            Conversation of context turn + history + question
        """
        turns: List[Turn] = [
            Turn(Speaker.MODEL, (TextPart(serialize_user_context(user_context)),))
        ]

        for entry in session_history or ():
            text = entry.get("content")
            if text is None:
                text = entry.get("text", "")
            turns.append(Turn(Speaker.normalize(entry.get("role")), (TextPart(str(text)),)))

        turns.append(Turn(Speaker.USER, (TextPart(current_question),)))

        logger.debug(f"🧱 Built conversation with {len(turns)} turns")
        return Conversation(tuple(turns))

    def with_function_calls(self, conversation: Conversation, calls: Iterable[FunctionCall]) -> Conversation:
        """Append a model turn with one call part per call, in emission order."""
        parts = tuple(FunctionCallPart(name=c.name, args=dict(c.args or {})) for c in calls)
        if not parts:
            raise ConversationError("A function call turn needs at least one call")
        return conversation.append(Turn(Speaker.MODEL, parts))

    def with_function_responses(self, conversation: Conversation, results: Iterable[Any]) -> Conversation:
        """
        Append a user turn with one response part per executed call.

        ``results`` are ToolResult-like objects with ``name`` and ``result``.
        """
        parts = tuple(
            FunctionResponsePart(name=r.name, result=serialize_result(r.result))
            for r in results
        )
        return conversation.append(Turn(Speaker.USER, parts))
