"""
Chat Service - Main Coordinator

Handles one chatbot question end to end:
1. Maps the authenticated user to a context snapshot
2. Binds the tool handlers to that user's backend client
3. Runs the orchestrator (tool-calling loop, fallback, sanitizer)
4. Turns the outcome into a tagged ChatResponse

This is the main entry point for the Streamlit UI.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from config import (
    MAX_ITERATIONS,
    MODEL_UNAVAILABLE_MESSAGE,
    NO_ANSWER_MESSAGE,
    SESSION_HISTORY_LIMIT,
    TOOL_MAX_WORKERS,
)
from core import (
    CapabilityRegistry,
    ChatOrchestrator,
    ModelUnavailableError,
    OrchestrationState,
    ResponseSanitizer,
    ToolDispatcher,
    build_default_registry,
    parse_role,
)
from domain import Role

logger = logging.getLogger(__name__)


# ============================================================================
# USER CONTEXT
# ============================================================================

def map_user_to_context(role: str, user: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Build the user context snapshot shown to the model.

    Students get their student number; mentors and admins get their staff
    details. Anything missing falls back to the base context.

    Args:
        role: Role of the authenticated user
        user: User record as returned by the backend's ``/users/me``

    Returns:
        Context dictionary (id, role, email, plus role details)
    """
    role = getattr(role, "value", role)
    context: Dict[str, Any] = {
        "id": user.get("id"),
        "role": role,
        "email": user.get("email"),
    }

    student_details = user.get("studentDetails")
    if role == Role.STUDENT.value and student_details:
        context["studentNumber"] = student_details.get("studentNumber")
        return context

    staff_details = user.get("staffDetails")
    if role in (Role.ADMIN.value, Role.MENTOR.value) and staff_details:
        context["employeeNumber"] = staff_details.get("employeeNumber")
        context["department"] = staff_details.get("department") or ""
        context["position"] = staff_details.get("position") or ""

    return context


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class AnswerStatus(Enum):
    """Outcome of a question."""
    ANSWERED = "answered"
    NO_ANSWER = "no_answer"
    MODEL_UNAVAILABLE = "model_unavailable"


@dataclass
class ChatResponse:
    """
    Response from the chat service.

    Attributes:
        message: The text to display to the user
        status: Tagged outcome
        metadata: Execution summary (tools used, iterations, timing)
        state: Full orchestration state (for debugging)
    """
    message: str
    status: AnswerStatus
    metadata: Dict[str, Any] = field(default_factory=dict)
    state: Optional[OrchestrationState] = None

    @property
    def success(self) -> bool:
        return self.status == AnswerStatus.ANSWERED


# ============================================================================
# CHAT SERVICE
# ============================================================================

class ChatService:
    """
    Main chat service coordinator.

    Holds the process-wide pieces (registry, sanitizer, knowledge base
    search, model boundary). Per-question pieces are built in ``ask``.
    """

    def __init__(
        self,
        search_service: Any = None,
        generate_fn: Optional[Callable[..., Any]] = None,
        registry: Optional[CapabilityRegistry] = None,
        max_iterations: int = MAX_ITERATIONS,
        max_workers: int = TOOL_MAX_WORKERS,
        history_limit: int = SESSION_HISTORY_LIMIT,
    ):
        if generate_fn is None:
            from ai import generate_with_tools
            generate_fn = generate_with_tools
        if search_service is None:
            search_service = build_default_search_service()

        self.registry = registry or build_default_registry()
        self.sanitizer = ResponseSanitizer(self.registry.names())
        self.search_service = search_service
        self.generate_fn = generate_fn
        self.max_iterations = max_iterations
        self.max_workers = max_workers
        self.history_limit = history_limit
        logger.info("✅ ChatService initialized")

    def ask(
        self,
        client: Any,
        user_context: Optional[Mapping[str, Any]],
        session_history: Optional[Sequence[Mapping[str, Any]]],
        question: str,
        role: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ChatResponse:
        """
        Answer one question for the current user.

        Args:
            client: SchoolApiClient acting for the user
            user_context: Snapshot from ``map_user_to_context``
            session_history: Previous turns ({"role", "content"}), oldest first
            question: The user's question
            role: User role; defaults to the role in ``user_context``
            session_id: Session identifier for the logs

        Returns:
            ChatResponse; never raises for model outages
        """
        from tools import get_tool_registry

        session_id = session_id or str(uuid.uuid4())
        if role is None and user_context:
            role = user_context.get("role")
        parsed_role = parse_role(role)

        logger.info(f"💬 Processing question (session: {session_id}, role: {role}): {question[:50]}...")

        history = list(session_history or [])
        if self.history_limit and len(history) > self.history_limit:
            history = history[-self.history_limit:]

        dispatcher = ToolDispatcher(
            get_tool_registry(client, self.search_service, user_context),
            max_workers=self.max_workers,
        )
        orchestrator = ChatOrchestrator(
            registry=self.registry,
            dispatcher=dispatcher,
            generate_fn=self.generate_fn,
            sanitizer=self.sanitizer,
            max_iterations=self.max_iterations,
        )

        try:
            state = orchestrator.run(user_context, history, question, parsed_role)
        except ModelUnavailableError as e:
            logger.error(f"❌ Model unavailable (session: {session_id}): {e}")
            return ChatResponse(
                message=MODEL_UNAVAILABLE_MESSAGE,
                status=AnswerStatus.MODEL_UNAVAILABLE,
                metadata={"session_id": session_id},
            )

        metadata = state.get_execution_summary()
        metadata["session_id"] = session_id

        if not state.answered:
            logger.warning(f"⚠️  No answer produced (session: {session_id})")
            return ChatResponse(
                message=NO_ANSWER_MESSAGE,
                status=AnswerStatus.NO_ANSWER,
                metadata=metadata,
                state=state,
            )

        return ChatResponse(
            message=state.final_response,
            status=AnswerStatus.ANSWERED,
            metadata=metadata,
            state=state,
        )


def build_default_search_service() -> Any:
    """Knowledge base search over data/knowledge_base.json, cached."""
    from ai import embed_texts
    from .vector_search_service import CachedVectorSearchService, InMemoryDocumentStore, VectorSearchService

    store = InMemoryDocumentStore.from_knowledge_base(embed_texts)
    return CachedVectorSearchService(VectorSearchService(store, embed_texts))


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

def process_user_message(
    client: Any,
    question: str,
    session_history: Optional[List[Dict]] = None,
    role: Optional[str] = None,
    service: Optional[ChatService] = None,
) -> ChatResponse:
    """
    Convenience function: fetch the user, build their context and ask.

    Args:
        client: SchoolApiClient acting for the user
        question: The user's question
        session_history: Previous turns
        role: User role (taken from the user record when omitted)
        service: Existing ChatService to reuse

    Returns:
        ChatResponse
    """
    me = client.get_me()
    role = role or me.get("role")
    user_context = map_user_to_context(role, me)

    service = service or ChatService()
    return service.ask(client, user_context, session_history, question, role=role)
