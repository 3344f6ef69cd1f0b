"""
Error taxonomy for the chatbot core.

Tool-level errors are recovered inside the loop and turned into text the
model can read. Model-boundary errors escape to the caller.
"""

from typing import Optional


class ChatbotError(Exception):
    """Base class for all chatbot core errors."""


class ToolResolutionError(ChatbotError):
    """The model requested a function name the dispatcher does not know."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found in registry")


class ToolExecutionError(ChatbotError):
    """A collaborator raised while handling a function call."""

    def __init__(self, tool_name: str, public_message: str, cause: Optional[BaseException] = None):
        self.tool_name = tool_name
        self.public_message = public_message
        self.cause = cause
        super().__init__(f"Tool '{tool_name}' failed: {public_message}")


class ModelUnavailableError(ChatbotError):
    """The generate or embed call to the LLM provider failed."""


class ConversationError(ChatbotError):
    """A conversation extension would break turn pairing."""


class DomainError(Exception):
    """
    Raised by backend collaborators.

    ``public_message`` is safe to show to the model (and therefore the
    user); ``str(error)`` may carry internal detail and is only logged.
    """

    def __init__(self, message: str, public_message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.public_message = public_message
        self.status_code = status_code
