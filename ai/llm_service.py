"""
LLM Service - Gemini API Wrapper with Langfuse Observability

This service provides the model boundary of the chatbot:
- Function-calling generation over a multi-turn conversation
- Text embeddings for the knowledge base search
- Automatic retry logic with exponential backoff
- Langfuse tracing and token usage tracking

Every provider failure leaves this module as ModelUnavailableError.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, List, Any
from functools import wraps

import google.generativeai as genai
from google.generativeai.types import GenerationConfig, HarmCategory, HarmBlockThreshold
from langfuse import Langfuse, observe

from config import (
    GOOGLE_API_KEY,
    GEMINI_MODEL,
    EMBEDDING_MODEL,
    TEMPERATURE,
    MAX_TOKENS,
    TOP_P,
    TOP_K,
    MAX_RETRIES,
    RETRY_DELAY,
    TIMEOUT,
    LANGFUSE_PUBLIC_KEY,
    LANGFUSE_SECRET_KEY,
    LANGFUSE_HOST,
    LANGFUSE_ENABLED,
)
from core.conversation import FunctionCall
from core.errors import ModelUnavailableError

logger = logging.getLogger(__name__)

# ============================================================================
# INITIALIZATION
# ============================================================================

if GOOGLE_API_KEY:
    genai.configure(api_key=GOOGLE_API_KEY)

_langfuse_client: Optional[Langfuse] = None

if LANGFUSE_ENABLED:
    try:
        _langfuse_client = Langfuse(
            public_key=LANGFUSE_PUBLIC_KEY,
            secret_key=LANGFUSE_SECRET_KEY,
            host=LANGFUSE_HOST,
        )
        logger.info("✅ Langfuse observability initialized")
    except Exception as e:
        logger.warning(f"⚠️  Langfuse initialization failed: {e}. Continuing without tracing.")
        _langfuse_client = None
else:
    logger.info("ℹ️  Langfuse observability disabled")


# ============================================================================
# SAFETY SETTINGS
# ============================================================================

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class ModelResponse:
    """
    Parsed answer from one generate call.

    Attributes:
        text: Concatenated text parts, or None when the model sent no text
        function_calls: Calls in the order the model emitted them
        latency: Seconds spent waiting for the provider
    """
    text: Optional[str] = None
    function_calls: List[FunctionCall] = field(default_factory=list)
    latency: float = 0.0

    @property
    def has_function_calls(self) -> bool:
        return bool(self.function_calls)


# ============================================================================
# GENERATION CONFIGURATION
# ============================================================================

def get_generation_config(
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> GenerationConfig:
    """
    Create a generation configuration for Gemini API calls.

    Args:
        temperature: Sampling temperature (0.0 - 2.0). Defaults to config value.
        max_tokens: Maximum tokens to generate. Defaults to config value.

    Returns:
        GenerationConfig object
    """
    return GenerationConfig(
        temperature=TEMPERATURE if temperature is None else temperature,
        max_output_tokens=max_tokens or MAX_TOKENS,
        top_p=TOP_P,
        top_k=TOP_K,
    )


# ============================================================================
# RETRY DECORATOR
# ============================================================================

TRANSIENT_MARKERS = ("rate limit", "quota", "timeout", "deadline", "unavailable", "503", "429", "500")


def is_transient_error(error: Exception) -> bool:
    """Provider errors worth retrying (throttling, timeouts, 5xx)."""
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


def retry_on_error(max_retries: int = MAX_RETRIES, delay: float = RETRY_DELAY):
    """
    Retry a provider call on transient errors with exponential backoff.

    Whatever still fails is raised as ModelUnavailableError, with the
    provider exception chained as the cause.

    Args:
        max_retries: Maximum number of attempts
        delay: Initial delay between retries (seconds)
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(1, max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except ModelUnavailableError:
                    raise
                except Exception as e:
                    if attempt >= max_retries or not is_transient_error(e):
                        logger.error(f"❌ {func.__name__} gave up after {attempt} attempt(s): {type(e).__name__}: {e}")
                        raise ModelUnavailableError(
                            f"{func.__name__} failed after {attempt} attempt(s): {type(e).__name__}"
                        ) from e

                    logger.warning(
                        f"⚠️  {func.__name__} attempt {attempt}/{max_retries} hit {type(e).__name__}, "
                        f"backing off {wait}s"
                    )
                    time.sleep(wait)
                    wait *= 2
            raise ModelUnavailableError(f"{func.__name__} was not attempted (max_retries={max_retries})")

        return wrapper
    return decorator


# ============================================================================
# CONTENT CONVERSION
# ============================================================================

def to_gemini_contents(contents: List[Dict[str, Any]]) -> List[Any]:
    """
    Convert provider-neutral turns into Gemini ``Content`` protos.

    Each turn is ``{"role": "user"|"model", "parts": [...]}`` where a part
    holds ``text``, ``function_call`` or ``function_response``.
    """
    converted = []
    for turn in contents:
        parts = []
        for part in turn["parts"]:
            if "function_call" in part:
                call = part["function_call"]
                parts.append(genai.protos.Part(
                    function_call=genai.protos.FunctionCall(name=call["name"], args=call.get("args") or {})
                ))
            elif "function_response" in part:
                response = part["function_response"]
                parts.append(genai.protos.Part(
                    function_response=genai.protos.FunctionResponse(
                        name=response["name"], response=response["response"]
                    )
                ))
            else:
                parts.append(genai.protos.Part(text=part.get("text", "")))
        converted.append(genai.protos.Content(role=turn["role"], parts=parts))
    return converted


def _normalize_args(value: Any) -> Any:
    """Struct numbers arrive as floats; restore integers and plain containers."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict) or hasattr(value, "items"):
        return {str(k): _normalize_args(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)) or (hasattr(value, "__iter__") and not isinstance(value, (str, bytes))):
        return [_normalize_args(v) for v in value]
    return value


def parse_response(response: Any, latency: float = 0.0) -> ModelResponse:
    """Extract text and function calls from a Gemini response."""
    result = ModelResponse(latency=latency)

    if not getattr(response, "candidates", None):
        return result

    candidate = response.candidates[0]
    texts = []
    content = getattr(candidate, "content", None)
    for part in getattr(content, "parts", None) or []:
        if getattr(part, "text", None):
            texts.append(part.text)

        func_call = getattr(part, "function_call", None)
        if func_call and getattr(func_call, "name", None):
            result.function_calls.append(FunctionCall(
                name=func_call.name,
                args=_normalize_args(func_call.args or {}),
            ))

    text = "".join(texts).strip()
    result.text = text or None
    return result


def _track_usage(response: Any, model_name: str) -> None:
    usage = getattr(response, "usage_metadata", None)
    if not usage:
        return
    if _langfuse_client:
        _langfuse_client.update_current_generation(
            model=model_name,
            usage_details={
                "input": usage.prompt_token_count,
                "output": usage.candidates_token_count,
                "total": usage.total_token_count,
            },
        )
    logger.debug(
        f"📊 Tokens: {usage.prompt_token_count} in, {usage.candidates_token_count} out"
    )


# ============================================================================
# CORE LLM FUNCTIONS
# ============================================================================

def _require_api_key() -> None:
    if not GOOGLE_API_KEY:
        raise ModelUnavailableError("GOOGLE_API_KEY is not configured")


@observe(name="generate_with_tools", as_type="generation")
@retry_on_error()
def generate_with_tools(
    contents: List[Dict[str, Any]],
    tools: Optional[List[Dict[str, Any]]] = None,
    system_instruction: Optional[str] = None,
    tool_mode: str = "AUTO",
    temperature: Optional[float] = None,
    model_name: Optional[str] = None,
) -> ModelResponse:
    """
    Ask Gemini for the next step of a conversation.

    Args:
        contents: Conversation turns (see ``to_gemini_contents``)
        tools: Function declarations the model may call
        system_instruction: System prompt
        tool_mode: "AUTO" lets the model call functions, "NONE" forbids it
        temperature: Sampling temperature
        model_name: Model to use

    Returns:
        ModelResponse with text and/or function calls

    Raises:
        ModelUnavailableError: If the provider call fails after retries
    """
    _require_api_key()
    model_name = model_name or GEMINI_MODEL

    model = genai.GenerativeModel(
        model_name=model_name,
        generation_config=get_generation_config(temperature),
        safety_settings=SAFETY_SETTINGS,
        system_instruction=system_instruction,
        tools=[{"function_declarations": tools}] if tools else None,
    )

    request: Dict[str, Any] = {"request_options": {"timeout": TIMEOUT}}
    if tools:
        request["tool_config"] = {"function_calling_config": {"mode": tool_mode}}

    start_time = time.time()
    response = model.generate_content(to_gemini_contents(contents), **request)
    latency = time.time() - start_time

    result = parse_response(response, latency)
    _track_usage(response, model_name)

    logger.debug(f"🔧 Model turn: {len(result.function_calls)} function call(s), ⏱️  {latency:.2f}s")
    return result


@observe(name="embed_texts")
@retry_on_error()
def embed_texts(
    texts: List[str],
    task_type: str = "retrieval_query",
    model_name: Optional[str] = None,
) -> List[List[float]]:
    """
    Embed a batch of strings.

    Args:
        texts: Strings to embed
        task_type: Gemini embedding task type
        model_name: Embedding model to use

    Returns:
        One embedding vector per input, in input order

    Raises:
        ModelUnavailableError: If the provider call fails or returns nothing
    """
    if not texts:
        return []

    _require_api_key()
    result = genai.embed_content(
        model=model_name or EMBEDDING_MODEL,
        content=list(texts),
        task_type=task_type,
        request_options={"timeout": TIMEOUT},
    )

    embeddings = result.get("embedding") if isinstance(result, dict) else None
    if not embeddings:
        raise ModelUnavailableError("No embeddings generated")
    if len(texts) == 1 and embeddings and not isinstance(embeddings[0], (list, tuple)):
        embeddings = [embeddings]
    if len(embeddings) != len(texts):
        raise ModelUnavailableError(
            f"Expected {len(texts)} embeddings, got {len(embeddings)}"
        )
    return [list(vector) for vector in embeddings]


# ============================================================================
# HEALTH CHECK
# ============================================================================

def validate_model_available(model_name: str) -> bool:
    """True if the API lists ``model_name`` (with or without the models/ prefix)."""
    qualified = model_name if model_name.startswith("models/") else f"models/{model_name}"
    try:
        return any(m.name == qualified for m in genai.list_models())
    except Exception as e:
        logger.warning(f"⚠️  Could not list models: {e}")
        return False


def health_check() -> Dict[str, Any]:
    """
    Report whether the chat and embedding models can be reached.

    Returns:
        {"chat_model", "embedding_model", "gemini_api", "tracing"}; the
        ``gemini_api`` entry is "ok", "degraded" (a model is missing) or
        "no_api_key"
    """
    report: Dict[str, Any] = {
        "chat_model": {"name": GEMINI_MODEL, "available": False},
        "embedding_model": {"name": EMBEDDING_MODEL, "available": False},
        "gemini_api": "no_api_key",
        "tracing": "enabled" if _langfuse_client else "disabled",
    }
    if not GOOGLE_API_KEY:
        return report

    for key in ("chat_model", "embedding_model"):
        report[key]["available"] = validate_model_available(report[key]["name"])

    both = report["chat_model"]["available"] and report["embedding_model"]["available"]
    report["gemini_api"] = "ok" if both else "degraded"
    logger.info(f"🩺 Model health: {report['gemini_api']}")
    return report
