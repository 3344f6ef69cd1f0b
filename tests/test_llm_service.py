"""
Unit Tests for the LLM Service

Tests response parsing, content conversion and retry behavior with the
Gemini SDK mocked out. Live API tests are marked ``integration``.
"""

import os
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from ai.llm_service import (
    ModelResponse,
    _normalize_args,
    embed_texts,
    generate_with_tools,
    health_check,
    is_transient_error,
    parse_response,
    retry_on_error,
    to_gemini_contents,
)
from config import EMBEDDING_MODEL, GEMINI_MODEL
from core.errors import ModelUnavailableError


def gemini_response(*parts, usage=None):
    """Build a minimal object shaped like a Gemini response."""
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))],
        usage_metadata=usage,
    )


def text_part(text):
    return SimpleNamespace(text=text, function_call=None)


def call_part(name, args):
    return SimpleNamespace(text="", function_call=SimpleNamespace(name=name, args=args))


class TestParseResponse:
    """Test extraction of text and function calls."""

    def test_text_only(self):
        result = parse_response(gemini_response(text_part("Hello "), text_part("there")))
        assert result.text == "Hello there"
        assert result.function_calls == []
        assert not result.has_function_calls

    def test_function_calls_keep_order(self):
        result = parse_response(gemini_response(
            call_part("enrollment_my_courses", {}),
            call_part("search_vector", {"query": "fees", "limit": 3.0}),
        ))

        assert [c.name for c in result.function_calls] == ["enrollment_my_courses", "search_vector"]
        assert result.function_calls[1].args == {"query": "fees", "limit": 3}
        assert result.text is None

    def test_no_candidates(self):
        result = parse_response(SimpleNamespace(candidates=[]))
        assert result == ModelResponse()

    def test_normalize_args(self):
        assert _normalize_args({"page": 2.0, "ratio": 0.5, "ids": ["a", 1.0]}) == {
            "page": 2, "ratio": 0.5, "ids": ["a", 1],
        }


class TestContentConversion:

    def test_roles_and_parts(self):
        converted = to_gemini_contents([
            {"role": "user", "parts": [{"text": "q"}]},
            {"role": "model", "parts": [{"function_call": {"name": "courses_find_one", "args": {"id": "c1"}}}]},
            {"role": "user", "parts": [{"function_response": {"name": "courses_find_one", "response": {"result": "{}"}}}]},
        ])

        assert [c.role for c in converted] == ["user", "model", "user"]
        assert converted[0].parts[0].text == "q"
        assert converted[1].parts[0].function_call.name == "courses_find_one"
        assert converted[2].parts[0].function_response.name == "courses_find_one"


class TestRetry:
    """Test retry_on_error decorator."""

    @patch("ai.llm_service.time.sleep")
    def test_retries_transient_errors(self, mock_sleep):
        func = Mock(side_effect=[Exception("429 rate limit"), "ok"])
        func.__name__ = "func"

        assert retry_on_error(max_retries=3, delay=1)(func)() == "ok"
        assert func.call_count == 2
        mock_sleep.assert_called_once_with(1)

    @patch("ai.llm_service.time.sleep")
    def test_gives_up_as_model_unavailable(self, mock_sleep):
        func = Mock(side_effect=Exception("503 unavailable"))
        func.__name__ = "func"

        with pytest.raises(ModelUnavailableError):
            retry_on_error(max_retries=3, delay=1)(func)()
        assert func.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    def test_transient_classification(self):
        assert is_transient_error(Exception("429 Resource has been exhausted (quota)"))
        assert is_transient_error(Exception("Deadline Exceeded"))
        assert not is_transient_error(Exception("400 API key not valid"))

    def test_permanent_errors_are_not_retried(self):
        func = Mock(side_effect=ValueError("invalid argument"))
        func.__name__ = "func"

        with pytest.raises(ModelUnavailableError):
            retry_on_error(max_retries=3, delay=0)(func)()
        assert func.call_count == 1


class TestGenerateWithTools:
    """Test the Gemini call with the SDK mocked."""

    @patch("ai.llm_service.GOOGLE_API_KEY", "test-key")
    @patch("ai.llm_service.genai.GenerativeModel")
    def test_tools_and_mode_are_sent(self, mock_model_cls):
        mock_model = mock_model_cls.return_value
        mock_model.generate_content.return_value = gemini_response(text_part("Hi!"))
        tools = [{"name": "search_vector", "description": "Search.", "parameters": {"type": "OBJECT", "properties": {}}}]

        result = generate_with_tools(
            contents=[{"role": "user", "parts": [{"text": "hi"}]}],
            tools=tools,
            system_instruction="Be helpful.",
            tool_mode="NONE",
        )

        assert result.text == "Hi!"
        assert mock_model_cls.call_args.kwargs["tools"] == [{"function_declarations": tools}]
        assert mock_model_cls.call_args.kwargs["system_instruction"] == "Be helpful."
        assert mock_model.generate_content.call_args.kwargs["tool_config"] == {
            "function_calling_config": {"mode": "NONE"}
        }

    @patch("ai.llm_service.GOOGLE_API_KEY", None)
    def test_missing_key(self):
        with pytest.raises(ModelUnavailableError):
            generate_with_tools(contents=[{"role": "user", "parts": [{"text": "hi"}]}])


class TestEmbedTexts:

    @patch("ai.llm_service.GOOGLE_API_KEY", "test-key")
    @patch("ai.llm_service.genai.embed_content")
    def test_one_vector_per_text(self, mock_embed):
        mock_embed.return_value = {"embedding": [[0.1, 0.2], [0.3, 0.4]]}
        assert embed_texts(["a", "b"], task_type="retrieval_document") == [[0.1, 0.2], [0.3, 0.4]]
        assert mock_embed.call_args.kwargs["task_type"] == "retrieval_document"

    @patch("ai.llm_service.GOOGLE_API_KEY", "test-key")
    @patch("ai.llm_service.genai.embed_content")
    def test_count_mismatch(self, mock_embed):
        mock_embed.return_value = {"embedding": [[0.1, 0.2]]}
        with pytest.raises(ModelUnavailableError):
            embed_texts(["a", "b"])

    def test_empty_input(self):
        assert embed_texts([]) == []


class TestHealthCheck:

    @patch("ai.llm_service.GOOGLE_API_KEY", None)
    def test_without_key(self):
        assert health_check()["gemini_api"] == "no_api_key"

    @patch("ai.llm_service.GOOGLE_API_KEY", "test-key")
    @patch("ai.llm_service.genai.list_models")
    def test_both_models_listed(self, mock_list):
        mock_list.return_value = [
            SimpleNamespace(name=f"models/{GEMINI_MODEL}"),
            SimpleNamespace(name=EMBEDDING_MODEL),
        ]
        report = health_check()
        assert report["gemini_api"] == "ok"
        assert report["embedding_model"]["available"] is True

    @patch("ai.llm_service.GOOGLE_API_KEY", "test-key")
    @patch("ai.llm_service.genai.list_models", side_effect=RuntimeError("network down"))
    def test_listing_failure_is_degraded(self, mock_list):
        assert health_check()["gemini_api"] == "degraded"


@pytest.mark.integration
@pytest.mark.skipif(not os.getenv("GOOGLE_API_KEY"), reason="GOOGLE_API_KEY not set")
class TestLiveGemini:
    """Calls the real API; run with -m integration."""

    def test_simple_answer(self):
        result = generate_with_tools(
            contents=[{"role": "user", "parts": [{"text": "Reply with the single word: ready"}]}],
        )
        assert result.text
