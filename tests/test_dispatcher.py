"""
Unit Tests for the Tool Dispatcher

Tests resolution, error-to-text conversion and ordered batch execution.
"""

import json
import threading
import time

import pytest

from core.capabilities import ToolName
from core.conversation import FunctionCall
from core.dispatcher import GENERIC_FAILURE, ToolDispatcher
from core.errors import DomainError, ModelUnavailableError, ToolResolutionError


class TestResolve:
    """Test handler lookup."""

    def test_known_tool(self):
        handler = lambda args: "ok"
        dispatcher = ToolDispatcher({ToolName.SEARCH_VECTOR: handler})
        assert dispatcher.resolve("search_vector") is handler

    def test_unknown_name(self):
        dispatcher = ToolDispatcher({ToolName.SEARCH_VECTOR: lambda args: "ok"})
        with pytest.raises(ToolResolutionError):
            dispatcher.resolve("drop_database")

    def test_known_name_without_handler(self):
        dispatcher = ToolDispatcher({ToolName.SEARCH_VECTOR: lambda args: "ok"})
        with pytest.raises(ToolResolutionError):
            dispatcher.resolve("billing_find_all")

    def test_not_in_allowed_set(self):
        dispatcher = ToolDispatcher({ToolName.USERS_COUNT_ALL: lambda args: 3})
        with pytest.raises(ToolResolutionError):
            dispatcher.resolve("users_count_all", allowed={"search_vector"})

    def test_string_keys_are_accepted(self):
        dispatcher = ToolDispatcher({"search_vector": lambda args: "ok"})
        assert dispatcher.tool_names == ["search_vector"]


class TestExecute:
    """Test single call execution."""

    def test_success_serializes_result(self):
        dispatcher = ToolDispatcher({ToolName.USERS_COUNT_ALL: lambda args: {"count": 42}})
        result = dispatcher.execute(FunctionCall("users_count_all", {"role": "student"}))

        assert result.success is True
        assert json.loads(result.result) == {"count": 42}
        assert result.metadata["args"] == {"role": "student"}

    def test_args_reach_handler(self):
        received = {}
        dispatcher = ToolDispatcher({ToolName.COURSES_FIND_ONE: lambda args: received.update(args) or "x"})
        dispatcher.execute(FunctionCall("courses_find_one", {"id": "c-1"}))
        assert received == {"id": "c-1"}

    def test_unknown_tool_becomes_text(self):
        dispatcher = ToolDispatcher({ToolName.SEARCH_VECTOR: lambda args: "ok"})
        result = dispatcher.execute(FunctionCall("grades_find_all"))

        assert result.success is False
        assert "grades_find_all" in result.result
        assert "not available" in result.result

    def test_disallowed_tool_becomes_text(self):
        dispatcher = ToolDispatcher({ToolName.USERS_COUNT_ALL: lambda args: 3})
        result = dispatcher.execute(FunctionCall("users_count_all"), allowed={"search_vector"})
        assert result.success is False
        assert "not available" in result.result

    def test_domain_error_uses_public_message(self):
        def handler(args):
            raise DomainError("404 from /billing/b9 (db row missing)", public_message="no matching record was found")

        dispatcher = ToolDispatcher({ToolName.BILLING_FIND_ONE: handler})
        result = dispatcher.execute(FunctionCall("billing_find_one", {"id": "b9"}))

        assert result.success is False
        assert "no matching record was found" in result.result
        assert "db row" not in result.result

    def test_unexpected_error_does_not_leak_details(self):
        def handler(args):
            raise RuntimeError("connection string postgres://admin:secret@db")

        dispatcher = ToolDispatcher({ToolName.COURSES_FIND_ALL: handler})
        result = dispatcher.execute(FunctionCall("courses_find_all"))

        assert result.success is False
        assert GENERIC_FAILURE in result.result
        assert "secret" not in result.result
        assert "RuntimeError" not in result.result

    def test_bad_arguments(self):
        def handler(args):
            return int(args["page"])

        dispatcher = ToolDispatcher({ToolName.LMS_MY_MODULES: handler})
        result = dispatcher.execute(FunctionCall("lms_my_modules", {"page": "two"}))
        assert "invalid or missing parameters" in result.result

    def test_model_unavailable_propagates(self):
        def handler(args):
            raise ModelUnavailableError("embedding quota exhausted")

        dispatcher = ToolDispatcher({ToolName.SEARCH_VECTOR: handler})
        with pytest.raises(ModelUnavailableError):
            dispatcher.execute(FunctionCall("search_vector", {"query": "fees"}))


class TestExecuteMany:
    """Test batch execution order."""

    @staticmethod
    def slow_then_fast():
        def slow(args):
            time.sleep(0.05)
            return "slow"

        def fast(args):
            return "fast"

        return {ToolName.COURSES_FIND_ALL: slow, ToolName.SEARCH_VECTOR: fast}

    @pytest.mark.parametrize("max_workers", [1, 4])
    def test_results_follow_emission_order(self, max_workers):
        dispatcher = ToolDispatcher(self.slow_then_fast(), max_workers=max_workers)
        results = dispatcher.execute_many([
            FunctionCall("courses_find_all"),
            FunctionCall("search_vector", {"query": "x"}),
            FunctionCall("unknown_tool"),
        ])

        assert [r.name for r in results] == ["courses_find_all", "search_vector", "unknown_tool"]
        assert [r.result for r in results[:2]] == ["slow", "fast"]
        assert results[2].success is False

    def test_parallel_batch_runs_concurrently(self):
        barrier = threading.Barrier(2, timeout=2)

        def waits(args):
            barrier.wait()
            return "done"

        dispatcher = ToolDispatcher(
            {ToolName.COURSES_FIND_ALL: waits, ToolName.SEARCH_VECTOR: waits},
            max_workers=2,
        )
        results = dispatcher.execute_many([FunctionCall("courses_find_all"), FunctionCall("search_vector")])
        assert [r.result for r in results] == ["done", "done"]

    def test_one_failure_does_not_stop_the_batch(self):
        def broken(args):
            raise DomainError("boom", public_message="the school service could not be reached")

        dispatcher = ToolDispatcher({ToolName.COURSES_FIND_ALL: broken, ToolName.SEARCH_VECTOR: lambda a: "ok"})
        results = dispatcher.execute_many([FunctionCall("courses_find_all"), FunctionCall("search_vector")])

        assert [r.success for r in results] == [False, True]

    def test_empty_batch(self):
        assert ToolDispatcher({}).execute_many([]) == []
