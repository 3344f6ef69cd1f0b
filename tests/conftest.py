"""
Shared fixtures: a scripted model and response objects.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from core import CapabilityRegistry, FunctionCall


@dataclass
class FakeModelResponse:
    text: Optional[str] = None
    function_calls: List[FunctionCall] = field(default_factory=list)


class ScriptedModel:
    """
    Stands in for the "ask the model" boundary.

    Returns the scripted responses in order and records every request.
    Once the script is exhausted the last response is repeated.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def __call__(self, **kwargs):
        self.requests.append(kwargs)
        index = min(len(self.requests) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


def calls(*names, **args):
    """Build a function call list: calls("a", "b") -> [FunctionCall("a"), FunctionCall("b")]."""
    return [FunctionCall(name=n, args=dict(args)) for n in names]


@pytest.fixture
def registry():
    return CapabilityRegistry.build()
