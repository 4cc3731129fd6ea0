"""
Pytest Configuration and Shared Fixtures

Provides a recording stand-in for the vendor client and the usual node
building blocks.
"""

import pytest

from actual_node.credentials import Credentials
from actual_node.executor import ActualBudgetNode, NodeItem


class FakeBudgetClient:
    """Records every vendor call.

    ``responses`` maps a method name to a return value, or to a callable that
    receives the call's arguments (and may raise).
    """

    def __init__(self, responses=None):
        self.calls = []
        self.responses = dict(responses or {})

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        async def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            response = self.responses.get(name)
            if callable(response):
                return response(*args, **kwargs)
            return response

        return method

    def called(self, name):
        return [(args, kwargs) for method, args, kwargs in self.calls if method == name]

    def names(self):
        return [method for method, _, _ in self.calls]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def credentials():
    return Credentials(url="http://actual.local:5006", password="s3cret")


@pytest.fixture
def fake_client():
    return FakeBudgetClient()


@pytest.fixture
def node(fake_client, tmp_path):
    return ActualBudgetNode(client_factory=lambda: fake_client, data_home=tmp_path)


def make_item(resource, operation, budget_id="My Budget", **parameters):
    return NodeItem(
        parameters={
            "resource": resource,
            "operation": operation,
            "budgetId": budget_id,
            **parameters,
        }
    )
