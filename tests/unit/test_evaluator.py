"""
Unit tests for context-scoped evaluation (SnapshotExtractor, MessageInjector).

Uses a mocked CDPClient whose call() answers per context id.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from cascade_mirror.connection import CDPClient, ExecutionContext
from cascade_mirror.evaluator import (
    ContextScopedEvaluator,
    EvalOutcome,
    MessageInjector,
    OutcomeKind,
    SnapshotExtractor,
    classify_evaluation,
)
from cascade_mirror.exceptions import CallTimeoutError, CommandFailedError
from cascade_mirror.page_scripts import CAPTURE_SCRIPT


def make_client(responses):
    """
    Build a mock client with one context per entry of ``responses``.

    Args:
        responses: Dict of context id -> response dict or exception instance
    """
    client = MagicMock(spec=CDPClient)
    client.contexts = [ExecutionContext(id=cid, name=f"ctx-{cid}") for cid in responses]

    async def fake_call(method, params, timeout=None):
        answer = responses[params["contextId"]]
        if isinstance(answer, Exception):
            raise answer
        return answer

    client.call = AsyncMock(side_effect=fake_call)
    return client


def visited_contexts(client):
    return [c.args[1]["contextId"] for c in client.call.call_args_list]


@pytest.mark.unit
class TestClassifyEvaluation:
    """Test mapping of Runtime.evaluate responses to tagged outcomes."""

    def test_value(self):
        outcome = classify_evaluation({"result": {"type": "object", "value": {"a": 1}}}, 3)
        assert outcome.kind is OutcomeKind.VALUE
        assert outcome.value == {"a": 1}
        assert outcome.context_id == 3

    def test_missing_value_is_empty(self):
        outcome = classify_evaluation({"result": {"type": "undefined"}})
        assert outcome.kind is OutcomeKind.EMPTY

    def test_falsy_values_are_empty(self):
        for value in (None, False, "", 0):
            assert classify_evaluation({"result": {"value": value}}).kind is OutcomeKind.EMPTY

    def test_empty_containers_are_values(self):
        assert classify_evaluation({"result": {"value": {}}}).kind is OutcomeKind.VALUE
        assert classify_evaluation({"result": {"value": []}}).kind is OutcomeKind.VALUE

    def test_exception_details(self):
        outcome = classify_evaluation(
            {"result": {"type": "object", "subtype": "error"},
             "exceptionDetails": {"text": "Uncaught ReferenceError"}}
        )
        assert outcome.kind is OutcomeKind.EXCEPTION
        assert outcome.error == "Uncaught ReferenceError"

    def test_non_dict_response_is_empty(self):
        assert classify_evaluation(None).kind is OutcomeKind.EMPTY
        assert classify_evaluation({"result": "weird"}).kind is OutcomeKind.EMPTY


@pytest.mark.unit
@pytest.mark.asyncio
class TestContextScopedEvaluator:
    """Test the try-each-context retry policy."""

    async def test_visits_in_registration_order_and_stops_at_first_value(self):
        client = make_client({
            4: {"result": {}},
            2: CommandFailedError("gone", error={"code": -32000}),
            9: {"result": {"value": "found"}},
            1: {"result": {"value": "never reached"}},
        })
        evaluator = ContextScopedEvaluator(client)

        outcome = await evaluator.evaluate("1+1")

        assert outcome == EvalOutcome(OutcomeKind.VALUE, value="found", context_id=9)
        assert visited_contexts(client) == [4, 2, 9]

    async def test_no_contexts_returns_empty_without_calls(self):
        client = make_client({})
        outcome = await ContextScopedEvaluator(client).evaluate("1+1")

        assert outcome.kind is OutcomeKind.EMPTY
        client.call.assert_not_called()

    async def test_exhaustion_returns_empty(self):
        client = make_client({
            1: CallTimeoutError("Call timed out", method="Runtime.evaluate", timeout=1.0),
            2: {"result": {"value": None}},
            3: {"exceptionDetails": {"text": "boom"}, "result": {}},
        })
        outcome = await ContextScopedEvaluator(client).evaluate("1+1")

        assert outcome.kind is OutcomeKind.EMPTY
        assert visited_contexts(client) == [1, 2, 3]

    async def test_params_sent(self):
        client = make_client({5: {"result": {"value": 1}}})
        await ContextScopedEvaluator(client).evaluate("x", await_promise=True)

        method, params = client.call.call_args.args
        assert method == "Runtime.evaluate"
        assert params == {
            "expression": "x",
            "returnByValue": True,
            "awaitPromise": True,
            "contextId": 5,
        }


@pytest.mark.unit
@pytest.mark.asyncio
class TestSnapshotExtractor:
    """Test snapshot capture."""

    async def test_capture_returns_snapshot(self):
        snapshot = {"html": "<div id='cascade'></div>", "css": "", "color": "red"}
        client = make_client({1: {"result": {"value": snapshot}}})

        result = await SnapshotExtractor(client).capture()

        assert result == snapshot
        assert client.call.call_args.args[1]["expression"] == CAPTURE_SCRIPT
        assert "awaitPromise" not in client.call.call_args.args[1]

    async def test_error_marker_still_stops_the_search(self):
        client = make_client({
            1: {"result": {"value": {"error": "cascade not found"}}},
            2: {"result": {"value": {"html": "<div></div>"}}},
        })

        result = await SnapshotExtractor(client).capture()

        assert result == {"error": "cascade not found"}
        assert visited_contexts(client) == [1]

    async def test_capture_without_value_returns_none(self):
        client = make_client({1: {"result": {}}})
        assert await SnapshotExtractor(client).capture() is None


@pytest.mark.unit
@pytest.mark.asyncio
class TestMessageInjector:
    """Test message injection."""

    async def test_first_context_throws_second_succeeds(self):
        client = make_client({
            1: RuntimeError("context destroyed"),
            2: {"result": {"value": {"ok": True, "method": "click_submit"}}},
        })

        result = await MessageInjector(client).inject("hello")

        assert result == {"ok": True, "method": "click_submit"}
        assert visited_contexts(client) == [1, 2]

    async def test_no_context(self):
        client = make_client({})
        assert await MessageInjector(client).inject("hello") == {
            "ok": False,
            "reason": "no_context",
        }

    async def test_all_contexts_empty(self):
        client = make_client({1: {"result": {}}, 2: {"result": {"value": ""}}})
        assert await MessageInjector(client).inject("hello") == {
            "ok": False,
            "reason": "no_context",
        }

    async def test_page_failure_value_is_returned(self):
        client = make_client({1: {"result": {"value": {"ok": False, "reason": "busy"}}}})
        assert await MessageInjector(client).inject("hi") == {"ok": False, "reason": "busy"}

    async def test_awaits_promise_and_embeds_text(self):
        client = make_client({1: {"result": {"value": {"ok": True, "method": "enter_keypress"}}}})
        await MessageInjector(client).inject('say "hi"\n')

        params = client.call.call_args.args[1]
        assert params["awaitPromise"] is True
        assert '"say \\"hi\\"\\n"' in params["expression"]
