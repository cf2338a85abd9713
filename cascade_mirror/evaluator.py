"""
Context-scoped evaluation over the client's execution contexts.

The host creates several execution contexts and only one of them holds the
chat panel. ContextScopedEvaluator tries each context in registration order
and stops at the first one that yields a usable value. SnapshotExtractor and
MessageInjector are its two uses.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .connection import CDPClient
from .page_scripts import CAPTURE_SCRIPT, injection_script

logger = logging.getLogger(__name__)

NO_CONTEXT_RESULT = {"ok": False, "reason": "no_context"}


class OutcomeKind(enum.Enum):
    VALUE = "value"
    EMPTY = "empty"
    EXCEPTION = "exception"


@dataclass(frozen=True)
class EvalOutcome:
    """Tagged result of evaluating an expression in one context.

    Attributes:
        kind: VALUE, EMPTY or EXCEPTION
        value: The returned value (VALUE only)
        context_id: Context that produced the outcome, if any
        error: Description of the failure (EXCEPTION only)
    """

    kind: OutcomeKind
    value: Any = None
    context_id: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def empty(cls, context_id: Optional[int] = None) -> "EvalOutcome":
        return cls(OutcomeKind.EMPTY, context_id=context_id)

    @property
    def has_value(self) -> bool:
        return self.kind is OutcomeKind.VALUE


def _is_empty_value(value: Any) -> bool:
    # Falsy scalars as the page would see them; {} and [] count as values.
    return value in (None, False, "", 0)


def classify_evaluation(response: Any, context_id: Optional[int] = None) -> EvalOutcome:
    """
    Turn a Runtime.evaluate response into an EvalOutcome.

    Args:
        response: ``result`` object of the Runtime.evaluate call
        context_id: Context the call targeted

    Returns:
        EXCEPTION when the page threw, VALUE for a non-empty value, EMPTY otherwise
    """
    if not isinstance(response, dict):
        return EvalOutcome.empty(context_id)

    details = response.get("exceptionDetails")
    if details:
        text = details.get("text", "exception") if isinstance(details, dict) else str(details)
        return EvalOutcome(OutcomeKind.EXCEPTION, context_id=context_id, error=text)

    remote_object = response.get("result")
    if not isinstance(remote_object, dict) or "value" not in remote_object:
        return EvalOutcome.empty(context_id)

    value = remote_object["value"]
    if _is_empty_value(value):
        return EvalOutcome.empty(context_id)
    return EvalOutcome(OutcomeKind.VALUE, value=value, context_id=context_id)


class ContextScopedEvaluator:
    """
    Evaluates an expression against each known context until one yields a value.

    Per-context failures (error frames, timeouts, page exceptions, empty
    results) are swallowed and the next context is tried. A value that itself
    carries an application-level error marker still ends the search.

    Attributes:
        client: CDPClient whose context registry is iterated
        timeout: Per-context call timeout in seconds (None: client default)
    """

    def __init__(self, client: CDPClient, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout

    async def evaluate(self, expression: str, *, await_promise: bool = False) -> EvalOutcome:
        """
        Evaluate ``expression`` in each context, in registration order.

        Returns:
            The first VALUE outcome, or an EMPTY outcome when no context
            produced one (including when no contexts are known)
        """
        contexts = self.client.contexts if self.client is not None else []
        if not contexts:
            return EvalOutcome.empty()

        for context in contexts:
            params = {
                "expression": expression,
                "returnByValue": True,
                "contextId": context.id,
            }
            if await_promise:
                params["awaitPromise"] = True

            try:
                response = await self.client.call(
                    "Runtime.evaluate", params, timeout=self.timeout
                )
            except Exception as e:
                logger.debug(f"Evaluation failed in context {context.id}: {e}")
                continue

            outcome = classify_evaluation(response, context.id)
            if outcome.kind is OutcomeKind.VALUE:
                return outcome
            if outcome.kind is OutcomeKind.EXCEPTION:
                logger.debug(f"Page exception in context {context.id}: {outcome.error}")

        return EvalOutcome.empty()


class SnapshotExtractor(ContextScopedEvaluator):
    """Captures the chat panel snapshot from whichever context holds it."""

    async def capture(self) -> Optional[dict]:
        """
        Capture a snapshot.

        Returns:
            The snapshot dict (possibly carrying an ``error`` marker), or None
            when no context produced a value
        """
        outcome = await self.evaluate(CAPTURE_SCRIPT)
        if outcome.has_value:
            return outcome.value
        return None


class MessageInjector(ContextScopedEvaluator):
    """Types a message into the host's chat editor and submits it."""

    async def inject(self, text: str) -> dict:
        """
        Inject ``text`` into the chat.

        Returns:
            The page's result, e.g. ``{"ok": True, "method": "click_submit"}``,
            or ``{"ok": False, "reason": "no_context"}``
        """
        outcome = await self.evaluate(injection_script(text), await_promise=True)
        if outcome.has_value:
            return outcome.value
        return dict(NO_CONTEXT_RESULT)
