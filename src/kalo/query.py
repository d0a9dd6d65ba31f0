"""jq evaluation over response bodies."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass

import jq

logger = logging.getLogger(__name__)

INDENT = 2


class QueryError(Exception):
    """A jq filter could not produce output.  ``str(err)`` is shown to the user."""

    kind = "query"


class QueryParseError(QueryError):
    kind = "parse"


class QueryEvalError(QueryError):
    kind = "eval"


class ResponseDecodeError(QueryError):
    kind = "json"


# (expression, value) -> every output of the expression
Evaluator = Callable[[str, object], list[object]]


def jq_evaluate(expression: str, value: object) -> list[object]:
    """Run *expression* against *value* with the jq library."""
    try:
        program = jq.compile(expression)
    except ValueError as exc:
        raise QueryParseError(f"jq parse error: {exc}") from exc
    try:
        return program.input_value(value).all()
    except ValueError as exc:
        raise QueryEvalError(f"jq filter error: {exc}") from exc


def shape_results(results: list[object]) -> object:
    """Nothing becomes null, one result stays itself, several become a list."""
    if not results:
        return None
    if len(results) == 1:
        return results[0]
    return list(results)


def format_result(value: object) -> str:
    return json.dumps(value, indent=INDENT, ensure_ascii=False)


def run_query(
    expression: str, body: str, evaluator: Evaluator = jq_evaluate
) -> str:
    """Decode *body*, evaluate *expression* and return indented JSON.

    Raises ``ResponseDecodeError``, ``QueryParseError`` or ``QueryEvalError``.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ResponseDecodeError(f"JSON parse error: {exc}") from exc
    results = evaluator(expression, data)
    logger.debug("jq %r produced %d result(s)", expression, len(results))
    return format_result(shape_results(results))


@dataclass
class QueryResult:
    """Outcome of one dispatched query, tagged with the dispatch token."""

    token: int
    expression: str
    output: str = ""
    error: QueryError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
