"""Filter sessions: the text input behind the collections search and the jq filter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto

from kalo._schema import build_suggestions, match_suggestions, parse_body
from kalo._textnav import (
    delete_char_back,
    delete_char_forward,
    delete_word_back,
    find_next_boundary,
    find_previous_boundary,
    insert_char,
)
from kalo._tree_filter import apply_collection_filter
from kalo.query import Evaluator, QueryError, QueryResult, jq_evaluate, run_query
from kalo.tree import CollectionNode, clone_nodes

logger = logging.getLogger(__name__)


class FilterScope(Enum):
    TREE = auto()
    QUERY = auto()


class SessionAction(Enum):
    """What a key press did, so the caller knows what to redraw."""

    IGNORED = auto()
    MOVED = auto()  # cursor or selection only
    EDITED = auto()  # text changed
    EXITED = auto()  # Escape
    COMMITTED = auto()  # Enter on the tree filter
    APPLY = auto()  # Enter on the jq filter; dispatch ``pending``


def _is_printable(char: str | None) -> bool:
    return bool(char) and len(char) == 1 and " " <= char <= "~"


class FilterSession:
    """State shared by both scopes: the input text, its cursor and the
    text remembered between activations."""

    scope: FilterScope

    def __init__(self) -> None:
        self.active: bool = False
        self.text: str = ""
        self.cursor: int = 0
        self.last_input: str = ""

    # -- Lifecycle ---------------------------------------------------------

    def start(self) -> None:
        self.active = True
        self.text = self.last_input
        self.cursor = len(self.text)

    def _deactivate(self) -> None:
        self.last_input = self.text
        self.active = False
        self.text = ""
        self.cursor = 0

    def reset(self) -> list[CollectionNode] | None:
        self.last_input = ""
        return None

    # -- Editing -----------------------------------------------------------

    def _set_text(self, text: str, cursor: int) -> bool:
        changed = text != self.text
        self.text = text
        self.cursor = cursor
        if changed:
            self._text_changed()
        return changed

    def _text_changed(self) -> None:
        """Hook run after every edit that changes the text."""

    def insert_char(self, char: str) -> bool:
        return self._set_text(*insert_char(self.text, self.cursor, char))

    def backspace(self) -> bool:
        return self._set_text(*delete_char_back(self.text, self.cursor))

    def delete(self) -> bool:
        return self._set_text(*delete_char_forward(self.text, self.cursor))

    def delete_word_back(self) -> bool:
        return self._set_text(*delete_word_back(self.text, self.cursor))

    def cursor_left(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1

    def cursor_right(self) -> None:
        if self.cursor < len(self.text):
            self.cursor += 1

    def cursor_home(self) -> None:
        self.cursor = 0

    def cursor_end(self) -> None:
        self.cursor = len(self.text)

    def word_left(self) -> None:
        self.cursor = find_previous_boundary(self.text, self.cursor)

    def word_right(self) -> None:
        self.cursor = find_next_boundary(self.text, self.cursor)

    # -- Keys --------------------------------------------------------------

    def handle_key(self, event) -> SessionAction:
        """Route a key event (anything with ``key`` and ``character``)."""
        key = event.key
        char = event.character

        if key == "escape":
            return self._on_escape()
        if key == "enter":
            return self._on_enter()

        action = self._handle_scope_key(key)
        if action is not None:
            return action

        if key == "backspace":
            return SessionAction.EDITED if self.backspace() else SessionAction.IGNORED
        if key == "delete":
            return SessionAction.EDITED if self.delete() else SessionAction.IGNORED
        if key == "ctrl+w":
            return (
                SessionAction.EDITED if self.delete_word_back() else SessionAction.IGNORED
            )
        if key == "left":
            self.cursor_left()
        elif key == "right":
            self.cursor_right()
        elif key == "ctrl+left":
            self.word_left()
        elif key == "ctrl+right":
            self.word_right()
        elif key in ("home", "ctrl+a"):
            self.cursor_home()
        elif key in ("end", "ctrl+e"):
            self.cursor_end()
        elif _is_printable(char):
            self.insert_char(char)
            return SessionAction.EDITED
        else:
            return SessionAction.IGNORED
        return SessionAction.MOVED

    def _handle_scope_key(self, key: str) -> SessionAction | None:
        return None

    def _on_escape(self) -> SessionAction:
        self.exit()
        return SessionAction.EXITED

    def _on_enter(self) -> SessionAction:
        self._deactivate()
        return SessionAction.COMMITTED

    def exit(self) -> list[CollectionNode] | None:
        self._deactivate()
        return None


class TreeFilterSession(FilterSession):
    """Live substring filter over the collections tree.

    ``nodes`` is what the collections panel should show.  The first
    non-empty filter snapshots the live tree; every later keystroke
    filters that snapshot again.
    """

    scope = FilterScope.TREE

    def __init__(self) -> None:
        super().__init__()
        self.original: list[CollectionNode] | None = None
        self.nodes: list[CollectionNode] = []

    def start(self, nodes: list[CollectionNode] | None = None) -> None:
        super().start()
        if nodes is not None:
            self.nodes = nodes

    def refilter(self) -> list[CollectionNode]:
        if self.original is None:
            if not self.text:
                self.nodes = apply_collection_filter(self.nodes, "")
                return self.nodes
            self.original = clone_nodes(self.nodes)
        self.nodes = apply_collection_filter(self.original, self.text)
        return self.nodes

    def _text_changed(self) -> None:
        self.refilter()

    def _on_enter(self) -> SessionAction:
        self.commit()
        return SessionAction.COMMITTED

    def commit(self) -> list[CollectionNode]:
        """Leave filter mode but keep the filtered tree on screen."""
        if not self.text:
            self.original = None
        self._deactivate()
        return self.nodes

    def exit(self) -> list[CollectionNode] | None:
        """Leave filter mode.  Returns the pre-filter tree when one was saved."""
        self._deactivate()
        restore, self.original = self.original, None
        if restore is not None:
            self.nodes = restore
        return restore

    def reset(self) -> list[CollectionNode] | None:
        """Forget the remembered input.  Returns the pre-filter tree when one was saved."""
        super().reset()
        restore, self.original = self.original, None
        if restore is not None:
            self.nodes = restore
        return restore


@dataclass
class QueryRequest:
    """A jq evaluation waiting to run off the UI thread."""

    token: int
    expression: str
    body: str


class QueryFilterSession(FilterSession):
    """jq filter over the current response body, with autocomplete."""

    scope = FilterScope.QUERY

    def __init__(self, evaluator: Evaluator = jq_evaluate) -> None:
        super().__init__()
        self.evaluator = evaluator
        self.body: str = ""
        self._root: object | None = None
        self.suggestions: list[str] = []
        self.selected: int = 0
        self.applied_text: str | None = None
        self.pending: QueryRequest | None = None
        self._token: int = 0

    def set_body(self, body: str) -> None:
        """Use a new response body; an applied filter no longer applies to it."""
        self.body = body
        self._root = parse_body(body)
        self.applied_text = None
        self.pending = None
        if self.active:
            self.refresh_suggestions()

    def start(self) -> None:
        super().start()
        self.refresh_suggestions()

    def refresh_suggestions(self) -> list[str]:
        self.suggestions = match_suggestions(
            build_suggestions(self.text, self._root), self.text
        )
        self.selected = 0
        return self.suggestions

    def _text_changed(self) -> None:
        self.refresh_suggestions()

    @property
    def selected_suggestion(self) -> str | None:
        if 0 <= self.selected < len(self.suggestions):
            return self.suggestions[self.selected]
        return None

    def select_next(self) -> None:
        if self.suggestions:
            self.selected = (self.selected + 1) % len(self.suggestions)

    def select_previous(self) -> None:
        if self.suggestions:
            self.selected = (self.selected - 1) % len(self.suggestions)

    def accept_suggestion(self) -> bool:
        """Tab: replace the input with the highlighted suggestion."""
        suggestion = self.selected_suggestion
        if suggestion is None:
            return False
        self._set_text(suggestion, len(suggestion))
        self.selected = 0
        return True

    def _handle_scope_key(self, key: str) -> SessionAction | None:
        if key == "tab":
            return SessionAction.EDITED if self.accept_suggestion() else SessionAction.IGNORED
        if key == "up":
            self.select_previous()
            return SessionAction.MOVED
        if key == "down":
            self.select_next()
            return SessionAction.MOVED
        return None

    def _on_enter(self) -> SessionAction:
        suggestion = self.selected_suggestion
        if suggestion is not None:
            self.text = suggestion
            self.cursor = len(suggestion)
        request = self.apply()
        return SessionAction.APPLY if request is not None else SessionAction.IGNORED

    # -- Evaluation --------------------------------------------------------

    def apply(self, body: str | None = None) -> QueryRequest | None:
        """Queue an evaluation of the current text.

        The request is tagged with a fresh token; only the result of the
        latest request is accepted by ``receive``.
        """
        if body is not None and body != self.body:
            self.set_body(body)
        if not self.text or not self.body:
            return None
        self._token += 1
        self.pending = QueryRequest(self._token, self.text, self.body)
        logger.debug("dispatch jq %r (token %d)", self.text, self._token)
        return self.pending

    def evaluate(self, request: QueryRequest) -> QueryResult:
        """Run *request*.  Safe to call from a worker thread."""
        try:
            output = run_query(request.expression, request.body, self.evaluator)
        except QueryError as exc:
            logger.info("jq %r failed: %s", request.expression, exc)
            return QueryResult(request.token, request.expression, error=exc)
        return QueryResult(request.token, request.expression, output=output)

    def is_current(self, result: QueryResult) -> bool:
        return self.pending is not None and result.token == self.pending.token

    def receive(self, result: QueryResult) -> bool:
        """Accept a finished evaluation.  Returns False for stale results.

        Success records the applied filter and closes the session; a
        failure leaves it open for editing.
        """
        if not self.is_current(result):
            logger.debug("discard stale jq result (token %d)", result.token)
            return False
        self.pending = None
        if result.ok:
            self.applied_text = result.expression
            if self.active:
                self._deactivate()
        return True

    def apply_now(self, body: str | None = None) -> QueryResult | None:
        """Dispatch and evaluate synchronously."""
        request = self.apply(body)
        if request is None:
            return None
        result = self.evaluate(request)
        self.receive(result)
        return result

    def exit(self) -> None:
        self._deactivate()
        self.suggestions = []
        self.selected = 0
        self.pending = None
        return None

    def reset(self) -> None:
        super().reset()
        self.applied_text = None
        return None


class FilterSessions:
    """One long-lived session per scope."""

    def __init__(self, evaluator: Evaluator = jq_evaluate) -> None:
        self.tree = TreeFilterSession()
        self.query = QueryFilterSession(evaluator)

    def get(self, scope: FilterScope) -> FilterSession:
        return self.tree if scope is FilterScope.TREE else self.query

    @property
    def active(self) -> FilterSession | None:
        for session in (self.tree, self.query):
            if session.active:
                return session
        return None

    def reset(self, scope: FilterScope) -> list[CollectionNode] | None:
        """Clear what *scope* remembers.  For the tree, returns the tree to restore."""
        return self.get(scope).reset()
