"""Panels of the request browser: collections tree, response body and filter bar."""

from __future__ import annotations

from dataclasses import dataclass

from rich.text import Text
from textual import events
from textual.message import Message
from textual.widget import Widget

from kalo.session import (
    FilterScope,
    FilterSession,
    QueryFilterSession,
    SessionAction,
)
from kalo.store import RequestRecord
from kalo.tree import (
    CollectionNode,
    NodeKind,
    ancestors,
    recompute_visibility,
    toggle_expansion,
    visible_indices,
)

# Left to the screen so focus can move between panels.
_FOCUS_KEYS = ("tab", "shift+tab")

_METHOD_STYLES = {
    "GET": "green",
    "POST": "yellow",
    "PUT": "blue",
    "DELETE": "red",
    "PATCH": "dark_orange",
}


@dataclass
class FilterRequested(Message):
    scope: FilterScope


@dataclass
class ResetRequested(Message):
    scope: FilterScope


class CollectionsPanel(Widget, can_focus=True):
    """Folder / tag / request tree.  ``/`` filters it, ``ctrl+r`` clears the filter."""

    DEFAULT_CSS = """
    CollectionsPanel {
        width: 40;
        height: 1fr;
        padding: 0 1;
    }
    """

    @dataclass
    class RequestOpened(Message):
        record: RequestRecord

    def __init__(
        self,
        nodes: list[CollectionNode] | None = None,
        *,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self.nodes: list[CollectionNode] = recompute_visibility(nodes or [])
        self.selected: int = 0
        self._scroll_top: int = 0
        self._clamp_selection()

    # -- State -------------------------------------------------------------

    def set_nodes(self, nodes: list[CollectionNode]) -> None:
        """Show a new node list (a filter result or a restored tree)."""
        self.nodes = recompute_visibility(nodes)
        self._clamp_selection()

    def _clamp_selection(self) -> None:
        visible = visible_indices(self.nodes)
        if not visible:
            self.selected = 0
        elif self.selected not in visible:
            earlier = [i for i in visible if i < self.selected]
            self.selected = earlier[-1] if earlier else visible[0]

    def move_selection(self, delta: int) -> None:
        visible = visible_indices(self.nodes)
        if not visible:
            return
        pos = visible.index(self.selected) if self.selected in visible else 0
        pos = max(0, min(len(visible) - 1, pos + delta))
        self.selected = visible[pos]

    @property
    def selected_node(self) -> CollectionNode | None:
        if 0 <= self.selected < len(self.nodes):
            return self.nodes[self.selected]
        return None

    def activate_selected(self) -> Message | None:
        """Toggle a container, or open a request."""
        node = self.selected_node
        if node is None:
            return None
        if node.kind is NodeKind.LEAF:
            return self.RequestOpened(node.ref) if node.ref is not None else None
        toggle_expansion(self.nodes, self.selected)
        self._clamp_selection()
        return None

    # -- Keys --------------------------------------------------------------

    def on_key(self, event: events.Key) -> None:
        if event.key in _FOCUS_KEYS:
            return
        event.prevent_default()
        event.stop()
        message = self._handle_key(event)
        if message is not None:
            self.post_message(message)
        self.refresh()

    def _handle_key(self, event) -> Message | None:
        key = event.key
        char = event.character
        if key in ("up", "k"):
            self.move_selection(-1)
        elif key in ("down", "j"):
            self.move_selection(1)
        elif key == "pageup":
            self.move_selection(-max(1, self._visible_height()))
        elif key == "pagedown":
            self.move_selection(max(1, self._visible_height()))
        elif key in ("enter", "space"):
            return self.activate_selected()
        elif char == "/":
            return FilterRequested(FilterScope.TREE)
        elif key == "ctrl+r":
            return ResetRequested(FilterScope.TREE)
        return None

    # -- Rendering ---------------------------------------------------------

    def _visible_height(self) -> int:
        return self.content_region.height

    def _ensure_selected_visible(self, rows: list[int], height: int) -> None:
        if self.selected not in rows:
            return
        pos = rows.index(self.selected)
        if pos < self._scroll_top:
            self._scroll_top = pos
        elif pos >= self._scroll_top + height:
            self._scroll_top = pos - height + 1

    def render_row(self, index: int) -> Text:
        node = self.nodes[index]
        row = Text("  " * len(ancestors(self.nodes, index)))
        if node.is_container:
            row.append("- " if node.expanded else "+ ", style="dim")
            style = "bold" if node.kind is NodeKind.FOLDER else "italic cyan"
            row.append(node.name, style=style)
        elif isinstance(node.ref, RequestRecord):
            method = node.ref.method
            row.append(method, style=_METHOD_STYLES.get(method, "white"))
            row.append(" " + node.ref.name)
        else:
            row.append(node.name)
        return row

    def render(self) -> Text:
        height = self.content_region.height
        rows = visible_indices(self.nodes)
        if not rows:
            return Text("(no requests)", style="dim")
        self._ensure_selected_visible(rows, height)
        result = Text()
        for index in rows[self._scroll_top : self._scroll_top + height]:
            row = self.render_row(index)
            if index == self.selected and self.has_focus:
                row.stylize("reverse")
            elif index == self.selected:
                row.stylize("underline")
            result.append_text(row)
            result.append("\n")
        result.rstrip()
        return result


class ResponseView(Widget, can_focus=True):
    """Scrollable response body.  ``f`` opens the jq filter, ``ctrl+r`` drops it."""

    DEFAULT_CSS = """
    ResponseView {
        height: 1fr;
        padding: 0 1;
    }
    """

    def __init__(
        self,
        text: str = "",
        *,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self.lines: list[str] = text.split("\n") if text else []
        self.error: bool = False
        self._scroll_top: int = 0

    def set_text(self, text: str, *, error: bool = False) -> None:
        self.lines = text.split("\n") if text else []
        self.error = error
        self._scroll_top = 0
        self.refresh()

    def get_text(self) -> str:
        return "\n".join(self.lines)

    def _visible_height(self) -> int:
        return self.content_region.height

    def scroll_lines(self, delta: int) -> None:
        last = max(0, len(self.lines) - 1)
        self._scroll_top = max(0, min(last, self._scroll_top + delta))

    def on_key(self, event: events.Key) -> None:
        if event.key in _FOCUS_KEYS:
            return
        event.prevent_default()
        event.stop()
        message = self._handle_key(event)
        if message is not None:
            self.post_message(message)
        self.refresh()

    def _handle_key(self, event) -> Message | None:
        key = event.key
        page = max(1, self._visible_height())
        if key in ("up", "k"):
            self.scroll_lines(-1)
        elif key in ("down", "j"):
            self.scroll_lines(1)
        elif key in ("pageup", "ctrl+b"):
            self.scroll_lines(-page)
        elif key in ("pagedown", "ctrl+f"):
            self.scroll_lines(page)
        elif event.character == "g":
            self._scroll_top = 0
        elif event.character == "G":
            self.scroll_lines(len(self.lines))
        elif event.character == "f":
            return FilterRequested(FilterScope.QUERY)
        elif key == "ctrl+r":
            return ResetRequested(FilterScope.QUERY)
        return None

    def render(self) -> Text:
        if not self.lines:
            return Text("(no response)", style="dim")
        height = self.content_region.height
        body = "\n".join(self.lines[self._scroll_top : self._scroll_top + height])
        return Text(body, style="red" if self.error else "")


class FilterBar(Widget, can_focus=True):
    """Input line for the active filter session."""

    DEFAULT_CSS = """
    FilterBar {
        height: 1;
        padding: 0 1;
        background: $surface;
        display: none;
    }
    FilterBar.visible {
        display: block;
    }
    """

    MAX_SUGGESTIONS = 5

    @dataclass
    class SessionKey(Message):
        scope: FilterScope
        action: SessionAction

    def __init__(
        self,
        *,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self.session: FilterSession | None = None

    def attach(self, session: FilterSession) -> None:
        self.session = session
        self.add_class("visible")
        self.refresh()

    def detach(self) -> None:
        self.session = None
        self.remove_class("visible")

    def on_key(self, event: events.Key) -> None:
        event.prevent_default()
        event.stop()
        if self.session is None:
            return
        action = self.session.handle_key(event)
        if action is not SessionAction.IGNORED:
            self.post_message(self.SessionKey(self.session.scope, action))
        self.refresh()

    def render(self) -> Text:
        session = self.session
        if session is None:
            return Text()
        label = "search" if session.scope is FilterScope.TREE else "jq"
        result = Text(f"{label} filter: ", style="bold")
        result.append_text(render_input(session.text, session.cursor))
        if isinstance(session, QueryFilterSession) and session.suggestions:
            result.append("  ↑↓ Tab Enter Esc | ", style="dim")
            result.append_text(
                render_suggestions(
                    session.suggestions, session.selected, self.MAX_SUGGESTIONS
                )
            )
        else:
            result.append("  Enter: apply • Esc: cancel", style="dim")
        return result


def render_input(text: str, cursor: int) -> Text:
    """The input text with the character under the cursor reversed."""
    result = Text(text[:cursor])
    under = text[cursor] if cursor < len(text) else " "
    result.append(under, style="reverse")
    result.append(text[cursor + 1 :])
    return result


def render_suggestions(suggestions: list[str], selected: int, limit: int) -> Text:
    """A window of *limit* suggestions that keeps *selected* in view."""
    start = max(0, min(selected - limit + 1, len(suggestions) - limit))
    window = suggestions[start : start + limit]
    result = Text()
    for offset, suggestion in enumerate(window):
        if offset:
            result.append(" ")
        if start + offset == selected:
            result.append(f"[{suggestion}]", style="bold yellow")
        else:
            result.append(suggestion)
    hidden = len(suggestions) - len(window)
    if hidden > 0:
        result.append(f" (+{hidden} more)", style="dim")
    return result
