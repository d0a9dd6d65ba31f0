"""Terminal request browser."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Footer, Header, Static

from kalo.query import QueryResult
from kalo.session import FilterScope, FilterSessions, QueryRequest, SessionAction
from kalo.store import (
    RequestRecord,
    StoreError,
    build_collection_nodes,
    load_requests,
    parse_requests,
)
from kalo.widget import (
    CollectionsPanel,
    FilterBar,
    FilterRequested,
    ResetRequested,
    ResponseView,
)

logger = logging.getLogger(__name__)

# Data directory path
_DATA_DIR = Path(__file__).parent / "data"


class KaloApp(App):
    """Browse a request collection and filter response bodies with jq."""

    CSS_PATH = "app.tcss"
    TITLE = "kalo"
    ENABLE_COMMAND_PALETTE = False

    @dataclass
    class QueryFinished(Message):
        result: QueryResult

    def __init__(
        self,
        records: list[RequestRecord] | None = None,
        response: str = "",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.records = records or []
        self.initial_response = response
        self.sessions = FilterSessions()
        self.current: RequestRecord | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main"):
            yield CollectionsPanel(build_collection_nodes(self.records), id="collections")
            with Vertical(id="right"):
                yield Static("", id="request-info")
                yield ResponseView(self.initial_response, id="response")
        yield FilterBar(id="filter-bar")
        yield Footer()

    def on_mount(self) -> None:
        self.sessions.query.set_body(self.initial_response)
        self._update_response_title()
        self.query_one("#collections").focus()

    # -- Helpers -----------------------------------------------------------

    @property
    def _collections(self) -> CollectionsPanel:
        return self.query_one("#collections", CollectionsPanel)

    @property
    def _response(self) -> ResponseView:
        return self.query_one("#response", ResponseView)

    @property
    def _filter_bar(self) -> FilterBar:
        return self.query_one("#filter-bar", FilterBar)

    def _update_response_title(self) -> None:
        applied = self.sessions.query.applied_text
        self._response.border_title = f"Response · jq: {applied}" if applied else "Response"

    def _close_filter_bar(self, scope: FilterScope) -> None:
        self._filter_bar.detach()
        target = self._collections if scope is FilterScope.TREE else self._response
        target.focus()

    # -- Event handlers ----------------------------------------------------

    def on_filter_requested(self, event: FilterRequested) -> None:
        if self.sessions.active is not None:
            return
        if event.scope is FilterScope.TREE:
            session = self.sessions.tree
            session.start(self._collections.nodes)
        else:
            if not self.sessions.query.body:
                self.notify("No response to filter", severity="warning")
                return
            session = self.sessions.query
            session.start()
        bar = self._filter_bar
        bar.attach(session)
        bar.focus()

    def on_reset_requested(self, event: ResetRequested) -> None:
        if self.sessions.active is not None:
            return
        if event.scope is FilterScope.TREE:
            restore = self.sessions.reset(FilterScope.TREE)
            if restore is not None:
                self._collections.set_nodes(restore)
                self._collections.refresh()
        else:
            self.sessions.reset(FilterScope.QUERY)
            self._response.set_text(self.sessions.query.body)
            self._update_response_title()
        logger.debug("reset %s filter", event.scope.name.lower())

    def on_collections_panel_request_opened(
        self, event: CollectionsPanel.RequestOpened
    ) -> None:
        record = event.record
        self.current = record
        logger.debug("open request %s", record.label)
        info = self.query_one("#request-info", Static)
        info.update(f"[b]{record.method}[/b] {record.url}")
        self.sessions.query.set_body(record.response)
        self._response.set_text(record.response)
        self._update_response_title()

    def on_filter_bar_session_key(self, event: FilterBar.SessionKey) -> None:
        if event.scope is FilterScope.TREE:
            session = self.sessions.tree
            if event.action is SessionAction.EDITED:
                self._collections.set_nodes(session.nodes)
            elif event.action is SessionAction.EXITED:
                self._collections.set_nodes(session.nodes)
                self._close_filter_bar(event.scope)
            elif event.action is SessionAction.COMMITTED:
                self._close_filter_bar(event.scope)
            self._collections.refresh()
            return

        if event.action is SessionAction.EXITED:
            self._close_filter_bar(event.scope)
        elif event.action is SessionAction.APPLY:
            request = self.sessions.query.pending
            if request is not None:
                self._dispatch_query(request)

    def _dispatch_query(self, request: QueryRequest) -> None:
        session = self.sessions.query

        def evaluate() -> None:
            self.post_message(self.QueryFinished(session.evaluate(request)))

        self.run_worker(evaluate, thread=True, group="jq")

    def on_kalo_app_query_finished(self, event: KaloApp.QueryFinished) -> None:
        session = self.sessions.query
        result = event.result
        if not session.receive(result):
            return
        if result.ok:
            self._response.set_text(result.output)
            self._update_response_title()
            self._close_filter_bar(FilterScope.QUERY)
        else:
            self._response.set_text(f"jq Error: {result.error}", error=True)
            self.notify(str(result.error), severity="error", timeout=6)
            self._filter_bar.refresh()


def _load_data(filename: str) -> str:
    """Load content from data directory."""
    return (_DATA_DIR / filename).read_text(encoding="utf-8")


def _setup_logging(log_file: str, level: str) -> None:
    # Without a log file the package logger stays silent.
    if not log_file:
        logging.getLogger("kalo").addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        filename=log_file,
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="kalo",
        description="Terminal HTTP request browser with jq response filtering",
    )
    parser.add_argument(
        "collection",
        nargs="?",
        default="",
        help="JSON collection file (a bundled sample is used when omitted)",
    )
    parser.add_argument(
        "-r", "--response",
        default="",
        help="file whose content is shown as the initial response",
    )
    parser.add_argument(
        "--log-file",
        default="",
        help="write log records to this file",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="log level (default: WARNING)",
    )
    args = parser.parse_args()
    _setup_logging(args.log_file, args.log_level)

    try:
        if args.collection:
            records = load_requests(args.collection)
        else:
            records = parse_requests(json.loads(_load_data("sample.json")))
        response = (
            Path(args.response).read_text(encoding="utf-8") if args.response else ""
        )
    except (OSError, json.JSONDecodeError, StoreError) as exc:
        print(f"kalo: {exc}", file=sys.stderr)
        sys.exit(1)

    app = KaloApp(records=records, response=response)
    app.run()


if __name__ == "__main__":
    main()
