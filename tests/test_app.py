"""Tests for KaloApp message routing, driven through a running app."""

import json

from kalo.app import KaloApp
from kalo.store import RequestRecord
from kalo.widget import CollectionsPanel, FilterBar, ResponseView

RESPONSE = '{"users": [{"id": 1}]}'
ALL_ROWS = ["api", "users", "GET List Users", "POST Create User"]


def make_app(response=""):
    records = [
        RequestRecord("List Users", folder="api", tags=["users"], response=RESPONSE),
        RequestRecord("Create User", "POST", folder="api", tags=["users"]),
    ]
    return KaloApp(records=records, response=response)


def row_names(app):
    return [node.name for node in app.query_one(CollectionsPanel).nodes]


def bar_visible(app):
    return app.query_one(FilterBar).has_class("visible")


async def focus_response(app, pilot):
    app.query_one(ResponseView).focus()
    await pilot.pause()


async def wait_for_query(app, pilot):
    await app.workers.wait_for_complete()
    await pilot.pause()


class TestTreeFilter:
    """Search filter over the collections panel."""

    async def test_escape_restores_tree(self):
        app = make_app()
        async with app.run_test() as pilot:
            await pilot.press("/", *"post")
            assert bar_visible(app)
            assert row_names(app) == ["api", "users", "POST Create User"]
            await pilot.press("escape")
            await pilot.pause()
            assert row_names(app) == ALL_ROWS
            assert not bar_visible(app)
            assert app.sessions.tree.last_input == "post"

    async def test_enter_keeps_filtered_tree(self):
        app = make_app()
        async with app.run_test() as pilot:
            await pilot.press("/", *"post", "enter")
            await pilot.pause()
            assert not bar_visible(app)
            assert row_names(app) == ["api", "users", "POST Create User"]
            assert app.sessions.tree.original is not None

    async def test_ctrl_r_restores_committed_filter(self):
        app = make_app()
        async with app.run_test() as pilot:
            await pilot.press("/", *"post", "enter")
            await pilot.pause()
            await pilot.press("ctrl+r")
            await pilot.pause()
            assert row_names(app) == ALL_ROWS
            assert app.sessions.tree.original is None
            assert app.sessions.tree.last_input == ""


class TestQueryFilter:
    """jq filter over the response view."""

    async def test_apply_shows_result(self):
        app = make_app(RESPONSE)
        async with app.run_test() as pilot:
            await focus_response(app, pilot)
            await pilot.press("f", *".users", "enter")
            await wait_for_query(app, pilot)
            view = app.query_one(ResponseView)
            assert view.get_text() == json.dumps([{"id": 1}], indent=2)
            assert not view.error
            assert view.border_title == "Response · jq: .users"
            assert app.sessions.query.applied_text == ".users"
            assert not bar_visible(app)

    async def test_error_keeps_filter_open(self):
        app = make_app(RESPONSE)
        async with app.run_test() as pilot:
            await focus_response(app, pilot)
            await pilot.press("f", *"syntax{{bad", "enter")
            await wait_for_query(app, pilot)
            view = app.query_one(ResponseView)
            assert view.get_text().startswith("jq Error: jq parse error")
            assert view.error
            assert app.sessions.query.active
            assert app.sessions.query.applied_text is None
            assert bar_visible(app)

    async def test_ctrl_r_shows_raw_body(self):
        app = make_app(RESPONSE)
        async with app.run_test() as pilot:
            await focus_response(app, pilot)
            await pilot.press("f", *".users", "enter")
            await wait_for_query(app, pilot)
            await pilot.press("ctrl+r")
            await pilot.pause()
            view = app.query_one(ResponseView)
            assert view.get_text() == RESPONSE
            assert view.border_title == "Response"
            assert app.sessions.query.applied_text is None
            assert app.sessions.query.last_input == ""

    async def test_no_response_keeps_filter_closed(self):
        app = make_app()
        async with app.run_test() as pilot:
            await focus_response(app, pilot)
            await pilot.press("f")
            await pilot.pause()
            assert app.sessions.active is None
            assert not bar_visible(app)


class TestOpenRequest:

    async def test_enter_on_leaf_loads_response(self):
        app = make_app()
        async with app.run_test() as pilot:
            await pilot.press("enter", "down", "enter", "down", "enter")
            await pilot.pause()
            assert app.current.name == "List Users"
            assert app.query_one(ResponseView).get_text() == RESPONSE
            assert app.sessions.query.body == RESPONSE
