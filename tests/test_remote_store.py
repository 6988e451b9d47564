import datetime

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import make_attachment, make_fields
from portal.exceptions import ActivityNotFound, ActivityValidationError, StoreUnavailable
from portal.stores.base import REMOVE_ATTACHMENT
from portal.stores.remote import RemoteActivityStore


def activity_service(state):
    """Minimal service speaking the /activities REST contract."""
    rows = state.setdefault("rows", {})
    counter = {"next": 1}

    async def list_activities(request):
        if state.get("down"):
            return web.json_response({"error": "database disconnected"}, status=503)
        return web.json_response(sorted(rows.values(), key=lambda r: r["date"]))

    async def create(request):
        body = await request.json()
        if not body.get("title"):
            return web.json_response({"error": "title is required"}, status=400)
        row = {**body, "id": str(counter["next"]), "createdAt": 1000 + counter["next"]}
        counter["next"] += 1
        rows[row["id"]] = row
        return web.json_response(row, status=201)

    async def update(request):
        activity_id = request.match_info["id"]
        if activity_id not in rows:
            return web.json_response(None)
        body = await request.json()
        row = rows[activity_id]
        remove = body.pop("remove_attachment", False)
        row.update(body)
        if remove or row.get("attachment") is None:
            row.pop("attachment", None)
        return web.json_response(row)

    async def delete(request):
        rows.pop(request.match_info["id"], None)
        return web.json_response({"success": True})

    app = web.Application()
    app.router.add_get("/api/activities/", list_activities)
    app.router.add_post("/api/activities/", create)
    app.router.add_put("/api/activities/{id}", update)
    app.router.add_delete("/api/activities/{id}", delete)
    return app


@pytest.fixture
async def remote():
    state = {}
    server = TestServer(activity_service(state))
    await server.start_server()
    store = RemoteActivityStore(str(server.make_url("/api")))
    yield store, state
    await store.close()
    await server.close()


async def test_round_trip(remote):
    store, _ = remote
    created = await store.create(make_fields(date=datetime.date(2024, 3, 10)), make_attachment())
    assert created.id == "1"
    assert created.attachment.name == "midterm.pdf"

    await store.update(created.id, make_fields(title="Midterm (room 12)"))
    (stored,) = await store.list()
    assert stored.title == "Midterm (room 12)"
    assert stored.created_at == created.created_at
    assert stored.attachment is not None

    await store.update(created.id, make_fields(), REMOVE_ATTACHMENT)
    (stored,) = await store.list()
    assert stored.attachment is None

    await store.remove(created.id)
    await store.remove(created.id)
    assert await store.list() == []


async def test_validation_error_is_surfaced(remote):
    store, _ = remote
    fields = make_fields()
    fields.title = ""
    with pytest.raises(ActivityValidationError, match="title is required"):
        await store.create(fields)


async def test_update_missing(remote):
    store, _ = remote
    with pytest.raises(ActivityNotFound):
        await store.update("42", make_fields())


async def test_service_unavailable(remote):
    store, state = remote
    state["down"] = True
    with pytest.raises(StoreUnavailable):
        await store.list()


async def test_unreachable_host():
    store = RemoteActivityStore("http://127.0.0.1:9/api")
    try:
        with pytest.raises(StoreUnavailable):
            await store.list()
    finally:
        await store.close()
