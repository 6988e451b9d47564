import datetime
import json

import pytest
from pydantic import ValidationError

from conftest import make_attachment, make_fields
from portal.exceptions import ActivityNotFound, StoreUnavailable
from portal.models.activity import Activity, ActivityFields, ActivityType
from portal.services.blobs import FileBlobStore, MemoryBlobStore
from portal.stores.base import REMOVE_ATTACHMENT
from portal.stores.local import InMemoryActivityStore, LocalActivityStore


@pytest.fixture(params=["memory", "local-memory-blob", "local-file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryActivityStore()
    if request.param == "local-memory-blob":
        return LocalActivityStore(MemoryBlobStore())
    return LocalActivityStore(FileBlobStore(str(tmp_path / "data")))


async def test_create_then_list(any_store):
    fields = make_fields(description="Chapters 1-4")
    created = await any_store.create(fields)

    activities = await any_store.list()
    assert len(activities) == 1
    stored = activities[0]
    assert stored.id == created.id
    assert stored.created_at == created.created_at
    assert stored.field_values() == fields.field_values()
    assert stored.attachment is None


async def test_ids_are_unique(any_store):
    first = await any_store.create(make_fields(title="A"))
    second = await any_store.create(make_fields(title="B"))
    assert first.id != second.id


async def test_list_sorted_by_date_then_creation(any_store):
    late = await any_store.create(make_fields(title="late", date=datetime.date(2024, 5, 1)))
    same_a = await any_store.create(make_fields(title="same-a", date=datetime.date(2024, 4, 1)))
    early = await any_store.create(make_fields(title="early", date=datetime.date(2024, 3, 1)))
    same_b = await any_store.create(make_fields(title="same-b", date=datetime.date(2024, 4, 1)))

    ids = [a.id for a in await any_store.list()]
    assert ids == [early.id, same_a.id, same_b.id, late.id]


async def test_list_does_not_filter_expired(any_store):
    await any_store.create(make_fields(date=datetime.date(2000, 1, 1)))
    assert len(await any_store.list()) == 1


async def test_update_replaces_fields_and_keeps_identity(any_store):
    created = await any_store.create(make_fields(), make_attachment())
    new_fields = make_fields(title="Final exam", subject="Finance", date=datetime.date(2024, 6, 1), type="assignment")

    await any_store.update(created.id, new_fields)

    (stored,) = await any_store.list()
    assert stored.id == created.id
    assert stored.created_at == created.created_at
    assert stored.title == "Final exam"
    assert stored.subject == "Finance"
    assert stored.type is ActivityType.ASSIGNMENT
    assert stored.date == datetime.date(2024, 6, 1)
    # no attachment argument keeps the current one
    assert stored.attachment == created.attachment


async def test_update_replaces_attachment(any_store):
    created = await any_store.create(make_fields(), make_attachment(name="old.pdf"))
    replacement = make_attachment(name="new.pdf", data=b"new")

    await any_store.update(created.id, make_fields(), replacement)

    (stored,) = await any_store.list()
    assert stored.attachment == replacement


async def test_update_removes_attachment_explicitly(any_store):
    created = await any_store.create(make_fields(), make_attachment())

    await any_store.update(created.id, make_fields(), REMOVE_ATTACHMENT)

    (stored,) = await any_store.list()
    assert stored.attachment is None
    assert "attachment" not in stored.to_wire()


async def test_update_missing_activity(any_store):
    with pytest.raises(ActivityNotFound):
        await any_store.update("missing", make_fields())


async def test_remove_is_idempotent(any_store):
    keep = await any_store.create(make_fields(title="keep"))
    drop = await any_store.create(make_fields(title="drop"))

    await any_store.remove(drop.id)
    await any_store.remove(drop.id)

    assert [a.id for a in await any_store.list()] == [keep.id]


async def test_get(any_store):
    created = await any_store.create(make_fields())
    assert (await any_store.get(created.id)).title == "Midterm"
    assert await any_store.get("nope") is None


async def test_listeners_get_full_list_after_writes(any_store):
    seen = []
    unsubscribe = any_store.subscribe(lambda activities: seen.append([a.title for a in activities]))

    created = await any_store.create(make_fields(title="One"))
    await any_store.remove(created.id)
    unsubscribe()
    await any_store.create(make_fields(title="Two"))

    assert seen == [["One"], []]


class FlakyListStore(InMemoryActivityStore):
    """Writes land, but the follow-up read for listeners fails."""

    list_down = False

    async def list(self):
        if self.list_down:
            raise StoreUnavailable()
        return await super().list()


async def test_failed_listener_refresh_does_not_fail_the_write():
    store = FlakyListStore()
    seen = []
    store.subscribe(lambda activities: seen.append(activities))
    store.list_down = True

    created = await store.create(make_fields(title="Landed"))

    assert created.title == "Landed"
    assert seen == []
    store.list_down = False
    assert [a.title for a in await store.list()] == ["Landed"]


async def test_in_memory_store_returns_copies():
    store = InMemoryActivityStore()
    created = await store.create(make_fields())
    (listed,) = await store.list()
    listed.title = "changed"
    assert (await store.list())[0].title == created.title


async def test_local_store_wire_format(tmp_path):
    blobs = FileBlobStore(str(tmp_path))
    store = LocalActivityStore(blobs)
    created = await store.create(make_fields(date=datetime.date(2024, 3, 10)), make_attachment())

    with open(tmp_path / "activities.json", encoding="utf-8") as f:
        rows = json.load(f)
    assert rows == [
        {
            "id": created.id,
            "title": "Midterm",
            "subject": "Marketing",
            "description": "",
            "date": "2024-03-10",
            "type": "exam",
            "createdAt": created.created_at,
            "attachment": {
                "name": "midterm.pdf",
                "type": "application/pdf",
                "data": created.attachment.content,
            },
        }
    ]


async def test_local_store_keeps_expired_rows(tmp_path):
    blobs = FileBlobStore(str(tmp_path))
    store = LocalActivityStore(blobs)
    await store.create(make_fields(date=datetime.date(2001, 1, 1)))
    await store.list()
    assert len(blobs.read("activities")) == 1


async def test_local_store_skips_unreadable_rows():
    blobs = MemoryBlobStore()
    blobs.write(
        "activities",
        [
            {"id": "1", "title": "ok", "subject": "s", "date": "2024-03-10", "type": "aviso", "createdAt": 1},
            {"id": "2", "title": "bad", "subject": "s", "date": "not-a-date", "type": "exam", "createdAt": 2},
        ],
    )
    activities = await LocalActivityStore(blobs).list()
    assert [a.id for a in activities] == ["1"]
    assert activities[0].type is ActivityType.ANNOUNCEMENT


async def test_file_blob_store_unavailable(tmp_path):
    target = tmp_path / "not-a-dir"
    target.write_text("x")
    store = LocalActivityStore(FileBlobStore(str(target)))
    with pytest.raises(StoreUnavailable):
        await store.create(make_fields())


def test_legacy_type_names_are_normalized():
    fields = ActivityFields(title="Prova 1", subject="Marketing", date="2024-03-10", type="prova")
    assert fields.type is ActivityType.EXAM
    assert ActivityFields(title="t", subject="s", date="2024-03-10", type="Trabalho").type is ActivityType.ASSIGNMENT


def test_required_fields_are_validated():
    with pytest.raises(ValidationError):
        ActivityFields(title="  ", subject="s", date="2024-03-10", type="exam")
    with pytest.raises(ValidationError):
        ActivityFields(title="t", subject="s", date="2024-02-30", type="exam")
    with pytest.raises(ValidationError):
        ActivityFields(title="t", subject="s", date="2024-03-10", type="party")


def test_activity_parses_wire_record():
    activity = Activity.model_validate(
        {"id": "x", "title": "t", "subject": "s", "date": "2024-03-10", "type": "task", "createdAt": 5}
    )
    assert activity.created_at == 5
    assert activity.description == ""
    assert activity.attachment is None
