import asyncio
import logging

from groupassist.modules.context_store import ConversationContextStore, LastReplyTracker, image_keys
from groupassist.modules.media_service import image_blob_key, user_entry
from groupassist.utils.database import InMemoryBlobStore, InMemoryKeyValueStore


def make_store(max_length=10):
    return ConversationContextStore(InMemoryKeyValueStore("context"), InMemoryBlobStore(), max_length=max_length)


def image_turn(store, group_id, user_id, message_id, text="look"):
    key = image_blob_key(group_id, user_id, message_id)
    asyncio.run(store.blob_store.put(key, b"jpeg"))
    return key, user_entry(text, key)


def test_get_missing_context_is_empty():
    assert asyncio.run(make_store().get(-1, 7)) == []


def test_append_keeps_suffix_of_full_history():
    store = make_store(max_length=4)
    history = []
    for i in range(9):
        batch = [{"role": "user", "content": f"q{i}"}, {"role": "assistant", "content": f"a{i}"}][: 1 + i % 2]
        history.extend(batch)
        asyncio.run(store.append(-1, 7, batch))
        stored = asyncio.run(store.get(-1, 7))
        assert len(stored) <= 4
        assert stored == history[-4:]


def test_append_uses_context_key_layout():
    store = make_store()
    asyncio.run(store.append(-5, 9, [{"role": "user", "content": "hi"}]))
    assert asyncio.run(store.store.get("context:-5:9")) == [{"role": "user", "content": "hi"}]


def test_explicit_max_length_overrides_default():
    store = make_store(max_length=10)
    asyncio.run(store.append(-1, 7, [{"role": "user", "content": str(i)} for i in range(5)], max_length=2))
    assert [e["content"] for e in asyncio.run(store.get(-1, 7))] == ["3", "4"]


def test_evicted_image_blob_is_deleted():
    store = make_store(max_length=2)
    key, entry = image_turn(store, -1, 7, 1)
    asyncio.run(store.append(-1, 7, [entry]))
    assert asyncio.run(store.blob_store.get(key)) == b"jpeg"

    asyncio.run(store.append(-1, 7, [{"role": "assistant", "content": "nice"}]))
    assert asyncio.run(store.blob_store.get(key)) == b"jpeg"

    asyncio.run(store.append(-1, 7, [{"role": "user", "content": "next"}]))
    assert asyncio.run(store.blob_store.get(key)) is None


def test_blob_still_referenced_by_surviving_entry_is_kept():
    store = make_store(max_length=2)
    key, entry = image_turn(store, -1, 7, 1)
    asyncio.run(store.append(-1, 7, [entry, {"role": "assistant", "content": "a"}]))
    # the same key appears again in a newer entry, so evicting the first one must not delete it
    asyncio.run(store.append(-1, 7, [user_entry("again", key), {"role": "assistant", "content": "b"}]))
    assert asyncio.run(store.blob_store.get(key)) == b"jpeg"
    assert image_keys(asyncio.run(store.get(-1, 7))) == {key}


def test_blobs_of_other_users_are_untouched():
    store = make_store(max_length=1)
    other_key, other_entry = image_turn(store, -1, 8, 1)
    asyncio.run(store.append(-1, 8, [other_entry]))
    asyncio.run(store.append(-1, 7, [{"role": "user", "content": "a"}, {"role": "user", "content": "b"}]))
    assert asyncio.run(store.blob_store.get(other_key)) == b"jpeg"


def test_failed_blob_delete_is_logged_and_does_not_abort(caplog):
    store = make_store(max_length=1)
    key_a, entry_a = image_turn(store, -1, 7, 1)
    key_b, entry_b = image_turn(store, -1, 7, 2)
    asyncio.run(store.append(-1, 7, [entry_a, entry_b]))
    assert asyncio.run(store.blob_store.get(key_a)) is None
    asyncio.run(store.blob_store.put(key_a, b"jpeg"))

    original_delete = store.blob_store.delete

    async def flaky_delete(key):
        if key == key_b:
            raise RuntimeError("blob backend down")
        return await original_delete(key)

    store.blob_store.delete = flaky_delete
    asyncio.run(store.store.put("context:-1:7", [entry_a, entry_b]))
    with caplog.at_level(logging.ERROR):
        ok = asyncio.run(store.append(-1, 7, [{"role": "user", "content": "text only"}]))
    assert ok is True
    assert asyncio.run(store.get(-1, 7)) == [{"role": "user", "content": "text only"}]
    assert asyncio.run(store.blob_store.get(key_a)) is None
    assert "blob backend down" in caplog.text


def test_clear_empties_context_and_drops_its_images():
    store = make_store()
    key, entry = image_turn(store, -1, 7, 1)
    asyncio.run(store.append(-1, 7, [entry]))
    asyncio.run(store.clear(-1, 7))
    assert asyncio.run(store.store.get("context:-1:7")) == []
    assert asyncio.run(store.blob_store.get(key)) is None


def test_last_reply_tracker_round_trip():
    tracker = LastReplyTracker(InMemoryKeyValueStore("bot_message_ids"))
    assert asyncio.run(tracker.get(-1, 7)) is None
    asyncio.run(tracker.record(-1, 7, 321))
    assert asyncio.run(tracker.store.get("last_bot_message_id:-1:7")) == 321
    assert asyncio.run(tracker.get(-1, 7)) == 321


def test_image_evicted_within_the_same_append_is_deleted():
    store = make_store(max_length=2)
    key, entry = image_turn(store, -1, 7, 1)
    asyncio.run(store.append(-1, 7, [entry, {"role": "assistant", "content": "a"}, {"role": "user", "content": "b"}]))
    assert image_keys(asyncio.run(store.get(-1, 7))) == set()
    assert asyncio.run(store.blob_store.get(key)) is None


def failing_writes(store):
    async def put(key, value):
        return False

    store.store.put = put


def test_failed_append_keeps_images_of_stored_history(caplog):
    store = make_store(max_length=1)
    old_key, old_entry = image_turn(store, -1, 7, 1)
    asyncio.run(store.append(-1, 7, [old_entry]))
    new_key, new_entry = image_turn(store, -1, 7, 2)

    failing_writes(store)
    with caplog.at_level(logging.ERROR):
        ok = asyncio.run(store.append(-1, 7, [new_entry]))
    assert ok is False
    assert asyncio.run(store.get(-1, 7)) == [old_entry]
    assert asyncio.run(store.blob_store.get(old_key)) == b"jpeg"
    # nothing references the new image after the failed write
    assert asyncio.run(store.blob_store.get(new_key)) is None
    assert "Failed to store context" in caplog.text


def test_failed_clear_keeps_images():
    store = make_store()
    key, entry = image_turn(store, -1, 7, 1)
    asyncio.run(store.append(-1, 7, [entry]))
    failing_writes(store)
    assert asyncio.run(store.clear(-1, 7)) is False
    assert asyncio.run(store.get(-1, 7)) == [entry]
    assert asyncio.run(store.blob_store.get(key)) == b"jpeg"
