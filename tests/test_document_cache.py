import asyncio
import uuid

import pytest

from doccollab.core.errors import TransientError, NotFoundError
from doccollab.domains.documents.entities import DocumentStatus
from doccollab.domains.documents.schemas import DocumentUpdate
from doccollab.domains.documents.services import DocumentCache

from conftest import settle


def ids(state):
    return [doc.id for doc in state.documents]


class TestFetch:

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_remote_call(self, cache, gateway, owner):
        gateway.add_document(owner.id, "First")
        gateway.add_document(owner.id, "Second")
        gateway.hold("list_documents")

        tasks = [asyncio.create_task(cache.fetch(owner.id)) for _ in range(10)]
        await settle()
        gateway.release("list_documents")
        states = await asyncio.gather(*tasks)

        assert gateway.calls["list_documents"] == 1
        assert len({tuple(ids(state)) for state in states}) == 1
        assert len(states[0].documents) == 2

    @pytest.mark.asyncio
    async def test_forced_fetch_joins_inflight_fetch(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Doc")
        gateway.hold("list_documents")

        first = asyncio.create_task(cache.fetch(owner.id))
        await settle()
        forced = asyncio.create_task(cache.fetch(owner.id, force=True))
        await settle()
        gateway.release("list_documents")

        assert ids(await first) == ids(await forced)
        assert gateway.calls["list_documents"] == 1

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_remote_call(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Doc")

        await cache.fetch(owner.id)
        state = await cache.fetch(owner.id)

        assert gateway.calls["list_documents"] == 1
        assert len(state.documents) == 1
        assert cache.is_fresh(owner.id)

    @pytest.mark.asyncio
    async def test_expired_cache_fetches_again(self, cache, gateway, owner, clock):
        gateway.add_document(owner.id, "Doc")
        await cache.fetch(owner.id)

        clock.advance(61)
        assert not cache.is_fresh(owner.id)
        await cache.fetch(owner.id)

        assert gateway.calls["list_documents"] == 2

    @pytest.mark.asyncio
    async def test_force_always_fetches(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Doc")
        await cache.fetch(owner.id)
        await cache.fetch(owner.id, force=True)

        assert gateway.calls["list_documents"] == 2

    @pytest.mark.asyncio
    async def test_empty_list_is_fetched_every_time(self, cache, gateway, owner):
        await cache.fetch(owner.id)
        await cache.fetch(owner.id)

        assert gateway.calls["list_documents"] == 2

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_documents(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Doc")
        before = await cache.fetch(owner.id)

        gateway.failures["list_documents"] = TransientError()
        after = await cache.fetch(owner.id, force=True)

        assert ids(after) == ids(before)
        assert isinstance(after.error, TransientError)
        assert after.error.retryable
        assert after.error.to_info().code == "transient"
        assert after.last_fetched == before.last_fetched
        assert not after.loading

    @pytest.mark.asyncio
    async def test_successful_fetch_clears_error(self, cache, gateway, owner):
        gateway.failures["list_documents"] = TransientError()
        failed = await cache.fetch(owner.id)
        assert failed.error is not None

        del gateway.failures["list_documents"]
        state = await cache.fetch(owner.id)
        assert state.error is None
        assert state.last_fetched is not None

    @pytest.mark.asyncio
    async def test_abandoned_caller_does_not_cancel_shared_fetch(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Doc")
        gateway.hold("list_documents")

        abandoned = asyncio.create_task(cache.fetch(owner.id))
        waiting = asyncio.create_task(cache.fetch(owner.id))
        await settle()
        abandoned.cancel()
        gateway.release("list_documents")

        state = await waiting
        assert len(state.documents) == 1
        assert cache.is_fresh(owner.id)
        with pytest.raises(asyncio.CancelledError):
            await abandoned

    @pytest.mark.asyncio
    async def test_switching_user_drops_other_entries(self, cache, gateway, owner):
        other = gateway.add_profile("other@example.com")
        gateway.add_document(owner.id, "Mine")
        gateway.add_document(other.id, "Theirs")

        await cache.fetch(owner.id)
        state = await cache.fetch(other.id)

        assert [doc.title for doc in state.documents] == ["Theirs"]
        assert cache.state(owner.id).documents == []
        assert not cache.is_fresh(owner.id)


class TestMutations:

    @pytest.mark.asyncio
    async def test_create_prepends_server_record(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Old")
        await cache.fetch(owner.id)

        created = await cache.create(owner.id, "New", "one two three")

        documents = cache.state(owner.id).documents
        assert documents[0] == created
        assert ids(cache.state(owner.id)).count(created.id) == 1
        assert created.word_count == 3

    @pytest.mark.asyncio
    async def test_create_does_not_refresh_freshness(self, cache, owner):
        await cache.create(owner.id, "New")

        assert not cache.is_fresh(owner.id)

    @pytest.mark.asyncio
    async def test_failed_create_leaves_cache_unchanged(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Old")
        before = await cache.fetch(owner.id)
        gateway.failures["create_document"] = TransientError()

        with pytest.raises(TransientError):
            await cache.create(owner.id, "New")
        assert ids(cache.state(owner.id)) == ids(before)

    @pytest.mark.asyncio
    async def test_create_during_stale_fetch_is_kept_once(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Old")
        gateway.hold("list_documents")

        fetching = asyncio.create_task(cache.fetch(owner.id))
        await settle()
        created = await cache.create(owner.id, "New")
        gateway.release("list_documents")
        state = await fetching

        assert ids(state).count(created.id) == 1
        assert len(state.documents) == 2

    @pytest.mark.asyncio
    async def test_update_replaces_entry_with_server_record(self, cache, gateway, owner):
        document = gateway.add_document(owner.id, "Draft", "a b")
        await cache.fetch(owner.id)

        updated = await cache.update(document.id, {"status": "published", "content_text": "a b c d"})

        cached = cache.state(owner.id).documents[0]
        assert cached.status == DocumentStatus.PUBLISHED
        assert cached.word_count == 4
        assert cached == updated

    @pytest.mark.asyncio
    async def test_update_during_older_fetch_is_not_rolled_back(self, cache, gateway, owner):
        document = gateway.add_document(owner.id, "Draft")
        gateway.hold("list_documents")

        fetching = asyncio.create_task(cache.fetch(owner.id))
        await settle()
        updated = await cache.update(document.id, {"status": "published"})
        gateway.release("list_documents")
        state = await fetching

        assert ids(state) == [document.id]
        assert state.documents[0] == updated
        assert state.documents[0].status == DocumentStatus.PUBLISHED
        assert cache.state(owner.id).documents[0].status == DocumentStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_update_of_shared_document_stays_out_of_own_list(self, cache, gateway, owner):
        other = gateway.add_profile("other@example.com")
        mine = gateway.add_document(owner.id, "Mine")
        shared = gateway.add_document(other.id, "Shared")
        gateway.hold("list_documents")

        fetching = asyncio.create_task(cache.fetch(owner.id))
        await settle()
        await cache.update(shared.id, {"title": "Edited by collaborator"})
        gateway.release("list_documents")
        state = await fetching

        assert ids(state) == [mine.id]
        assert {doc.owner_id for doc in cache.state(owner.id).documents} == {owner.id}

    @pytest.mark.asyncio
    async def test_update_sends_only_set_fields(self, cache, gateway, owner):
        document = gateway.add_document(owner.id, "Title", "body")
        await cache.fetch(owner.id)

        updated = await cache.update(document.id, DocumentUpdate(title="  Renamed  "))

        assert updated.title == "Renamed"
        assert updated.content_text == "body"

    @pytest.mark.asyncio
    async def test_failed_update_leaves_cache_unchanged(self, cache, gateway, owner):
        document = gateway.add_document(owner.id, "Title")
        await cache.fetch(owner.id)
        gateway.failures["update_document"] = TransientError()

        with pytest.raises(TransientError):
            await cache.update(document.id, {"title": "Changed"})
        assert cache.state(owner.id).documents[0].title == "Title"

    @pytest.mark.asyncio
    async def test_last_update_response_wins(self, cache, gateway, owner):
        document = gateway.add_document(owner.id, "Title")
        await cache.fetch(owner.id)

        await cache.update(document.id, {"title": "First"})
        await cache.update(document.id, {"title": "Second"})

        assert cache.state(owner.id).documents[0].title == "Second"

    @pytest.mark.asyncio
    async def test_delete_removes_only_that_document(self, cache, gateway, owner):
        keep = gateway.add_document(owner.id, "Keep")
        drop = gateway.add_document(owner.id, "Drop")
        await cache.fetch(owner.id)

        await cache.delete(drop.id)

        assert ids(cache.state(owner.id)) == [keep.id]

    @pytest.mark.asyncio
    async def test_failed_delete_leaves_cache_unchanged(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Keep")
        before = await cache.fetch(owner.id)

        with pytest.raises(NotFoundError):
            await cache.delete(uuid.uuid4())
        assert ids(cache.state(owner.id)) == ids(before)

    @pytest.mark.asyncio
    async def test_stale_fetch_does_not_resurrect_deleted_document(self, cache, gateway, owner):
        keep = gateway.add_document(owner.id, "Keep")
        drop = gateway.add_document(owner.id, "Drop")
        await cache.fetch(owner.id)
        gateway.hold("list_documents")

        fetching = asyncio.create_task(cache.fetch(owner.id, force=True))
        await settle()
        await cache.delete(drop.id)
        gateway.release("list_documents")
        state = await fetching

        assert ids(state) == [keep.id]

    @pytest.mark.asyncio
    async def test_update_response_after_delete_is_discarded(self, cache, gateway, owner):
        document = gateway.add_document(owner.id, "Doc")
        await cache.fetch(owner.id)
        gateway.hold("update_document")

        updating = asyncio.create_task(cache.update(document.id, {"title": "Late"}))
        await settle()
        await cache.delete(document.id)
        gateway.release("update_document")
        updated = await updating

        assert updated.title == "Late"
        assert cache.state(owner.id).documents == []


class TestReads:

    @pytest.mark.asyncio
    async def test_search_bypasses_cache(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Quarterly report")
        gateway.add_document(owner.id, "Shopping list")
        before = await cache.fetch(owner.id)

        results = await cache.search(owner.id, "report")

        assert [doc.title for doc in results] == ["Quarterly report"]
        after = cache.state(owner.id)
        assert ids(after) == ids(before)
        assert after.last_fetched == before.last_fetched
        assert gateway.calls["search_documents"] == 1

    @pytest.mark.asyncio
    async def test_get_one_uses_cached_list(self, cache, gateway, owner):
        document = gateway.add_document(owner.id, "Doc")
        await cache.fetch(owner.id)

        assert await cache.get_one(document.id) == document
        assert gateway.calls["get_document"] == 0

    @pytest.mark.asyncio
    async def test_get_one_remembers_remote_document(self, cache, gateway, owner):
        document = gateway.add_document(owner.id, "Doc")

        await cache.get_one(document.id)
        await cache.get_one(document.id)

        assert gateway.calls["get_document"] == 1

    @pytest.mark.asyncio
    async def test_single_document_cache_is_bounded(self, cache, gateway, owner):
        first = gateway.add_document(owner.id, "One")
        second = gateway.add_document(owner.id, "Two")
        third = gateway.add_document(owner.id, "Three")

        for document in (first, second, third):
            await cache.get_one(document.id)
        await cache.get_one(first.id)

        assert gateway.calls["get_document"] == 4

    @pytest.mark.asyncio
    async def test_zero_sized_single_document_cache_keeps_nothing(self, gateway, owner, clock):
        cache = DocumentCache(gateway, ttl_seconds=60, max_cached_documents=0, clock=clock)
        document = gateway.add_document(owner.id, "Doc")

        await cache.get_one(document.id)
        await cache.get_one(document.id)

        assert cache.max_cached_documents == 0
        assert gateway.calls["get_document"] == 2

    @pytest.mark.asyncio
    async def test_invalidate_marks_entry_stale(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Doc")
        await cache.fetch(owner.id)

        cache.invalidate(owner.id)

        assert not cache.is_fresh(owner.id)
        await cache.fetch(owner.id)
        assert gateway.calls["list_documents"] == 2

    @pytest.mark.asyncio
    async def test_clear_discards_inflight_response(self, cache, gateway, owner):
        gateway.add_document(owner.id, "Doc")
        gateway.hold("list_documents")

        fetching = asyncio.create_task(cache.fetch(owner.id))
        await settle()
        cache.clear()
        gateway.release("list_documents")
        await fetching

        assert cache.state(owner.id).documents == []
        assert cache.current_user_id is None
