"""Tests for PagedReactiveList."""

import pytest

from snarform import EMPTY, Page, PagedReactiveList, autorun


def items(start, end):
    return [f"item-{i}" for i in range(start, end)]


class TestGetItemAtIndex:
    @pytest.mark.asyncio
    async def test_returns_empty_and_loads_page(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        assert lst.get_item_at_index(13) is EMPTY
        await settle()
        assert pager.calls == [(10, 1)]
        assert lst.is_loading

        pager.resolve(0, items(10, 20), total_length=40)
        await settle()
        assert lst.get_item_at_index(13) == "item-13"
        assert lst.get_item_at_index(3) is EMPTY  # page 0 never loaded
        assert lst.total_length == 40

    @pytest.mark.asyncio
    async def test_same_page_same_tick_fetches_once(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        lst.get_item_at_index(4)
        lst.get_item_at_index(7)
        assert lst.load_page(0) is lst.load_page(0)
        await settle()
        assert pager.pages_requested == [0]
        assert lst.pending_count == 1

    @pytest.mark.asyncio
    async def test_sequential_scan_of_25_items_takes_three_fetches(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        for i in range(25):
            assert lst.get_item_at_index(i) is EMPTY
        await settle()
        assert pager.pages_requested == [0, 1, 2]

        pager.resolve(0, items(0, 10), total_length=25)
        pager.resolve(1, items(10, 20), total_length=25)
        await settle()
        assert not lst.is_fully_loaded
        assert lst.fully_loaded_at is None

        pager.resolve(2, items(20, 25), total_length=25)
        await settle()
        assert lst.is_fully_loaded
        assert lst.fully_loaded_at is not None
        assert [lst.get_item_at_index(i) for i in range(25)] == items(0, 25)
        assert len(pager.calls) == 3
        assert not lst.is_loading

    @pytest.mark.asyncio
    async def test_out_of_range_indices_do_not_fetch(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        assert lst.get_item_at_index(-1) is EMPTY
        lst.load_page(0)
        await settle()
        pager.resolve(0, items(0, 5), total_length=5)
        await settle()
        assert lst.get_item_at_index(5) is EMPTY
        assert lst.get_item_at_index(500) is EMPTY
        await settle()
        assert pager.pages_requested == [0]

    @pytest.mark.asyncio
    async def test_pages_can_complete_out_of_order(self, pager, settle):
        lst = PagedReactiveList(pager, 2, eager=False)
        lst.get_item_at_index(0)
        lst.get_item_at_index(4)
        await settle()
        pager.resolve(1, ["e", "f"], total_length=6)
        await settle()
        assert lst.snapshot() == [EMPTY, EMPTY, EMPTY, EMPTY, "e", "f"]
        pager.resolve(0, ["a", "b"], total_length=6)
        await settle()
        assert lst.snapshot() == ["a", "b", EMPTY, EMPTY, "e", "f"]
        assert not lst.is_fully_loaded


class TestVersioning:
    @pytest.mark.asyncio
    async def test_version_counts_reloads(self, pager):
        lst = PagedReactiveList(pager, 10, eager=False)
        initial = lst.version
        for _ in range(5):
            lst.reload()
        assert lst.version == initial + 5
        lst.reload(clear=True)
        assert lst.version == initial + 6

    @pytest.mark.asyncio
    async def test_stale_response_is_dropped(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        lst.load_page(0)
        await settle()
        pager.resolve(0, items(0, 10), total_length=30)
        await settle()

        lst.get_item_at_index(10)
        await settle()
        assert lst.pending_count == 1
        before = lst.snapshot()

        lst.reload()
        assert lst.is_reloading
        pager.resolve(1, items(10, 20), total_length=30)
        await settle()

        assert lst.snapshot() == before
        assert len(lst) == 10
        assert lst.pending_count == 0
        assert not lst.is_loading
        assert lst.error is None

    @pytest.mark.asyncio
    async def test_reload_keeps_stale_values_displayed(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        lst.load_page(0)
        await settle()
        pager.resolve(0, items(0, 3))
        await settle()
        assert lst.is_fully_loaded

        lst.reload()
        assert not lst.is_fully_loaded
        assert lst[0] == "item-0"
        assert not lst.is_fresh(0)
        assert lst.get_item_at_index(0) is EMPTY
        await settle()
        assert pager.pages_requested == [0, 0]

        pager.resolve(1, ["fresh-0", "fresh-1"])
        await settle()
        assert lst.snapshot() == ["fresh-0", "fresh-1"]
        assert lst.total_length == 2
        assert lst.is_fully_loaded
        assert not lst.is_reloading

    @pytest.mark.asyncio
    async def test_reload_refetches_page_still_in_flight_under_old_version(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        stale = lst.load_page(0)
        lst.reload()
        fresh = lst.load_page(0)
        assert fresh is not stale
        await settle()
        assert pager.pages_requested == [0, 0]
        assert lst.pending_count == 2

        pager.resolve(1, ["new"])
        pager.resolve(0, ["old"])
        assert await fresh == ["new"]
        assert await stale == ["old"]
        assert lst.snapshot() == ["new"]
        assert lst.pending_count == 0

    @pytest.mark.asyncio
    async def test_clearing_reload_resets_immediately(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        lst.load_page(0)
        await settle()
        pager.resolve(0, items(0, 4), metadata={"cursor": "x"})
        await settle()

        lst.reload(clear=True)
        assert len(lst) == 0
        assert lst.total_length == -1
        assert lst.metadata is None
        assert not lst.is_fully_loaded

    @pytest.mark.asyncio
    async def test_reload_with_preload_fetches_first_page(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        handle = lst.reload(preload=True)
        await settle()
        assert pager.pages_requested == [0]
        pager.resolve(0, items(0, 2))
        assert list(await handle) == items(0, 2)

    @pytest.mark.asyncio
    async def test_reload_without_preload_resolves_immediately(self, pager):
        lst = PagedReactiveList(pager, 10, eager=False)
        handle = lst.reload()
        assert handle.done()
        assert list(handle.result()) == []

    @pytest.mark.asyncio
    async def test_read_past_old_total_after_reload_fetches(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        lst.load_page(0)
        await settle()
        pager.resolve(0, items(0, 5), total_length=5)
        await settle()
        assert lst.get_item_at_index(12) is EMPTY
        await settle()
        assert pager.pages_requested == [0]

        lst.reload()
        assert lst.get_item_at_index(12) is EMPTY
        assert lst.get_page_at_index(1) == [EMPTY] * 10
        await settle()
        assert pager.pages_requested == [0, 1]

        pager.resolve(1, items(10, 15), total_length=15)
        await settle()
        assert lst.get_item_at_index(12) == "item-12"
        assert lst.total_length == 15
        assert not lst.is_reloading


class TestErrors:
    @pytest.mark.asyncio
    async def test_failure_poisons_only_that_attempt(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        handle = lst.load_page(1)
        lst.load_page(0)
        await settle()
        assert pager.pages_requested == [1, 0]
        pager.resolve(1, items(0, 10), total_length=20)
        await settle()
        pager.fail(0, RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await handle
        assert isinstance(lst.error, RuntimeError)
        assert not lst.is_loading
        assert lst.get_item_at_index(3) == "item-3"

        assert lst.get_item_at_index(12) is EMPTY
        await settle()
        assert pager.pages_requested == [1, 0, 1]

        pager.resolve(2, items(10, 20), total_length=20)
        await settle()
        assert lst.error is None
        assert lst.is_fully_loaded

    @pytest.mark.asyncio
    async def test_stale_failure_is_swallowed(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        handle = lst.load_page(0)
        await settle()
        lst.reload()
        pager.fail(0, RuntimeError("late"))
        assert list(await handle) == []
        assert lst.error is None
        assert lst.pending_count == 0

    @pytest.mark.asyncio
    async def test_provider_raising_synchronously_is_delivered_async(self, settle):
        def provider(page_size, page_index):
            raise ValueError("bad request")

        lst = PagedReactiveList(provider, 10, eager=False)
        assert lst.get_item_at_index(0) is EMPTY
        await settle()
        assert isinstance(lst.error, ValueError)
        assert not lst.is_loading


class TestNextPage:
    @pytest.mark.asyncio
    async def test_get_next_page_converges(self):
        source = items(0, 23)
        calls = []

        async def provider(size, index):
            calls.append(index)
            return Page(source[index * size:(index + 1) * size], total_length=len(source))

        lst = PagedReactiveList(provider, 5, eager=False)
        while not lst.is_fully_loaded:
            await lst.get_next_page()

        assert calls == [0, 1, 2, 3, 4]
        assert len(lst) == lst.total_length == 23
        assert lst.snapshot() == source

        extra = await lst.get_next_page()
        assert list(extra) == []
        assert extra.total_length == 23
        assert calls == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_short_page_infers_total_length(self):
        source = items(0, 7)

        async def provider(size, index):
            return source[index * size:(index + 1) * size]

        lst = PagedReactiveList(provider, 3, eager=False)
        await lst.get_next_page()
        assert lst.total_length == -1
        await lst.get_next_page()
        await lst.get_next_page()
        assert lst.total_length == 7
        assert lst.is_fully_loaded

    @pytest.mark.asyncio
    async def test_preload_loads_first_page_once(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        first = lst.preload()
        assert lst.preload() is first
        await settle()
        pager.resolve(0, items(0, 10), total_length=30)
        await first
        again = lst.preload()
        assert again.done()
        assert list(again.result()) == items(0, 10)
        assert pager.pages_requested == [0]

    @pytest.mark.asyncio
    async def test_short_page_ends_the_list_despite_larger_total(self):
        def provider(size, page_index):
            return Page(items(page_index * size, page_index * size + 2), total_length=50)

        lst = PagedReactiveList(provider, 5, eager=False)
        for _ in range(3):
            if lst.is_fully_loaded:
                break
            await lst.get_next_page()
        assert lst.is_fully_loaded
        assert lst.total_length == 2
        assert lst.loaded_items() == items(0, 2)


class TestPageAccess:
    @pytest.mark.asyncio
    async def test_get_page_at_index(self, pager, settle):
        lst = PagedReactiveList(pager, 3, eager=False)
        assert lst.get_page_at_index(1) == [EMPTY, EMPTY, EMPTY]
        await settle()
        pager.resolve(0, ["d", "e"], total_length=5)
        await settle()
        assert lst.get_page_at_index(1) == ["d", "e"]
        assert lst.get_page_at_index(2) == []
        await settle()
        assert pager.pages_requested == [1]

    @pytest.mark.asyncio
    async def test_from_sequence(self):
        lst = PagedReactiveList.from_sequence(items(0, 8), 3)
        await lst.handle
        assert lst.snapshot() == items(0, 3)
        assert lst.total_length == 8
        assert lst.loaded_items() == items(0, 3)


class TestLocalMutations:
    @pytest.mark.asyncio
    async def test_append_and_remove(self):
        lst = PagedReactiveList.from_sequence(["a", "b"], 5)
        await lst.handle
        assert lst.is_fully_loaded
        lst.append("c")
        assert lst.snapshot() == ["a", "b", "c"]
        assert lst.total_length == 3
        assert lst.is_fully_loaded

        assert lst.remove("a")
        assert lst.snapshot() == ["b", "c"]
        assert lst.total_length == 2
        assert lst.is_fully_loaded
        assert not lst.remove("zzz")


class TestReactivity:
    @pytest.mark.asyncio
    async def test_reaction_sees_value_when_page_arrives(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        seen = []
        r = autorun(lambda: seen.append(lst.get_item_at_index(3)))
        assert seen == [EMPTY]
        await settle()
        assert pager.pages_requested == [0]

        pager.resolve(0, items(0, 10), total_length=10)
        await settle()
        assert seen[-1] == "item-3"
        assert pager.pages_requested == [0]
        r.dispose()

    @pytest.mark.asyncio
    async def test_reload_invalidates_readers(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        lst.load_page(0)
        await settle()
        pager.resolve(0, items(0, 10), total_length=10)
        await settle()

        seen = []
        r = autorun(lambda: seen.append(lst.get_item_at_index(0)))
        assert seen == ["item-0"]
        lst.reload()
        assert seen[-1] is EMPTY
        r.dispose()

    @pytest.mark.asyncio
    async def test_completion_is_atomic(self, pager, settle):
        lst = PagedReactiveList(pager, 10, eager=False)
        lst.load_page(0)
        await settle()
        observed = []
        r = autorun(lambda: observed.append((len(lst), lst.is_loading, lst.total_length)))
        pager.resolve(0, items(0, 4), total_length=4)
        await settle()
        assert observed == [(0, True, -1), (4, False, 4)]
        r.dispose()
