"""Shared fixtures: providers whose responses tests complete by hand."""

import asyncio

import pytest

from snarform import Page


class DeferredPager:
    """Page provider returning futures the test resolves in any order."""

    def __init__(self):
        self.calls = []
        self._futures = []

    def __call__(self, page_size, page_index):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((page_size, page_index))
        self._futures.append(future)
        return future

    @property
    def pages_requested(self):
        return [page_index for _, page_index in self.calls]

    def resolve(self, call, items, **kwargs):
        self._futures[call].set_result(Page(items, **kwargs))

    def fail(self, call, error):
        self._futures[call].set_exception(error)


class DeferredSource:
    """Zero-argument provider with the same hand-completed futures."""

    def __init__(self):
        self.calls = 0
        self._futures = []

    def __call__(self):
        future = asyncio.get_running_loop().create_future()
        self.calls += 1
        self._futures.append(future)
        return future

    def resolve(self, call, items, **kwargs):
        self._futures[call].set_result(Page(items, **kwargs))

    def fail(self, call, error):
        self._futures[call].set_exception(error)


@pytest.fixture
def pager():
    return DeferredPager()


@pytest.fixture
def source():
    return DeferredSource()


@pytest.fixture
def settle():
    """Let every ready task and callback run."""

    async def _settle(rounds=10):
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle
