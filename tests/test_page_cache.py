"""Tests for the page cache: memoization, coalescing, errors and teardown."""

import asyncio

import pytest

from core.document.page_cache import PageCache
from core.document.source import DocumentSource
from core.errors import ConfigurationError, LoadError


def test_resolve_is_idempotent(three_page_pdf, reader):
    cache = PageCache(DocumentSource(data=three_page_pdf), reader=reader)

    async def scenario():
        first = await cache.resolve()
        second = await cache.resolve()
        return first, second

    assert asyncio.run(scenario()) == (3, 3)
    assert cache.page_count == 3
    assert reader.open_calls == 1


def test_concurrent_resolves_share_one_load(three_page_pdf, reader):
    cache = PageCache(DocumentSource(data=three_page_pdf), reader=reader)

    async def scenario():
        return await asyncio.gather(cache.resolve(), cache.resolve(), cache.resolve())

    assert asyncio.run(scenario()) == [3, 3, 3]
    assert reader.open_calls == 1


def test_fetch_page_decodes_once(three_page_pdf, reader):
    cache = PageCache(DocumentSource(data=three_page_pdf), reader=reader)

    async def scenario():
        first = await cache.fetch_page(2)
        second = await cache.fetch_page(2)
        return first, second

    first, second = asyncio.run(scenario())
    assert first is second
    assert first.page_number == 2
    assert first.image is not None
    assert reader.decode_calls[2] == 1
    assert cache.is_cached(2)
    assert not cache.is_cached(1)


def test_concurrent_fetches_of_one_page_are_coalesced(three_page_pdf, reader):
    cache = PageCache(DocumentSource(data=three_page_pdf), reader=reader)

    async def scenario():
        return await asyncio.gather(*(cache.fetch_page(1) for _ in range(4)))

    pages = asyncio.run(scenario())
    assert all(p is pages[0] for p in pages)
    assert reader.decode_calls[1] == 1


def test_pages_decode_independently(three_page_pdf, reader):
    cache = PageCache(DocumentSource(data=three_page_pdf), reader=reader)

    async def scenario():
        return await asyncio.gather(cache.fetch_page(3), cache.fetch_page(1))

    third, first = asyncio.run(scenario())
    assert (third.page_number, first.page_number) == (3, 1)
    assert cache.version == 2


def test_out_of_range_pages(three_page_pdf, reader):
    cache = PageCache(DocumentSource(data=three_page_pdf), reader=reader)

    with pytest.raises(IndexError):
        asyncio.run(cache.fetch_page(4))
    with pytest.raises(IndexError):
        asyncio.run(cache.fetch_page(0))
    assert sum(reader.decode_calls.values()) == 0


def test_missing_source_raises_configuration_error(reader):
    cache = PageCache(DocumentSource(), reader=reader)

    with pytest.raises(ConfigurationError):
        asyncio.run(cache.resolve())
    assert cache.error is None
    assert reader.open_calls == 0


def test_load_error_is_terminal(reader):
    cache = PageCache(DocumentSource(data=b"this is not a pdf"), reader=reader)

    with pytest.raises(LoadError):
        asyncio.run(cache.resolve())
    error = cache.error
    assert error is not None

    with pytest.raises(LoadError) as exc:
        asyncio.run(cache.resolve())
    assert exc.value is error
    with pytest.raises(LoadError):
        asyncio.run(cache.fetch_page(1))
    assert not cache.is_resolved
    assert reader.open_calls == 1


def test_decode_in_flight_at_teardown_is_discarded(three_page_pdf, blocking_reader):
    cache = PageCache(DocumentSource(data=three_page_pdf), reader=blocking_reader)

    async def scenario():
        await cache.resolve()
        task = asyncio.ensure_future(cache.fetch_page(1))
        await asyncio.to_thread(blocking_reader.started.wait, 5)
        cache.close()
        blocking_reader.release.set()
        return await task

    assert asyncio.run(scenario()) is None
    assert cache.closed
    assert not cache.is_cached(1)
    assert cache.error is None


def test_fetch_after_close_returns_none(three_page_pdf, reader):
    cache = PageCache(DocumentSource(data=three_page_pdf), reader=reader)
    asyncio.run(cache.resolve())
    cache.close()

    assert asyncio.run(cache.fetch_page(1)) is None
    assert sum(reader.decode_calls.values()) == 0
