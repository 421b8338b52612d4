"""Tests for fuelwatch.ingestion.aggregator."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from fuelwatch.core.config import FetchConfig
from fuelwatch.core.models import FuelSource
from fuelwatch.ingestion import Aggregator, aggregate_sources


# --- Fixtures ---


@pytest.fixture
def mock_feeds(test_sources, make_feed, feed_record):
    """Route every test source to a small, distinct feed."""
    with respx.mock(assert_all_called=False) as router:
        alpha, beta, gamma = test_sources
        router.get(alpha.url).respond(
            json=make_feed(
                feed_record("1"), feed_record("2"), last_updated="2024-01-01T10:00:00Z"
            )
        )
        router.get(beta.url).respond(
            json=make_feed(feed_record("1"), last_updated="2024-01-02T09:00:00Z")
        )
        router.get(gamma.url).respond(
            json=make_feed(feed_record("7"), last_updated="invalid")
        )
        yield router


@pytest.fixture
async def aggregator(fetch_config):
    async with Aggregator(fetch_config) as a:
        yield a


class SlowClient:
    """Stands in for httpx.AsyncClient; one URL never answers in time."""

    def __init__(self, slow_url: str, payload: dict, delay: float = 5.0):
        self.slow_url = slow_url
        self.payload = payload
        self.delay = delay

    async def get(self, url: str) -> httpx.Response:
        if url == self.slow_url:
            await asyncio.sleep(self.delay)
        return httpx.Response(200, json=self.payload, request=httpx.Request("GET", url))

    async def aclose(self) -> None:
        pass


# --- Tests ---


class TestAggregate:
    async def test_merges_all_sources(self, aggregator, mock_feeds):
        result = await aggregator.aggregate()

        assert sorted(s.site_id for s in result.stations) == [
            "alpha-1",
            "alpha-2",
            "beta-1",
            "gamma-7",
        ]
        assert all(r.ok for r in result.reports)
        assert result.failed_sources == []

    async def test_freshest_timestamp_wins(self, aggregator, mock_feeds):
        result = await aggregator.aggregate()
        assert result.last_updated == "2024-01-02T09:00:00Z"

    async def test_completion_time_when_no_feed_timestamp(
        self, fetch_config, make_feed, feed_record
    ):
        with respx.mock() as router:
            for source in fetch_config.sources:
                router.get(source.url).respond(json=make_feed(feed_record(), last_updated=None))
            async with Aggregator(fetch_config) as a:
                result = await a.aggregate()
        assert result.last_updated.endswith("Z")

    async def test_sends_browser_headers(self, aggregator, mock_feeds, fetch_config):
        await aggregator.aggregate()
        request = mock_feeds.calls.last.request
        assert request.headers["User-Agent"] == fetch_config.user_agent
        assert request.headers["Accept"] == "application/json"

    async def test_http_error_isolated(self, aggregator, mock_feeds, test_sources):
        mock_feeds.get(test_sources[1].url).respond(status_code=503)

        result = await aggregator.aggregate()

        assert result.failed_sources == ["Beta"]
        assert {s.site_id for s in result.stations} == {"alpha-1", "alpha-2", "gamma-7"}
        beta = next(r for r in result.reports if r.brand == "Beta")
        assert "503" in beta.error

    async def test_network_error_isolated(self, aggregator, mock_feeds, test_sources):
        mock_feeds.get(test_sources[0].url).mock(side_effect=httpx.ConnectError("refused"))

        result = await aggregator.aggregate()

        assert result.failed_sources == ["Alpha"]
        assert len(result.stations) == 2

    async def test_malformed_json_isolated(self, aggregator, mock_feeds, test_sources):
        mock_feeds.get(test_sources[2].url).respond(text="<html>maintenance</html>")

        result = await aggregator.aggregate()

        assert result.failed_sources == ["Gamma"]
        assert len(result.stations) == 3

    async def test_wrong_shape_isolated(self, aggregator, mock_feeds, test_sources):
        mock_feeds.get(test_sources[2].url).respond(json={"data": []})
        result = await aggregator.aggregate()
        assert result.failed_sources == ["Gamma"]

    async def test_all_sources_failing_gives_empty_list(self, aggregator, mock_feeds, test_sources):
        for source in test_sources:
            mock_feeds.get(source.url).respond(status_code=500)

        result = await aggregator.aggregate()

        assert result.stations == []
        assert sorted(result.failed_sources) == ["Alpha", "Beta", "Gamma"]

    async def test_duplicate_site_ids_kept_once(self, test_sources, make_feed, feed_record):
        clash = [
            FuelSource(brand="One", url="https://one.example.test/f.json", prefix="same"),
            FuelSource(brand="Two", url="https://two.example.test/f.json", prefix="dup"),
        ]
        config = FetchConfig(sources=clash)
        with respx.mock() as router:
            router.get(clash[0].url).respond(json=make_feed(feed_record("1"), feed_record("1")))
            router.get(clash[1].url).respond(json=make_feed(feed_record("1")))
            async with Aggregator(config) as a:
                result = await a.aggregate()
        assert sorted(s.site_id for s in result.stations) == ["dup-1", "same-1"]


class TestTimeout:
    async def test_slow_source_times_out_alone(self, test_sources, make_feed, feed_record):
        config = FetchConfig(timeout_seconds=0.05, sources=test_sources)
        client = SlowClient(test_sources[1].url, make_feed(feed_record("1")))

        async with Aggregator(config, client=client) as a:
            result = await a.aggregate()

        assert result.failed_sources == ["Beta"]
        beta = next(r for r in result.reports if r.brand == "Beta")
        assert "timeout" in beta.error
        assert {s.site_id for s in result.stations} == {"alpha-1", "gamma-1"}


class TestProgress:
    async def test_reports_fractions(self, aggregator, mock_feeds):
        seen: list[float] = []
        await aggregator.aggregate(on_progress=seen.append)
        assert seen == pytest.approx([1 / 3, 2 / 3, 1.0])

    async def test_progress_reaches_one_on_failure(self, aggregator, mock_feeds, test_sources):
        mock_feeds.get(test_sources[0].url).respond(status_code=404)
        seen: list[float] = []
        await aggregator.aggregate(on_progress=seen.append)
        assert seen[-1] == 1.0

    async def test_callback_errors_ignored(self, aggregator, mock_feeds):
        def explode(_fraction):
            raise RuntimeError("ui went away")

        result = await aggregator.aggregate(on_progress=explode)
        assert len(result.stations) == 4


class TestClientOwnership:
    async def test_supplied_client_left_open(self, fetch_config):
        client = httpx.AsyncClient()
        a = Aggregator(fetch_config, client=client)
        await a.close()
        assert not client.is_closed
        await client.aclose()

    async def test_usable_again_after_close(self, fetch_config, mock_feeds):
        a = Aggregator(fetch_config)
        first = await a.aggregate()
        await a.close()

        second = await a.aggregate()
        await a.close()

        assert second.failed_sources == []
        assert len(second.stations) == len(first.stations)

    async def test_sources_exposed(self, fetch_config, test_sources):
        async with Aggregator(fetch_config) as a:
            assert a.sources == tuple(test_sources)


async def test_aggregate_sources_helper(test_sources, make_feed, feed_record):
    only = test_sources[:1]
    with respx.mock() as router:
        router.get(only[0].url).respond(json=make_feed(feed_record("5")))
        result = await aggregate_sources(only)
    assert [s.site_id for s in result.stations] == ["alpha-5"]
