"""
ZoneMap: Geocoding Tests
Tests: client throttling, error mapping, sanity bounds, reverse formatting, batches.
Run: pytest tests/test_geocoding.py -v
"""

import httpx
import pytest

from zonemap.models import Vertex
from zonemap.services.geocoding_batch import BatchGeocoder
from zonemap.services.geocoding_client import (
    NOT_FOUND_ADDRESS,
    UNKNOWN_POPULATION,
    GeocodingClient,
)
from zonemap.utils.cache import InMemoryCache
from zonemap.utils.exceptions import GeocodingError, RateLimitError

SEARCH_RESULTS = {
    "Calle Mayor 1": [{"lat": "39.4702", "lon": "-0.3768"}],
    "Calle Lejana 9": [{"lat": "45.0", "lon": "2.0"}],
    "Nowhere": [],
}


def search_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/search":
        query = request.url.params["q"].split(",")[0]
        if query == "Broken":
            return httpx.Response(500, text="upstream down")
        if query == "Busy":
            return httpx.Response(429, text="slow down")
        return httpx.Response(200, json=SEARCH_RESULTS.get(query, []))

    if request.url.path == "/reverse":
        lat = float(request.url.params["lat"])
        if lat == 0:
            return httpx.Response(200, json={"error": "Unable to geocode"})
        if lat == 1:
            return httpx.Response(200, json={
                "display_name": "Somewhere rural",
                "address": {"village": "Alboraya"},
            })
        return httpx.Response(200, json={
            "display_name": "5, Carrer de Colón, Centro, València",
            "address": {
                "road": "Carrer de Colón",
                "house_number": "5",
                "suburb": "Centro",
                "city": "València",
            },
        })

    return httpx.Response(404)


class FakeSleep:
    def __init__(self, clock):
        self.clock = clock
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)
        self.clock.advance(seconds)


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def sleeper(clock):
    return FakeSleep(clock)


@pytest.fixture
def make_client(clock, sleeper, requests_seen):
    def _make(**overrides):
        def handler(request):
            requests_seen.append(request)
            return search_handler(request)

        options = dict(
            base_url="https://geo.test",
            fallback_url="",
            min_interval=1.0,
            region_suffix="",
            bounds=None,
            language="es",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            cache=None,
            sleep=sleeper,
            clock=clock,
        )
        options.update(overrides)
        return GeocodingClient(**options)
    return _make


# ═══════════════════════════════════════════════════════════════
# 1. CLIENT
# ═══════════════════════════════════════════════════════════════

class TestGeocodingClient:

    def test_geocode_found(self, make_client):
        assert make_client().geocode("Calle Mayor 1") == Vertex(39.4702, -0.3768)

    def test_geocode_not_found(self, make_client):
        assert make_client().geocode("Nowhere") is None

    def test_query_parameters(self, make_client, requests_seen):
        make_client(region_suffix="Valencia, España").geocode("  Calle   Mayor 1 ")
        params = requests_seen[0].url.params
        assert params["q"] == "Calle Mayor 1, Valencia, España"
        assert params["format"] == "json"
        assert params["limit"] == "1"
        assert params["accept-language"] == "es"

    def test_requests_are_spaced(self, make_client, sleeper):
        client = make_client()
        for address in ("Calle Mayor 1", "Nowhere", "Calle Mayor 1"):
            client.geocode(address)

        assert sleeper.calls == [1.0, 1.0]
        assert client.get_usage_stats()["total_requests"] == 3

    def test_no_sleep_when_interval_elapsed(self, make_client, sleeper, clock):
        client = make_client()
        client.geocode("Calle Mayor 1")
        clock.advance(5)
        client.geocode("Nowhere")
        assert sleeper.calls == []

    def test_server_error(self, make_client):
        with pytest.raises(GeocodingError):
            make_client().geocode("Broken")

    def test_rate_limited(self, make_client):
        with pytest.raises(RateLimitError):
            make_client().geocode("Busy")

    def test_transport_error(self, clock, sleeper):
        def failing(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = GeocodingClient(
            base_url="https://geo.test", bounds=None, region_suffix="",
            http_client=httpx.Client(transport=httpx.MockTransport(failing)),
            cache=None, sleep=sleeper, clock=clock,
        )
        with pytest.raises(GeocodingError):
            client.geocode("Calle Mayor 1")

    def test_result_outside_bounds_rejected(self, make_client):
        client = make_client(bounds=(39.0, -1.0, 40.0, 0.0))
        assert client.geocode("Calle Lejana 9") is None
        assert client.geocode("Calle Mayor 1") == Vertex(39.4702, -0.3768)

    def test_cached_lookup_skips_network(self, make_client, requests_seen):
        client = make_client(cache=InMemoryCache())
        client.geocode("Calle Mayor 1")
        client.geocode("Calle Mayor 1")
        client.geocode("Nowhere")
        client.geocode("Nowhere")
        assert len(requests_seen) == 2

    @pytest.mark.parametrize("boxed_first", [True, False])
    def test_shared_cache_keeps_bounded_clients_apart(self, make_client, requests_seen, clock, boxed_first):
        shared = InMemoryCache(clock=clock)
        boxed = make_client(cache=shared, bounds=(39.0, -1.0, 40.0, 0.0))
        unboxed = make_client(cache=shared)

        order = [boxed, unboxed] if boxed_first else [unboxed, boxed]
        results = {id(client): client.geocode("Calle Lejana 9") for client in order}

        assert results[id(boxed)] is None
        assert results[id(unboxed)] == Vertex(45.0, 2.0)
        assert len(requests_seen) == 2

    def test_shared_cache_keeps_region_and_language_apart(self, make_client, requests_seen, clock):
        shared = InMemoryCache(clock=clock)
        make_client(cache=shared).geocode("Calle Mayor 1")
        make_client(cache=shared, region_suffix="Valencia").geocode("Calle Mayor 1")
        make_client(cache=shared, language="en").geocode("Calle Mayor 1")
        make_client(cache=shared).geocode("Calle Mayor 1")
        assert len(requests_seen) == 3

    def test_reverse_formats_components(self, make_client):
        result = make_client().reverse(39.47, -0.37)
        assert result == {"address": "Carrer de Colón, 5, Centro, València", "population": "València"}

    def test_reverse_without_address(self, make_client):
        assert make_client().reverse(0, 0) == {
            "address": NOT_FOUND_ADDRESS,
            "population": UNKNOWN_POPULATION,
        }

    def test_reverse_village(self, make_client):
        assert make_client().reverse(1, 0) == {"address": "Alboraya", "population": "Alboraya"}

    def test_reverse_uses_fallback_service(self, make_client):
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            if request.url.host == "geo.test":
                return httpx.Response(503, text="maintenance")
            return search_handler(request)

        client = make_client(
            fallback_url="https://backup.test/",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

        assert client.reverse(39.47, -0.37)["population"] == "València"
        assert hosts == ["geo.test", "backup.test"]

    @pytest.mark.parametrize("status", [500, 429])
    def test_reverse_degrades_when_every_service_fails(self, make_client, clock, status):
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            return httpx.Response(status)

        client = make_client(
            fallback_url="https://backup.test",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            cache=InMemoryCache(clock=clock),
        )

        placeholder = {"address": NOT_FOUND_ADDRESS, "population": UNKNOWN_POPULATION}
        assert client.reverse(39.47, -0.37) == placeholder
        assert client.reverse(39.47, -0.37) == placeholder
        # failures are never cached
        assert hosts == ["geo.test", "backup.test"] * 2

    def test_reverse_without_fallback_degrades(self, make_client, requests_seen):
        def handler(request):
            requests_seen.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(http_client=httpx.Client(transport=httpx.MockTransport(handler)))

        assert client.reverse(39.47, -0.37)["address"] == NOT_FOUND_ADDRESS
        assert len(requests_seen) == 1


# ═══════════════════════════════════════════════════════════════
# 2. BATCH
# ═══════════════════════════════════════════════════════════════

class TestBatchGeocoder:

    def test_failures_are_skipped(self, make_client):
        result = BatchGeocoder(client=make_client()).run([
            ("1", "Calle Mayor 1"),
            ("2", "Broken"),
            ("3", "Nowhere"),
            ("4", "   "),
        ])

        assert result.requested == 4
        assert result.processed == 4
        assert set(result.located) == {"1"}
        assert result.not_found == ["3", "4"]
        assert "HTTP 500" in result.failed["2"]
        assert result.cancelled is False
        assert result.finished_at is not None

    def test_summary(self, make_client):
        summary = BatchGeocoder(client=make_client()).run([("1", "Broken")]).summary()
        assert summary["failed"] == 1
        assert summary["located"] == 0
        assert list(summary["errors"]) == ["1"]

    def test_cancel_stops_after_current_item(self, make_client):
        geocoder = BatchGeocoder(client=make_client(), progress_every=1)
        geocoder.on_progress = lambda result: geocoder.cancel()

        result = geocoder.run([("1", "Calle Mayor 1"), ("2", "Nowhere"), ("3", "Nowhere")])

        assert result.cancelled is True
        assert result.processed == 1

    def test_run_entities_only_missing(self, make_client, make_entity, requests_seen):
        entities = [
            make_entity("placed", lat=39.0, lng=-0.3, address="Calle Mayor 1"),
            make_entity("missing", lat=None, lng=None, address="Calle Mayor 1"),
        ]
        result = BatchGeocoder(client=make_client()).run_entities(entities)

        assert result.requested == 1
        updated = result.apply(entities)
        assert updated[0] is entities[0]
        assert (updated[1].lat, updated[1].lng) == (39.4702, -0.3768)
        assert updated[1].has_valid_position is True
