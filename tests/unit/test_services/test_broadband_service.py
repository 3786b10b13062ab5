"""Unit tests for the broadband resolution pipeline."""

import asyncio
from datetime import UTC, timedelta

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from broadband_api.lib.broadband import (
    REGIONAL_SOURCE,
    ArcGISSource,
    BaseProviderSource,
    BroadbandCache,
    BroadbandResult,
    MirrorDatabaseSource,
    NormalizedProvider,
    OpenDataSource,
    RawProviderRecord,
)
from broadband_api.lib.broadband.arcgis import ARCGIS_QUERY_URL
from broadband_api.lib.broadband.opendata import OPENDATA_URL
from broadband_api.lib.census_block import BlockNotFoundError, CensusBlockResolver
from broadband_api.lib.census_block.resolver import CENSUS_GEOGRAPHIES_URL
from broadband_api.lib.geocoder import Geocoder
from broadband_api.lib.geocoder.census import CENSUS_API_URL, CensusGeocoder
from broadband_api.models.broadband_availability import BroadbandAvailability
from broadband_api.models.broadband_cache import BroadbandCache as BroadbandCacheEntry
from broadband_api.models.broadband_provider import BroadbandProvider
from broadband_api.services.broadband_service import (
    BroadbandResolver,
    Coordinates,
    InvalidInputError,
    PropertyLocation,
    ResolutionState,
    build_broadband_resolver,
    build_target,
)

ADDRESS = "1600 Pennsylvania Ave, Washington DC"
GEOID = "110010062021034"
LAT = 38.89768
LON = -77.03654

ADDRESS_MATCH = {
    "result": {
        "addressMatches": [
            {
                "matchedAddress": "1600 PENNSYLVANIA AVE NW, WASHINGTON, DC, 20500",
                "coordinates": {"x": LON, "y": LAT},
                "addressComponents": {"city": "WASHINGTON", "state": "DC", "zip": "20500"},
            }
        ]
    }
}

BLOCK_MATCH = {
    "result": {
        "geographies": {
            "2020 Census Blocks": [
                {
                    "GEOID": GEOID,
                    "STATE": "11",
                    "COUNTY": "001",
                    "TRACT": "006202",
                    "BLOCK": "1034",
                    "INTPTLAT": 38.8976,
                    "INTPTLON": -77.0365,
                    "NAME": "Block 1034",
                }
            ]
        }
    }
}

NO_BLOCK = {"result": {"geographies": {"2020 Census Blocks": []}}}

ARCGIS_FEATURES = {
    "features": [{"attributes": {"FRN": "0009999999", "ProviderName": "RCN", "TechCode": "50", "MaxAdDown": 500}}]
}


def _router(
    opendata: httpx.Response | None = None,
    arcgis: httpx.Response | None = None,
    block: dict | None = None,
):
    """Build a handler answering each upstream by URL."""

    def _handle(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url.startswith(CENSUS_API_URL):
            return httpx.Response(200, json=ADDRESS_MATCH)
        if url.startswith(CENSUS_GEOGRAPHIES_URL):
            return httpx.Response(200, json=block if block is not None else BLOCK_MATCH)
        if url.startswith(OPENDATA_URL):
            return opendata or httpx.Response(200, json=[])
        if url.startswith(ARCGIS_QUERY_URL):
            return arcgis or httpx.Response(200, json={"features": []})
        return httpx.Response(404)

    return _handle


class ExplodingSource(BaseProviderSource):
    """A source that fails with an unexpected exception."""

    source_name = "exploding"
    source_label = "Exploding"

    @property
    def supports_coordinates(self) -> bool:
        return True

    async def fetch_by_coordinates(self, latitude: float, longitude: float) -> list[RawProviderRecord]:
        raise RuntimeError("unexpected")


class StallingSource(BaseProviderSource):
    """A block source that never answers until cancelled."""

    source_name = "stalling"
    source_label = "Stalling"

    def __init__(self) -> None:
        self.started = asyncio.Event()

    @property
    def supports_block(self) -> bool:
        return True

    async def fetch_by_block(self, geoid: str) -> list[RawProviderRecord]:
        self.started.set()
        await asyncio.Event().wait()
        return []


class FakePropertyStore:
    """In-memory property store."""

    def __init__(self, properties: dict[str, PropertyLocation]) -> None:
        self._properties = properties

    async def get_property_location(self, property_id: str) -> PropertyLocation | None:
        return self._properties.get(property_id)


@pytest.fixture
def make_resolver(mock_http, session_factory, clock):
    """Factory building a resolver whose outbound calls go through one recording transport."""

    def _make(handler, sources=("mirror", "opendata"), cache=None):
        client, transport = mock_http(handler)
        available = {
            "mirror": MirrorDatabaseSource(session_factory),
            "opendata": OpenDataSource(client=client),
            "arcgis": ArcGISSource(client=client),
            "exploding": ExplodingSource(),
        }
        resolver = BroadbandResolver(
            geocoder=Geocoder([CensusGeocoder(client=client)]),
            block_resolver=CensusBlockResolver(client=client),
            cache=cache or BroadbandCache(session_factory, clock=clock),
            sources=[available[s] if isinstance(s, str) else s for s in sources],
        )
        return resolver, transport

    return _make


@pytest.fixture
async def seeded_mirror(async_session):
    """Three availability rows for two providers at the geocoded point."""
    async_session.add_all(
        [
            BroadbandProvider(
                frn="0001234567",
                provider_name="Verizon",
                provider_dba_name="Verizon Fios",
                data_as_of="2024-06-30",
            ),
            BroadbandProvider(frn="0007654321", provider_name="Comcast", data_as_of="2024-06-30"),
        ]
    )
    await async_session.flush()
    for frn, code, down, up in (
        ("0001234567", "50", 940, 880),
        ("0007654321", "40", 1200, 35),
        ("0007654321", "50", 2000, 2000),
    ):
        async_session.add(
            BroadbandAvailability(
                frn=frn,
                technology_code=code,
                technology_name="",
                max_download=down,
                max_upload=up,
                block_id=GEOID,
                state_abbr="DC",
                county="District of Columbia",
                latitude=LAT,
                longitude=LON,
                data_as_of="2024-06-30",
            )
        )
    await async_session.commit()
    return async_session


class TestAddressResolution:
    """End-to-end resolution of an address through the mirror."""

    @pytest.mark.asyncio
    async def test_address_resolves_through_mirror(self, make_resolver, seeded_mirror, clock) -> None:
        resolver, transport = make_resolver(_router())
        resolution = await resolver.resolve(ADDRESS)

        assert resolution.state == ResolutionState.NORMALIZED
        assert resolution.source_name == "mirror"
        assert resolution.census_block is not None
        assert resolution.census_block.geoid == GEOID

        geographies = [r for r in transport.requests if str(r.url).startswith(CENSUS_GEOGRAPHIES_URL)]
        assert len(geographies) == 1
        assert geographies[0].url.params["x"] == str(LON)
        assert geographies[0].url.params["y"] == str(LAT)

        result = resolution.result
        assert [p.name for p in result.providers] == ["Verizon Fios", "Comcast"]
        assert result.providers[1].technologies == [
            "Cable Modem - DOCSIS 1.0",
            "Optical Carrier/Fiber to the End User",
        ]
        assert result.providers[1].max_download == 2000
        assert result.geoid == GEOID
        assert result.error is False

    @pytest.mark.asyncio
    async def test_result_cached_for_24_hours(self, make_resolver, seeded_mirror, clock) -> None:
        resolver, _ = make_resolver(_router())
        await resolver.resolve(ADDRESS)

        entry = await seeded_mirror.scalar(select(BroadbandCacheEntry).where(BroadbandCacheEntry.geoid == GEOID))
        assert entry is not None
        assert entry.expires_at.replace(tzinfo=UTC) == clock() + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_later_sources_not_queried(self, make_resolver, seeded_mirror) -> None:
        resolver, transport = make_resolver(_router())
        await resolver.resolve(ADDRESS)
        assert not [r for r in transport.requests if str(r.url).startswith(OPENDATA_URL)]

    @pytest.mark.asyncio
    async def test_resolve_broadband_returns_result(self, make_resolver, seeded_mirror) -> None:
        resolver, _ = make_resolver(_router())
        result = await resolver.resolve_broadband(ADDRESS)
        assert isinstance(result, BroadbandResult)
        assert len(result.providers) == 2


class TestCacheHit:
    """A live cache entry short-circuits the sources."""

    @pytest.mark.asyncio
    async def test_cache_hit(self, make_resolver) -> None:
        resolver, transport = make_resolver(_router())
        cached = BroadbandResult(
            providers=[
                NormalizedProvider(name="Cached ISP", max_download=100, max_upload=10, source="FCC Open Data API")
            ],
            message="Providers available at this location according to FCC data",
            source="FCC Open Data API",
            geoid=GEOID,
        )
        await resolver.cache.put(GEOID, cached)

        resolution = await resolver.resolve(ADDRESS)

        assert resolution.state == ResolutionState.CACHE_HIT
        assert resolution.source_name == "cache"
        assert resolution.result == cached
        assert not [r for r in transport.requests if str(r.url).startswith(OPENDATA_URL)]

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, make_resolver, clock) -> None:
        rows = [{"frn": "1", "providername": "Fresh ISP", "techcode": "20", "maxaddown": "300", "maxadup": "300"}]
        resolver, _ = make_resolver(_router(opendata=httpx.Response(200, json=rows)))
        stale = BroadbandResult(providers=[], message="old", source="FCC Open Data API", geoid=GEOID)
        await resolver.cache.put(GEOID, stale)
        clock.advance(timedelta(hours=25))

        resolution = await resolver.resolve(ADDRESS)
        assert resolution.state == ResolutionState.NORMALIZED
        assert resolution.result.providers[0].name == "Fresh ISP"


class TestSourceFallthrough:
    """Sources are tried in order until one returns records."""

    @pytest.mark.asyncio
    async def test_failing_source_skipped(self, make_resolver) -> None:
        resolver, _ = make_resolver(
            _router(
                opendata=httpx.Response(500),
                arcgis=httpx.Response(200, json=ARCGIS_FEATURES),
            ),
            sources=("opendata", "arcgis"),
        )
        resolution = await resolver.resolve(ADDRESS)

        assert resolution.state == ResolutionState.NORMALIZED
        assert resolution.source_name == "arcgis"
        assert resolution.result.source == "FCC Broadband Map (ArcGIS)"
        assert resolution.result.providers[0].name == "RCN"

    @pytest.mark.asyncio
    async def test_unexpected_exception_skipped(self, make_resolver) -> None:
        resolver, _ = make_resolver(
            _router(arcgis=httpx.Response(200, json=ARCGIS_FEATURES)),
            sources=("exploding", "arcgis"),
        )
        resolution = await resolver.resolve(ADDRESS)
        assert resolution.source_name == "arcgis"

    @pytest.mark.asyncio
    async def test_arcgis_queried_by_coordinates(self, make_resolver) -> None:
        resolver, transport = make_resolver(
            _router(arcgis=httpx.Response(200, json=ARCGIS_FEATURES)),
            sources=("arcgis",),
        )
        await resolver.resolve(ADDRESS)
        arcgis = [r for r in transport.requests if str(r.url).startswith(ARCGIS_QUERY_URL)]
        assert arcgis[0].url.params["geometry"] == f"{LON},{LAT}"

    @pytest.mark.asyncio
    async def test_opendata_queried_by_geoid(self, make_resolver) -> None:
        rows = [{"frn": "1", "providername": "Block ISP", "techcode": "20"}]
        resolver, transport = make_resolver(_router(opendata=httpx.Response(200, json=rows)), sources=("opendata",))
        resolution = await resolver.resolve(ADDRESS)
        opendata = [r for r in transport.requests if str(r.url).startswith(OPENDATA_URL)]
        assert opendata[0].url.params["blockcode"] == GEOID
        assert resolution.result.providers[0].name == "Block ISP"


class TestRegionalApproximation:
    """When every source comes back empty the fallback list is returned."""

    @pytest.mark.asyncio
    async def test_coordinates_with_no_data(self, make_resolver) -> None:
        resolver, _ = make_resolver(_router(), sources=("mirror", "opendata", "arcgis"))
        resolution = await resolver.resolve(Coordinates(latitude=38.9, longitude=-77.0))

        assert resolution.state == ResolutionState.ALL_SOURCES_FAILED
        assert resolution.is_regional_approximation is True
        assert resolution.source_name == "regional_approximation"
        result = resolution.result
        assert len(result.providers) == 3
        assert "regional approximation" in result.message
        assert result.source == REGIONAL_SOURCE
        assert result.geoid == GEOID

    @pytest.mark.asyncio
    async def test_fallback_not_cached(self, make_resolver, async_session) -> None:
        resolver, _ = make_resolver(_router())
        await resolver.resolve((38.9, -77.0))
        count = await async_session.scalar(select(func.count()).select_from(BroadbandCacheEntry))
        assert count == 0

    @pytest.mark.asyncio
    async def test_no_sources_configured(self, make_resolver) -> None:
        resolver, _ = make_resolver(_router(), sources=())
        resolution = await resolver.resolve(ADDRESS)
        assert resolution.state == ResolutionState.ALL_SOURCES_FAILED


class TestBlockNotFound:
    """Without a census block, coordinate-capable sources still answer."""

    @pytest.mark.asyncio
    async def test_coordinate_sources_used(self, make_resolver, async_session) -> None:
        resolver, transport = make_resolver(
            _router(block=NO_BLOCK, arcgis=httpx.Response(200, json=ARCGIS_FEATURES)),
            sources=("opendata", "arcgis"),
        )
        resolution = await resolver.resolve(ADDRESS)

        assert resolution.census_block is None
        assert resolution.source_name == "arcgis"
        assert resolution.result.geoid is None
        # block-only source is skipped without a request
        assert not [r for r in transport.requests if str(r.url).startswith(OPENDATA_URL)]
        count = await async_session.scalar(select(func.count()).select_from(BroadbandCacheEntry))
        assert count == 0

    @pytest.mark.asyncio
    async def test_census_outage_falls_back(self, make_resolver) -> None:
        def _handler(request: httpx.Request) -> httpx.Response:
            if str(request.url).startswith(CENSUS_GEOGRAPHIES_URL):
                return httpx.Response(502)
            return _router()(request)

        resolver, _ = make_resolver(_handler)
        resolution = await resolver.resolve(ADDRESS)
        assert resolution.state == ResolutionState.ALL_SOURCES_FAILED
        assert resolution.result.geoid is None


class TestCacheUnavailable:
    """An unreachable cache database does not stop resolution."""

    @pytest.fixture
    async def unreachable_cache(self, clock):
        async def _refuse() -> None:
            raise ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 1)")

        engine = create_async_engine("sqlite+aiosqlite://", async_creator=_refuse)
        yield BroadbandCache(async_sessionmaker(engine, expire_on_commit=False), clock=clock)
        await engine.dispose()

    @pytest.mark.asyncio
    async def test_resolves_without_cache(self, make_resolver, unreachable_cache) -> None:
        rows = [{"frn": "1", "providername": "Block ISP", "techcode": "20", "maxaddown": "100", "maxadup": "20"}]
        resolver, _ = make_resolver(
            _router(opendata=httpx.Response(200, json=rows)),
            sources=("opendata",),
            cache=unreachable_cache,
        )
        resolution = await resolver.resolve(ADDRESS)

        assert resolution.state == ResolutionState.NORMALIZED
        assert resolution.result.providers[0].name == "Block ISP"
        assert resolution.result.geoid == GEOID

    @pytest.mark.asyncio
    async def test_fallback_without_cache(self, make_resolver, unreachable_cache) -> None:
        resolver, _ = make_resolver(_router(), sources=("opendata",), cache=unreachable_cache)
        resolution = await resolver.resolve(ADDRESS)
        assert resolution.state == ResolutionState.ALL_SOURCES_FAILED


class TestCancellation:
    """A cancelled resolution stops where it is and writes nothing to the cache."""

    @pytest.mark.asyncio
    async def test_cancel_during_source_query(self, make_resolver, async_session) -> None:
        stalling = StallingSource()
        resolver, _ = make_resolver(_router(), sources=(stalling, "opendata"))

        task = asyncio.create_task(resolver.resolve(ADDRESS))
        await asyncio.wait_for(stalling.started.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        count = await async_session.scalar(select(func.count()).select_from(BroadbandCacheEntry))
        assert count == 0

    @pytest.mark.asyncio
    async def test_cancel_during_census_call(self, make_resolver, async_session) -> None:
        started = asyncio.Event()

        async def _handler(request: httpx.Request) -> httpx.Response:
            if str(request.url).startswith(CENSUS_GEOGRAPHIES_URL):
                started.set()
                await asyncio.Event().wait()
            return _router()(request)

        resolver, transport = make_resolver(_handler, sources=("opendata",))

        task = asyncio.create_task(resolver.resolve(ADDRESS))
        await asyncio.wait_for(started.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not [r for r in transport.requests if str(r.url).startswith(OPENDATA_URL)]
        count = await async_session.scalar(select(func.count()).select_from(BroadbandCacheEntry))
        assert count == 0


class TestInvalidInput:
    """Invalid input fails before any network call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["", "   ", "\t\n"])
    async def test_empty_address(self, make_resolver, address: str) -> None:
        resolver, transport = make_resolver(_router())
        with pytest.raises(InvalidInputError):
            await resolver.resolve_broadband(address)
        assert len(transport.requests) == 0

    @pytest.mark.asyncio
    async def test_out_of_range_pair(self, make_resolver) -> None:
        resolver, transport = make_resolver(_router())
        with pytest.raises(InvalidInputError, match="latitude"):
            await resolver.resolve((91.0, 0.0))
        assert len(transport.requests) == 0

    @pytest.mark.asyncio
    async def test_unsupported_target(self, make_resolver) -> None:
        resolver, _ = make_resolver(_router())
        with pytest.raises(InvalidInputError, match="Unsupported"):
            await resolver.resolve(42)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_coordinates_skip_geocoding(self, make_resolver) -> None:
        resolver, transport = make_resolver(_router())
        resolution = await resolver.resolve(Coordinates(latitude=LAT, longitude=LON))
        assert resolution.location.source == "coordinates"
        assert not [r for r in transport.requests if str(r.url).startswith(CENSUS_API_URL)]


class TestSyntheticGeocoding:
    """Addresses no provider can match still resolve."""

    @pytest.mark.asyncio
    async def test_unmatched_address_uses_synthetic_location(self, make_resolver) -> None:
        def _handler(request: httpx.Request) -> httpx.Response:
            if str(request.url).startswith(CENSUS_API_URL):
                return httpx.Response(200, json={"result": {"addressMatches": []}})
            return _router()(request)

        resolver, _ = make_resolver(_handler)
        resolution = await resolver.resolve("742 Evergreen Terrace, Springfield")
        assert resolution.location.is_synthetic is True
        assert resolution.state == ResolutionState.ALL_SOURCES_FAILED


class TestResolveForProperty:
    """Tests for resolve_for_property()."""

    @pytest.mark.asyncio
    async def test_stored_coordinates_bypass_geocoding(self, make_resolver) -> None:
        resolver, transport = make_resolver(_router())
        store = FakePropertyStore({"p1": PropertyLocation(address=ADDRESS, latitude=LAT, longitude=LON)})
        resolution = await resolver.resolve_for_property(store, "p1")
        assert resolution.location.source == "coordinates"
        assert not [r for r in transport.requests if str(r.url).startswith(CENSUS_API_URL)]

    @pytest.mark.asyncio
    async def test_address_only_property(self, make_resolver) -> None:
        resolver, _ = make_resolver(_router())
        store = FakePropertyStore({"p2": PropertyLocation(address=ADDRESS)})
        resolution = await resolver.resolve_for_property(store, "p2")
        assert resolution.location.source == "census"

    @pytest.mark.asyncio
    async def test_unknown_property(self, make_resolver) -> None:
        resolver, _ = make_resolver(_router())
        with pytest.raises(InvalidInputError, match="not found"):
            await resolver.resolve_for_property(FakePropertyStore({}), "missing")

    @pytest.mark.asyncio
    async def test_property_without_location(self, make_resolver) -> None:
        resolver, _ = make_resolver(_router())
        store = FakePropertyStore({"p3": PropertyLocation()})
        with pytest.raises(InvalidInputError, match="neither"):
            await resolver.resolve_for_property(store, "p3")


class TestFindCensusBlock:
    """Tests for find_census_block()."""

    @pytest.mark.asyncio
    async def test_address(self, make_resolver) -> None:
        resolver, _ = make_resolver(_router())
        location, block = await resolver.find_census_block(ADDRESS)
        assert location.source == "census"
        assert block.geoid == GEOID
        assert block.tract == "006202"

    @pytest.mark.asyncio
    async def test_not_found_propagates(self, make_resolver) -> None:
        resolver, _ = make_resolver(_router(block=NO_BLOCK))
        with pytest.raises(BlockNotFoundError):
            await resolver.find_census_block((LAT, LON))


class TestBuildTarget:
    """Tests for build_target() and Coordinates.parse()."""

    def test_address(self) -> None:
        assert build_target(address=ADDRESS) == ADDRESS

    def test_coordinates(self) -> None:
        assert build_target(latitude=38.9, longitude=-77.0) == Coordinates(38.9, -77.0)

    def test_neither(self) -> None:
        with pytest.raises(InvalidInputError, match="required"):
            build_target()

    def test_both(self) -> None:
        with pytest.raises(InvalidInputError, match="not both"):
            build_target(address=ADDRESS, latitude=38.9, longitude=-77.0)

    def test_single_coordinate(self) -> None:
        with pytest.raises(InvalidInputError, match="Both lat and lng"):
            build_target(latitude=38.9)

    def test_parse_strings(self) -> None:
        assert Coordinates.parse("38.9", "-77.0") == Coordinates(38.9, -77.0)

    @pytest.mark.parametrize(
        ("latitude", "longitude"),
        [("north", 0), (float("nan"), 0), (0, float("inf")), (True, 0), (None, 0), (0, 181), (-91, 0)],
    )
    def test_parse_rejects(self, latitude, longitude) -> None:
        with pytest.raises(InvalidInputError):
            Coordinates.parse(latitude, longitude)

    def test_parse_accepts_bounds(self) -> None:
        assert Coordinates.parse(-90, 180) == Coordinates(-90.0, 180.0)


class TestBuildBroadbandResolver:
    """Tests for build_broadband_resolver()."""

    def test_sources_follow_settings(self, settings, session_factory) -> None:
        resolver = build_broadband_resolver(settings, session_factory)
        assert [s.source_name for s in resolver.sources] == ["mirror", "opendata", "arcgis"]
        assert resolver.cache.default_ttl == timedelta(hours=24)

    def test_ttl_from_settings(self, settings, session_factory) -> None:
        settings.broadband_cache_ttl_hours = 6
        resolver = build_broadband_resolver(settings, session_factory)
        assert resolver.cache.default_ttl == timedelta(hours=6)
