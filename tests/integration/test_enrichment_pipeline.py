"""
Integration tests for the full ingest → enrich pipeline
"""

import asyncio
import pytest
import httpx
from datetime import date, timedelta
from ingestion.clients.registry_client import RegistryClient
from ingestion.dispatcher import CallerRunsDispatcher
from ingestion.loaders.cadastral_repository import CadastralRepository
from ingestion.orchestrator import EnrichmentOrchestrator
from models.base import LoadStatus
from models.cadastral import Region, Area, Quarter, CadastralObject

REGISTRY_URL = "https://registry.test/api/geoportal/v2/search/geoportal"


@pytest.fixture
def orchestrator(session_factory, registry_transport):
    client = RegistryClient(
        registry_url=REGISTRY_URL,
        thematic_search_id="1",
        timeout=5.0,
        client=httpx.AsyncClient(transport=registry_transport)
    )
    return EnrichmentOrchestrator(session_factory, client, CallerRunsDispatcher(pool_size=2))


async def load_object(session_factory, code):
    async with session_factory() as session:
        return await CadastralRepository(session).get_object(code)


@pytest.mark.asyncio
async def test_ingest_then_enrich(orchestrator, session_factory, registry_transport):
    """One object is found, its neighbour is unknown to the registry"""
    summary = await orchestrator.ingest_lines(["16:50:11:413", "16:50:11:414"])

    assert summary.lines_ingested == 2
    async with session_factory() as session:
        repository = CadastralRepository(session)
        assert await repository.count_rows(Region) == 1
        assert await repository.count_rows(Area) == 1
        assert await repository.count_rows(Quarter) == 1
        assert await repository.count_rows(CadastralObject) == 2

    result = await orchestrator.run_pending()

    assert result["dispatched"] == 2
    assert result["SUCCESS"] == 1
    assert result["NOT FOUND"] == 1
    assert result["ERROR"] == 0

    found = await load_object(session_factory, 413)
    assert found.load_status == LoadStatus.SUCCESS
    assert found.update_date == date.today()
    assert found.area == 1250.5
    assert found.right_type == "Собственность"
    assert found.data is not None

    missing = await load_object(session_factory, 414)
    assert missing.load_status == LoadStatus.NOT_FOUND
    assert missing.update_date == date.today()
    assert missing.area is None
    assert missing.data is None

    queries = sorted(r.url.params["query"] for r in registry_transport.requests)
    assert queries == ["16:50:11:413", "16:50:11:414"]


@pytest.mark.asyncio
async def test_second_run_same_day_does_nothing(orchestrator, registry_transport):
    await orchestrator.ingest_lines(["16:50:11:413", "16:50:11:414", "16:50:11:500"])

    first = await orchestrator.run_pending()
    second = await orchestrator.run_pending()

    assert first["dispatched"] == 3
    assert first["ERROR"] == 1
    assert second["dispatched"] == 0
    assert len(registry_transport.requests) == 3


@pytest.mark.asyncio
async def test_objects_refreshed_on_a_later_day(orchestrator, session_factory):
    await orchestrator.ingest_lines(["16:50:11:413"])
    await orchestrator.run_pending()

    tomorrow = date.today() + timedelta(days=1)
    pending = await orchestrator.list_pending(today=tomorrow)

    assert [str(n) for n in pending] == ["16:50:11:413"]


@pytest.mark.asyncio
async def test_reingest_moves_object_without_resetting_status(orchestrator, session_factory):
    await orchestrator.ingest_lines(["16:50:11:413"])
    await orchestrator.run_pending()

    await orchestrator.ingest_lines(["16:50:12:413"])

    obj = await load_object(session_factory, 413)
    assert obj.quarter_code == 12
    assert obj.load_status == LoadStatus.SUCCESS
    assert obj.update_date == date.today()
    assert obj.area == 1250.5

    assert await orchestrator.list_pending() == []


@pytest.mark.asyncio
async def test_leading_zeros_are_not_preserved(orchestrator, session_factory, registry_transport):
    await orchestrator.ingest_lines(["16:050:011:0413"])
    await orchestrator.run_pending()

    assert registry_transport.requests[0].url.params["query"] == "16:50:11:413"
    obj = await load_object(session_factory, 413)
    assert obj.load_status == LoadStatus.SUCCESS


@pytest.mark.asyncio
async def test_many_objects_all_complete(session_factory, make_registry_payload):
    """Every dispatched object reaches a terminal status; none is dropped"""
    active = 0
    peak = 0

    async def handler(request):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        try:
            await asyncio.sleep(0.01)
            return httpx.Response(200, json=make_registry_payload())
        finally:
            active -= 1

    client = RegistryClient(
        registry_url=REGISTRY_URL,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    orchestrator = EnrichmentOrchestrator(session_factory, client, CallerRunsDispatcher(pool_size=2))

    await orchestrator.ingest_lines([f"16:50:11:{code}" for code in range(1, 13)])
    result = await orchestrator.run_pending()

    assert result["dispatched"] == 12
    assert result["SUCCESS"] == 12
    assert peak <= 2

    async with session_factory() as session:
        counts = await CadastralRepository(session).count_by_status()
    assert counts[LoadStatus.SUCCESS] == 12
    assert counts[LoadStatus.NEW] == 0


@pytest.mark.asyncio
async def test_overlapping_runs_fetch_each_object_once(session_factory, registry_transport):
    """Two runs started together split the work and keep separate counts"""
    gate = asyncio.Event()

    async def handler(request):
        await gate.wait()
        return registry_transport.handler(request)

    client = RegistryClient(
        registry_url=REGISTRY_URL,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    orchestrator = EnrichmentOrchestrator(session_factory, client, CallerRunsDispatcher(pool_size=2))
    await orchestrator.ingest_lines([f"16:50:11:{code}" for code in (413, 414, 415, 416)])

    # Hold every fetch until both runs have listed the same four objects
    list_pending = orchestrator.list_pending
    listed = 0

    async def list_pending_then_release(today=None):
        nonlocal listed
        pending = await list_pending(today)
        listed += 1
        if listed == 2:
            gate.set()
        return pending

    orchestrator.list_pending = list_pending_then_release

    first, second = await asyncio.gather(orchestrator.run_pending(), orchestrator.run_pending())

    queries = sorted(r.url.params["query"] for r in registry_transport.requests)
    assert queries == ["16:50:11:413", "16:50:11:414", "16:50:11:415", "16:50:11:416"]

    for result in (first, second):
        assert result["SUCCESS"] + result["NOT FOUND"] + result["ERROR"] == result["dispatched"]
        assert result["dispatched"] + result["skipped"] == 4

    assert first["dispatched"] + second["dispatched"] == 4
    assert first["SUCCESS"] + second["SUCCESS"] == 1
    assert first["NOT FOUND"] + second["NOT FOUND"] == 1
    assert first["ERROR"] + second["ERROR"] == 2

    async with session_factory() as session:
        counts = await CadastralRepository(session).count_by_status()
    assert counts[LoadStatus.NEW] == 0


@pytest.mark.asyncio
async def test_object_refreshed_after_listing_is_not_fetched_again(orchestrator, registry_transport):
    await orchestrator.ingest_lines(["16:50:11:413"])
    stale = await orchestrator.list_pending()

    await orchestrator.run_pending()
    result = await orchestrator.run_pending()
    late = await orchestrator.dispatch(stale)
    await orchestrator.dispatcher.join()

    assert result["dispatched"] == 0
    assert late == 1
    assert len(registry_transport.requests) == 1
