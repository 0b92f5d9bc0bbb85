# ============================================================================
# File: ingestion/orchestrator.py
# Description: Cadastral ingestion and enrichment orchestrator
# ============================================================================
"""
Enrichment Orchestrator - ingests identifiers and refreshes stale objects.

This module provides:
- Best-effort batch ingestion (one transaction per identifier)
- Stale object selection
- Per-object fetch + write units, each in its own transaction
- Bounded-concurrency dispatch through CallerRunsDispatcher
- Failure isolation: one identifier or object never stops its siblings
"""

import asyncio
from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import logging

from ingestion.parser import parse_cadastral_number
from ingestion.dispatcher import CallerRunsDispatcher
from ingestion.clients.registry_client import RegistryClient
from ingestion.loaders.cadastral_repository import CadastralRepository
from models.base import LoadStatus
from schemas.cadastral import CadastralNumber, IngestionSummary
from core.exceptions import CadastralException, NotFoundError

logger = logging.getLogger(__name__)


class EnrichmentOrchestrator:
    """
    Cadastral Orchestrator

    Responsibilities:
    - Parse and upsert uploaded identifiers (region → area → quarter → object)
    - Select objects that are NEW or not refreshed today
    - Fetch each from the registry and record SUCCESS / NOT FOUND / ERROR
    - Keep every unit of work in its own transaction
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        registry_client: RegistryClient,
        dispatcher: CallerRunsDispatcher
    ):
        self.session_factory = session_factory
        self.registry_client = registry_client
        self.dispatcher = dispatcher
        # Object codes submitted and not finished yet, across all callers
        self._in_flight: Set[int] = set()

    # --------------------------------------------------
    # INGESTION
    # --------------------------------------------------

    async def ingest_identifier(self, text: str) -> bool:
        """
        Parse one identifier and upsert its hierarchy in a single transaction.

        Errors are logged and swallowed; the return value says whether the
        identifier was stored.
        """
        try:
            number = parse_cadastral_number(text)
            async with self.session_factory() as session:
                async with session.begin():
                    await self._upsert_hierarchy(session, number)
            logger.info(f"Successful insert cadastral = {number}")
            return True

        except CadastralException as e:
            logger.error(
                f"Error while insert cadastral = {text!r}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return False

        except Exception:
            logger.exception(f"Error while insert cadastral = {text!r}")
            return False

    async def _upsert_hierarchy(self, session: AsyncSession, number: CadastralNumber):
        repository = CadastralRepository(session)
        await repository.upsert_region(number.region_code)
        await repository.upsert_area(number.area_code, number.region_code)
        await repository.upsert_quarter(number.quarter_code, number.area_code)
        await repository.upsert_object(number.object_code, number.quarter_code)

    async def ingest_lines(self, lines: Iterable[str]) -> IngestionSummary:
        """Ingest every line independently; blank lines are skipped."""
        summary = IngestionSummary()

        for line in lines:
            summary.lines_received += 1
            if not line.strip():
                summary.lines_skipped += 1
                continue

            if await self.ingest_identifier(line):
                summary.lines_ingested += 1
            else:
                summary.lines_failed += 1

        logger.info(
            f"Ingestion complete: received={summary.lines_received}, "
            f"ingested={summary.lines_ingested}, failed={summary.lines_failed}, "
            f"skipped={summary.lines_skipped}"
        )
        return summary

    # --------------------------------------------------
    # ENRICHMENT
    # --------------------------------------------------

    async def list_pending(self, today: Optional[date] = None) -> List[CadastralNumber]:
        async with self.session_factory() as session:
            pending = await CadastralRepository(session).list_stale_objects(today)
        logger.info(f"Found {len(pending)} cadastral objects to refresh")
        return pending

    async def enrich_one(self, number: CadastralNumber) -> Optional[LoadStatus]:
        """
        Fetch one object and record the outcome.

        PENDING → SUCCESS    enrichment written
        PENDING → NOT FOUND  registry has no record, fields untouched
        PENDING → ERROR      any other failure, fields untouched

        Returns the recorded status, or None when even the status could not
        be written (the object then keeps its previous state and is picked
        up again on the next run).
        """
        try:
            record = await self.registry_client.fetch(number)
        except NotFoundError as e:
            logger.error(f"Not found data for cadastral = {number}: {e.message}")
            return await self._record_status(number, LoadStatus.NOT_FOUND)
        except Exception as e:
            logger.error(f"Error while fetch data for cadastral = {number}: {e}")
            return await self._record_status(number, LoadStatus.ERROR)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    repository = CadastralRepository(session)
                    await repository.write_enrichment(number.object_code, record)
                    await repository.set_status(number.object_code, LoadStatus.SUCCESS)
        except Exception:
            logger.exception(f"Error while update data for cadastral = {number}")
            return await self._record_status(number, LoadStatus.ERROR)

        logger.info(f"Successful update data for cadastral = {number}")
        return LoadStatus.SUCCESS

    async def _record_status(self, number: CadastralNumber, status: LoadStatus) -> Optional[LoadStatus]:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await CadastralRepository(session).set_status(number.object_code, status)
        except Exception:
            logger.exception(f"Failed to record status {status.value} for cadastral = {number}")
            return None

        return status

    # --------------------------------------------------
    # DISPATCH
    # --------------------------------------------------

    async def _still_stale(self, number: CadastralNumber) -> bool:
        async with self.session_factory() as session:
            return await CadastralRepository(session).is_stale(number.object_code)

    async def _enrich_and_count(self, number: CadastralNumber, outcomes: Optional[Counter]):
        """
        Enrich one object unless another run refreshed it after it was listed.

        Outcomes are counted by status value, late skips under "skipped".
        """
        try:
            if not await self._still_stale(number):
                logger.info(f"Cadastral = {number} was refreshed by another run, skipping")
                if outcomes is not None:
                    outcomes["skipped"] += 1
                return

            status = await self.enrich_one(number)
            if outcomes is not None and status is not None:
                outcomes[status.value] += 1
        finally:
            self._in_flight.discard(number.object_code)

    async def _dispatch(
        self,
        numbers: Iterable[CadastralNumber],
        outcomes: Optional[Counter] = None
    ) -> Tuple[int, int, List[asyncio.Task]]:
        """
        Submit every object that is not already being refreshed.

        Returns (submitted, skipped, background tasks of this call). Objects
        run in the caller are already finished when this returns.
        """
        submitted = 0
        skipped = 0
        tasks: List[asyncio.Task] = []

        for number in numbers:
            if number.object_code in self._in_flight:
                logger.info(f"Cadastral = {number} is already being refreshed, skipping")
                skipped += 1
                continue

            self._in_flight.add(number.object_code)
            try:
                task = await self.dispatcher.submit(self._enrich_and_count, number, outcomes)
            except BaseException:
                self._in_flight.discard(number.object_code)
                raise
            if task is not None:
                tasks.append(task)
            submitted += 1

        logger.info(f"Dispatched {submitted} cadastral objects for enrichment, skipped {skipped}")
        return submitted, skipped, tasks

    async def dispatch(self, numbers: Iterable[CadastralNumber]) -> int:
        """Submit enrich_one for every object through the bounded pool."""
        submitted, _, _ = await self._dispatch(numbers)
        return submitted

    async def dispatch_pending(self) -> int:
        """List stale objects and dispatch them without waiting for completion."""
        return await self.dispatch(await self.list_pending())

    async def run_pending(self) -> Dict[str, int]:
        """
        Full enrichment pass: dispatch every stale object and wait for all of them.

        Counts belong to this call only, so concurrent runs do not mix their
        outcomes. Objects another run is still refreshing are skipped.

        Returns:
            Outcome counts keyed by status value, plus "dispatched" and "skipped"
        """
        outcomes: Counter = Counter()
        dispatched, skipped, tasks = await self._dispatch(await self.list_pending(), outcomes)
        await self.dispatcher.join(tasks)

        result = {status.value: outcomes[status.value] for status in LoadStatus if status != LoadStatus.NEW}
        result["dispatched"] = dispatched - outcomes["skipped"]
        result["skipped"] = skipped + outcomes["skipped"]

        logger.info(
            "Enrichment run completed: " +
            ", ".join(f"{k}={v}" for k, v in result.items())
        )
        return result
