"""
Batch Orchestrator for MC-range extraction.

Walks the MC numbers [start, start + count) with a bounded pool of asyncio
tasks, applies the inclusion filter, charges the user's daily quota for each
accepted record and persists accepted records in the background.

All counters and the accepted list are mutated on the event loop thread
between awaits; the only suspension points are the scraper fetch, the
simulated delay and the persistence calls.
"""

import asyncio
import logging
import random
from typing import Callable, List, Optional, Set, Tuple

from errors import RecordNotFound
from models.carrier import CarrierRecord
from models.extraction import BatchProgress, BatchResult, BatchState, ExtractionConfig
from services.filters import record_matches
from services.mock_data import flip_entity_type, generate_mock_carrier
from services.quota_tracker import QuotaTracker

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """
    Runs one extraction batch at a time for a single user.

    Callbacks:
        on_progress(BatchProgress): after every finished unit of work
        on_new_records(list): every ui_batch_size accepted records, then the remainder
        on_finish(list): once per run that ends with at least one accepted record
        on_limit_reached(): once per run when the daily quota stops the batch
    """

    def __init__(
        self,
        scraper,
        carrier_store,
        quota: QuotaTracker,
        concurrency_limit: int = 5,
        ui_batch_size: int = 3,
        mock_delay_seconds: float = 0.1,
        rng: Optional[random.Random] = None,
        on_progress: Optional[Callable[[BatchProgress], None]] = None,
        on_new_records: Optional[Callable[[List[CarrierRecord]], None]] = None,
        on_finish: Optional[Callable[[List[CarrierRecord]], None]] = None,
        on_limit_reached: Optional[Callable[[], None]] = None,
    ):
        self.scraper = scraper
        self.carrier_store = carrier_store
        self.quota = quota
        self.concurrency_limit = concurrency_limit
        self.ui_batch_size = ui_batch_size
        self.mock_delay_seconds = mock_delay_seconds
        self.rng = rng or random.Random()
        self.on_progress = on_progress
        self.on_new_records = on_new_records
        self.on_finish = on_finish
        self.on_limit_reached = on_limit_reached

        self.state = BatchState.IDLE
        self.last_result: Optional[BatchResult] = None

        # Resume cursor: identifiers finished by the previous run of a range
        self._last_range: Optional[Tuple[str, int]] = None
        self._completed_ids: Set[str] = set()

        self._reset_run()

    def _reset_run(self):
        self._stop_requested = False
        self._limit_hit = False
        self._total = 0
        self._dispatched = 0
        self._completed = 0
        self._failed = 0
        self._filtered_out = 0
        self._db_saved = 0
        self._accepted: List[CarrierRecord] = []
        self._emitted = 0
        self._persist_tasks: Set[asyncio.Task] = set()
        self.logs: List[str] = []

    @property
    def is_running(self) -> bool:
        return self.state == BatchState.RUNNING

    def stop(self):
        """Stop dispatching new units; units already in flight run to completion."""
        if self.is_running and not self._stop_requested:
            self._stop_requested = True
            self._log("Process paused by user.")

    def progress(self) -> BatchProgress:
        percent = round(self._completed / self._total * 100) if self._total else 0
        return BatchProgress(
            state=self.state,
            total=self._total,
            completed=self._completed,
            accepted=len(self._accepted),
            failed=self._failed,
            percent=percent,
        )

    def _log(self, message: str, level: int = logging.INFO):
        self.logs.append(message)
        logger.log(level, message)

    def _halted(self) -> bool:
        return self._stop_requested or self._limit_hit

    def _signal_limit(self):
        if self._limit_hit:
            return
        self._limit_hit = True
        self._log("DAILY LIMIT REACHED: Upgrade to extract more.", logging.WARNING)
        if self.on_limit_reached:
            self.on_limit_reached()

    async def run(self, config: ExtractionConfig, resume: bool = False) -> Optional[BatchResult]:
        """
        Execute one batch over the configured MC range.

        Args:
            config: Range, filter and fetch options
            resume: Skip identifiers finished by the previous run of the same range

        Returns:
            BatchResult, or None when a batch is already running
        """
        if self.is_running:
            logger.info("Batch already running, ignoring start request")
            return None

        self._reset_run()
        units = config.mc_numbers()
        self._total = len(units)

        if not self.quota.can_extract():
            self._signal_limit()
            self.last_result = self._result(BatchState.LIMIT_REACHED)
            return self.last_result

        range_key = (config.start_point, config.record_count)
        if resume and self._last_range == range_key:
            units = [mc for mc in units if mc not in self._completed_ids]
            self._completed = self._total - len(units)
        else:
            self._completed_ids = set()
        self._last_range = range_key

        self.state = BatchState.RUNNING
        mode = "Simulation" if config.use_mock_data else "Proxy Network" if config.use_proxy else "Direct"
        self._log("Initializing scraper...")
        self._log(f"Mode: {mode}")
        self._log(f"Targeting {config.record_count} records starting at MC# {config.start_point}")
        if self._completed:
            self._log(f"Resuming: {self._completed} records already processed")

        await self._dispatch(units, config)

        # Barrier: wait for background writes before reporting
        if self._persist_tasks:
            await asyncio.gather(*self._persist_tasks)

        remainder = len(self._accepted) - self._emitted
        if remainder and self.on_new_records:
            self.on_new_records(self._accepted[-remainder:])
        self._emitted = len(self._accepted)

        if self._limit_hit:
            self.state = BatchState.LIMIT_REACHED
        elif self._stop_requested:
            self.state = BatchState.STOPPED
        else:
            self.state = BatchState.COMPLETED

        self._log(f"Batch Job Complete. Found {len(self._accepted)} records.")
        self._log(f"Database: {self._db_saved} records persisted")
        self.last_result = self._result(self.state)

        if self._accepted and self.on_finish:
            self._log("Transitioning to automatic insurance extraction...")
            self.on_finish(list(self._accepted))

        return self.last_result

    async def _dispatch(self, units: List[str], config: ExtractionConfig):
        """Launch up to concurrency_limit units, await any one, launch the next."""
        queue = iter(units)
        in_flight: Set[asyncio.Task] = set()

        while True:
            while len(in_flight) < self.concurrency_limit and not self._halted():
                mc_number = next(queue, None)
                if mc_number is None:
                    break
                in_flight.add(asyncio.create_task(self._process(mc_number, config)))
                self._dispatched += 1

            if not in_flight:
                break
            _, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)

    async def _process(self, mc_number: str, config: ExtractionConfig):
        if self._halted():
            return
        if not self.quota.can_extract():
            self._signal_limit()
            return

        try:
            record = await self._fetch(mc_number, config)
        except RecordNotFound:
            self._failed += 1
            self._log(f"[Fail] MC {mc_number} - No Data")
            record = None
        except Exception as e:
            self._failed += 1
            self._log(f"[Fail] MC {mc_number} - {e}", logging.WARNING)
            record = None

        # A unit refused by the limit is left out of the resume cursor
        if record is not None and not self._accept(mc_number, record, config):
            return

        self._completed += 1
        self._completed_ids.add(mc_number)
        if self.on_progress:
            self.on_progress(self.progress())

    async def _fetch(self, mc_number: str, config: ExtractionConfig) -> CarrierRecord:
        if config.use_mock_data:
            await asyncio.sleep(self.mock_delay_seconds)
            is_broker = flip_entity_type(config.include_carriers, config.include_brokers, self.rng)
            return generate_mock_carrier(mc_number, is_broker)
        return await self.scraper.scrape_carrier(mc_number, config.use_proxy)

    def _accept(self, mc_number: str, record: CarrierRecord, config: ExtractionConfig) -> bool:
        """Filter, charge and persist a fetched record; False when the limit refused it."""
        if not record_matches(record, config):
            self._filtered_out += 1
            logger.debug(f"MC {mc_number} filtered out ({record.entity_type}, {record.status})")
            return True

        # Re-read after the fetch suspension; another unit may have used the last slot
        if not self.quota.can_extract():
            self._signal_limit()
            return False

        self._accepted.append(record)
        self.quota.record_extraction(1)
        self._log(f"[Success] MC {mc_number}: {record.legal_name}")

        task = asyncio.create_task(self._persist(record))
        self._persist_tasks.add(task)

        if len(self._accepted) - self._emitted >= self.ui_batch_size:
            if self.on_new_records:
                self.on_new_records(self._accepted[self._emitted:])
            self._emitted = len(self._accepted)
        return True

    async def _persist(self, record: CarrierRecord):
        try:
            result = await asyncio.to_thread(self.carrier_store.upsert_carrier, record)
        except Exception as e:
            self._log(f"MC {record.mc_number}: {record.legal_name} -> DB Error: {e}", logging.ERROR)
            return
        if result.success:
            self._db_saved += 1
            logger.debug(f"MC {record.mc_number} saved")
        else:
            self._log(f"MC {record.mc_number}: {record.legal_name} -> DB Error: {result.error}", logging.ERROR)

    def _result(self, state: BatchState) -> BatchResult:
        return BatchResult(
            state=state,
            total=self._total,
            dispatched=self._dispatched,
            completed=self._completed,
            accepted=list(self._accepted),
            failed=self._failed,
            filtered_out=self._filtered_out,
            db_saved=self._db_saved,
            progress=self.progress().percent,
            logs=list(self.logs),
        )
