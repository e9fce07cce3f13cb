"""
Enrichment Orchestrator Service.

Attaches insurance filings (stage 1) and safety data (stage 2) to already
extracted carrier records. Stages run one after the other and each stage
walks the records serially. Every enrichment result is written as a partial
update keyed by DOT number, separate from the initial record upsert.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from errors import ValidationFailure
from models.carrier import CarrierRecord
from models.extraction import (
    EnrichmentProgress,
    EnrichmentResult,
    EnrichmentStage,
    StageStats,
)

logger = logging.getLogger(__name__)

# (record, delta for update_partial, found?)
StageOutcome = Tuple[CarrierRecord, Dict, bool]


class EnrichmentOrchestrator:
    """
    Two-stage enrichment over a working copy of the records.

    Callbacks:
        on_progress(EnrichmentProgress): after every record of either stage
        on_update(list): working copy every ui_batch_size records and on the
            last record of each stage
    """

    def __init__(
        self,
        scraper,
        carrier_store,
        on_progress: Optional[Callable[[EnrichmentProgress], None]] = None,
        on_update: Optional[Callable[[List[CarrierRecord]], None]] = None,
        ui_batch_size: int = 3,
    ):
        self.scraper = scraper
        self.carrier_store = carrier_store
        self.on_progress = on_progress
        self.on_update = on_update
        self.ui_batch_size = ui_batch_size

        self.stage = EnrichmentStage.IDLE
        self.is_running = False
        self.last_result: Optional[EnrichmentResult] = None
        self.logs: List[str] = []

        self._stop_requested = False
        self._auto_started = False
        self._auto_task: Optional[asyncio.Task] = None
        self._progress = 0
        self._insurance = StageStats()
        self._safety = StageStats()

    def _log(self, message: str, level: int = logging.INFO):
        self.logs.append(message)
        logger.log(level, message)

    def stop(self):
        """Stop before the next record; the record being processed finishes."""
        if self.is_running:
            self._stop_requested = True
            self._log("Enrichment stopped by user.")

    def progress(self) -> EnrichmentProgress:
        return EnrichmentProgress(
            stage=self.stage,
            percent=self._progress,
            insurance=self._insurance.model_copy(),
            safety=self._safety.model_copy(),
        )

    def maybe_auto_start(self, records: List[CarrierRecord], auto_start: bool = True) -> Optional[asyncio.Task]:
        """
        Start a run the first time a non-empty record set is seen while idle.

        Fires at most once until rearm_auto_start() is called; later calls
        return None. Must be called from a running event loop.
        """
        if not auto_start or self._auto_started or self.is_running or not records:
            return None
        self._auto_started = True
        logger.info(f"Auto-starting enrichment for {len(records)} records")
        self._auto_task = asyncio.create_task(self.run(records))
        return self._auto_task

    def rearm_auto_start(self):
        """Allow the next maybe_auto_start call to fire again, once per batch."""
        self._auto_started = False

    async def run(self, records: List[CarrierRecord]) -> Optional[EnrichmentResult]:
        """
        Enrich the given records with insurance and safety data.

        Returns:
            EnrichmentResult with the enriched working copy, or None when a run
            is already active or there is nothing to enrich
        """
        if self.is_running:
            logger.info("Enrichment already running, ignoring start request")
            return None
        self.logs = []
        if not records:
            self._log("Error: No carriers found. Load carriers first.", logging.ERROR)
            return None

        self.is_running = True
        self._stop_requested = False
        self._progress = 0
        self._insurance = StageStats()
        self._safety = StageStats()
        working = list(records)

        self._log("Starting automatic multi-stage enrichment")
        self._log(f"Targeting: {len(working)} USDOT records")

        try:
            self.stage = EnrichmentStage.INSURANCE
            self._log("STAGE 1: Insurance Extraction")
            await self._run_stage(working, "INSURANCE", self._enrich_insurance, self._insurance, 0)

            if not self._stop_requested:
                self.stage = EnrichmentStage.SAFETY
                self._log("STAGE 2: Safety Rating & BASIC Performance")
                await self._run_stage(working, "SAFETY", self._enrich_safety, self._safety, 50)
        finally:
            self.is_running = False
            self.stage = EnrichmentStage.IDLE

        result = EnrichmentResult(
            total=len(working),
            insurance=self._insurance,
            safety=self._safety,
            progress=self._progress,
            stopped=self._stop_requested,
            records=working,
        )
        self._log("ENRICHMENT COMPLETE." if not result.stopped else "Enrichment halted.")
        self._log(f"Total database updates: {result.db_saved}")
        result.logs = list(self.logs)
        self.last_result = result
        return result

    async def _run_stage(
        self,
        working: List[CarrierRecord],
        label: str,
        enrich: Callable[[CarrierRecord], Awaitable[StageOutcome]],
        stats: StageStats,
        offset: int,
    ):
        total = len(working)
        for i, record in enumerate(working):
            if self._stop_requested:
                break
            dot = record.dot_number
            self._log(f"[{label}] [{i + 1}/{total}] Querying DOT: {dot}...")

            try:
                if not record.has_valid_dot():
                    raise ValidationFailure(f"Invalid DOT for MC {record.mc_number}")
                updated, delta, found = await enrich(record)
            except ValidationFailure as e:
                stats.failed += 1
                self._log(f"Skipped: {e}", logging.WARNING)
            except Exception as e:
                stats.failed += 1
                self._log(f"Fail: {label.lower()} lookup error for DOT {dot}: {e}", logging.WARNING)
            else:
                working[i] = updated
                if found:
                    stats.found += 1
                if await self._persist(dot, delta):
                    stats.persisted += 1

            self._progress = offset + round((i + 1) / total * 50)
            if self.on_progress:
                self.on_progress(self.progress())
            if self.on_update and ((i + 1) % self.ui_batch_size == 0 or i + 1 == total):
                self.on_update(list(working))

    async def _enrich_insurance(self, record: CarrierRecord) -> StageOutcome:
        policies = await self.scraper.scrape_insurance(record.dot_number)
        if policies:
            self._log(f"Success: Extracted {len(policies)} insurance filings for {record.dot_number}")
        else:
            self._log(f"Info: No active insurance found for {record.dot_number}")
        return record.with_insurance(policies), {"insurance_policies": policies}, bool(policies)

    async def _enrich_safety(self, record: CarrierRecord) -> StageOutcome:
        profile = await self.scraper.scrape_safety(record.dot_number)
        found = profile.rating != "N/A"
        if found:
            self._log(f"Safety: {profile.rating} rating captured for {record.dot_number}")
        else:
            self._log(f"Safety: No formal rating on record for {record.dot_number}")
        delta = {
            "safety_rating": profile.rating,
            "safety_rating_date": profile.rating_date,
            "basic_scores": profile.basic_scores,
            "oos_rates": profile.oos_rates,
        }
        return record.with_safety(profile), delta, found

    async def _persist(self, dot_number: str, delta: Dict) -> bool:
        try:
            result = await asyncio.to_thread(self.carrier_store.update_partial, dot_number, delta)
        except Exception as e:
            self._log(f"DB Error for DOT {dot_number}: {e}", logging.ERROR)
            return False
        if not result.success:
            self._log(f"DB Error for DOT {dot_number}: {result.error}", logging.ERROR)
        return result.success
