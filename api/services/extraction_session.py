"""
Per-user extraction session.

Owns the user's quota tracker, batch orchestrator and enrichment
orchestrator. A finished batch hands its accepted records to enrichment
through maybe_auto_start, and enriched working copies flow back into the
session's record set.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from config import Settings, settings as default_settings
from models.carrier import CarrierRecord
from models.extraction import BatchState, ExtractionConfig, SessionStatus
from models.user import User
from repositories.stores import Stores
from services.batch_orchestrator import BatchOrchestrator
from services.enrichment_orchestrator import EnrichmentOrchestrator
from services.quota_tracker import QuotaTracker

logger = logging.getLogger(__name__)


class ExtractionSession:
    def __init__(self, user: User, stores: Stores, scraper, config: Optional[Settings] = None,
                 auto_enrich: bool = True):
        config = config or default_settings
        self.user_id = user.id
        self.stores = stores
        self.auto_enrich = auto_enrich
        self.limit_reached = False

        # Records seen by this session keyed by MC number, in arrival order
        self._records: Dict[str, CarrierRecord] = {}
        self._batch_task: Optional[asyncio.Task] = None
        self._enrichment_task: Optional[asyncio.Task] = None

        self.quota = QuotaTracker(user, user_store=stores.users)
        self.batch = BatchOrchestrator(
            scraper,
            stores.carriers,
            self.quota,
            concurrency_limit=config.concurrency_limit,
            ui_batch_size=config.ui_batch_size,
            mock_delay_seconds=config.mock_delay_seconds,
            on_new_records=self.merge_records,
            on_finish=self._on_batch_finish,
            on_limit_reached=self._on_limit_reached,
        )
        self.enrichment = EnrichmentOrchestrator(
            scraper,
            stores.carriers,
            on_update=self.merge_records,
            ui_batch_size=config.ui_batch_size,
        )

    @property
    def records(self) -> List[CarrierRecord]:
        return list(self._records.values())

    def merge_records(self, records: List[CarrierRecord]):
        """Add or replace records by MC number."""
        for record in records:
            self._records[record.mc_number] = record

    def _on_batch_finish(self, accepted: List[CarrierRecord]):
        self.merge_records(accepted)
        if not self.auto_enrich:
            return
        task = self.enrichment.maybe_auto_start(accepted, auto_start=True)
        if task is not None:
            self._enrichment_task = task

    def _on_limit_reached(self):
        self.limit_reached = True
        logger.warning(f"User {self.user_id} reached the daily limit of {self.quota.user.daily_limit}")

    def refresh_user(self, user: User):
        """Take the stored user record, e.g. after an admin reset the daily counter."""
        if not self.batch.is_running:
            self.quota.user = user

    def start_batch(self, config: ExtractionConfig, resume: bool = False) -> bool:
        """Schedule a batch run; returns False when one is already running."""
        if self.batch.is_running or (self._batch_task and not self._batch_task.done()):
            logger.info(f"Batch for user {self.user_id} already running, ignoring start request")
            return False
        self.limit_reached = False
        self.enrichment.rearm_auto_start()
        self._batch_task = asyncio.create_task(self.batch.run(config, resume=resume))
        return True

    def stop_batch(self):
        self.batch.stop()

    def start_enrichment(self, records: Optional[List[CarrierRecord]] = None) -> bool:
        """Schedule an enrichment run over the given records or the session's record set."""
        if self.enrichment.is_running or (self._enrichment_task and not self._enrichment_task.done()):
            logger.info(f"Enrichment for user {self.user_id} already running, ignoring start request")
            return False
        self._enrichment_task = asyncio.create_task(self.enrichment.run(records or self.records))
        return True

    def stop_enrichment(self):
        self.enrichment.stop()

    async def wait(self):
        """Wait for the scheduled batch and any enrichment it started."""
        if self._batch_task:
            await self._batch_task
        if self._enrichment_task:
            await self._enrichment_task

    def status(self) -> SessionStatus:
        batch_progress = self.batch.progress()
        batch_state = self.batch.state
        # A scheduled task that has not reached run() yet is still reported as running
        if self._batch_task and not self._batch_task.done() and batch_state != BatchState.RUNNING:
            batch_state = BatchState.RUNNING
        last_batch = self.batch.last_result
        last_enrichment = self.enrichment.last_result
        return SessionStatus(
            user_id=self.user_id,
            batch_state=batch_state,
            batch_progress=batch_progress.percent,
            enrichment_stage=self.enrichment.stage,
            enrichment_progress=self.enrichment.progress().percent,
            records_extracted_today=self.quota.user.records_extracted_today,
            daily_limit=self.quota.user.daily_limit,
            carriers=len(self._records),
            limit_reached=self.limit_reached,
            last_batch=last_batch.model_dump(mode="json", exclude={"accepted", "logs"}) if last_batch else None,
            last_enrichment=last_enrichment.model_dump(mode="json", exclude={"records", "logs"}) if last_enrichment else None,
            logs=(self.batch.logs + self.enrichment.logs)[-50:],
        )


class SessionRegistry:
    """One extraction session per user id."""

    def __init__(self, stores: Stores, scraper, config: Optional[Settings] = None):
        self.stores = stores
        self.scraper = scraper
        self.config = config
        self._sessions: Dict[str, ExtractionSession] = {}

    def get(self, user_id: str) -> Optional[ExtractionSession]:
        return self._sessions.get(user_id)

    def get_or_create(self, user: User) -> ExtractionSession:
        session = self._sessions.get(user.id)
        if session is None:
            session = ExtractionSession(user, self.stores, self.scraper, self.config)
            self._sessions[user.id] = session
        return session

    def clear(self):
        self._sessions.clear()
