"""
Job control routes for batch extraction and enrichment.

Runs are scheduled on the event loop and report through the status
endpoint; start requests return immediately.
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status

from errors import QuotaExceeded
from models.extraction import ExtractionConfig, SessionStatus
from models.user import User
from repositories.stores import Stores, get_stores
from services.extraction_session import ExtractionSession, SessionRegistry
from services.quota_tracker import can_extract
from routes.dependencies import ensure_client_allowed, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/extraction", tags=["extraction"])


def _load_user(user_id: str, stores: Stores) -> User:
    user = stores.users.get_user(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )
    if user.is_blocked:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User {user_id} is blocked"
        )
    return user


def _session(user_id: str, registry: SessionRegistry) -> ExtractionSession:
    session = registry.get(user_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No extraction session for user {user_id}"
        )
    return session


@router.post("/{user_id}/start", response_model=Dict, status_code=status.HTTP_202_ACCEPTED)
async def start_extraction(
    user_id: str,
    config: ExtractionConfig,
    resume: bool = Query(False, description="Skip MC numbers finished by the previous run of the same range"),
    stores: Stores = Depends(get_stores),
    registry: SessionRegistry = Depends(get_registry),
    _ip: str = Depends(ensure_client_allowed),
):
    """Start a batch extraction for the user.

    Returns 202 with the session status. Starting while a batch is running
    leaves the running batch alone.

    Raises:
        HTTPException: 429 when the daily limit is already used up
    """
    user = _load_user(user_id, stores)
    session = registry.get_or_create(user)
    session.refresh_user(user)

    if not session.batch.is_running and not can_extract(session.quota.user):
        session.limit_reached = True
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(QuotaExceeded(user_id, session.quota.user.daily_limit))
        )

    started = session.start_batch(config, resume=resume)
    if started:
        logger.info(
            f"Batch started for user {user_id}: MC {config.start_point} x {config.record_count}"
        )
    return {
        "started": started,
        "status": session.status().model_dump(mode="json"),
    }


@router.post("/{user_id}/stop", response_model=SessionStatus)
async def stop_extraction(user_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Stop dispatching new MC numbers; in-flight work finishes"""
    session = _session(user_id, registry)
    session.stop_batch()
    return session.status()


@router.get("/{user_id}/status", response_model=SessionStatus)
async def extraction_status(user_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Current batch and enrichment state for the user"""
    return _session(user_id, registry).status()


@router.post("/{user_id}/enrichment/start", response_model=Dict, status_code=status.HTTP_202_ACCEPTED)
async def start_enrichment(
    user_id: str,
    stores: Stores = Depends(get_stores),
    registry: SessionRegistry = Depends(get_registry),
    _ip: str = Depends(ensure_client_allowed),
):
    """Enrich the session's records, or every stored carrier when the session has none"""
    user = _load_user(user_id, stores)
    session = registry.get_or_create(user)
    records = session.records or stores.carriers.list_carriers()
    if not records:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No carriers found. Load carriers first."
        )
    started = session.start_enrichment(records)
    return {
        "started": started,
        "status": session.status().model_dump(mode="json"),
    }


@router.post("/{user_id}/enrichment/stop", response_model=SessionStatus)
async def stop_enrichment(user_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Stop enrichment before the next record"""
    session = _session(user_id, registry)
    session.stop_enrichment()
    return session.status()
