"""
Scrape proxy routes.

The pipeline's Fetch Gateway calls these first. Each route fetches the
source site directly and returns parsed JSON, so browsers and relays never
have to deal with the raw FMCSA pages.
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from errors import FetchFailure, RecordNotFound
from models.carrier import CarrierRecord, SafetyProfile
from services.carrier_scraper import CarrierScraper
from routes.dependencies import ensure_client_allowed, get_source_scraper

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/scrape",
    tags=["scrape"],
    dependencies=[Depends(ensure_client_allowed)],
)


@router.get("/carrier/{mc_number}", response_model=CarrierRecord, response_model_by_alias=True)
def scrape_carrier(mc_number: str, scraper: CarrierScraper = Depends(get_source_scraper)):
    """Fetch and parse the SAFER snapshot for an MC number.

    Raises:
        HTTPException: 404 when no record exists, 502 when the source is unreachable
    """
    try:
        return scraper.fetch_carrier(mc_number, use_proxy=False)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail=f"No carrier found for MC {mc_number}")
    except FetchFailure as e:
        logger.warning(f"Snapshot fetch failed for MC {mc_number}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch carrier snapshot")


@router.get("/safety/{dot_number}", response_model=SafetyProfile, response_model_by_alias=True)
def scrape_safety(dot_number: str, scraper: CarrierScraper = Depends(get_source_scraper)):
    """Fetch and parse the SMS safety profile for a DOT number"""
    try:
        return scraper.fetch_safety(dot_number)
    except FetchFailure as e:
        logger.warning(f"Safety fetch failed for DOT {dot_number}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch safety profile")


@router.get("/insurance/{dot_number}", response_model=Dict)
def scrape_insurance(dot_number: str, scraper: CarrierScraper = Depends(get_source_scraper)):
    """Fetch insurance filings for a DOT number.

    Returns:
        dict: Normalized policies and the raw source payload
    """
    try:
        policies, raw = scraper.fetch_insurance(dot_number)
    except FetchFailure as e:
        logger.warning(f"Insurance fetch failed for DOT {dot_number}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch insurance data")
    return {
        "policies": [p.model_dump(by_alias=True) for p in policies],
        "raw": raw,
    }
