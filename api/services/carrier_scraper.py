"""
Carrier scraper: fetch gateway + record parser per record kind.

Sync methods do the blocking work; the async wrappers move it off the event
loop with asyncio.to_thread so orchestrators only suspend on network I/O.
"""

import asyncio
import logging
from typing import Any, List, Optional, Tuple

from errors import FetchFailure, RecordNotFound
from models.carrier import CarrierRecord, InsurancePolicy, SafetyProfile
from services.fetch_gateway import FetchGateway
from services.record_parser import (
    parse_carrier_snapshot,
    parse_insurance_payload,
    parse_registration_email,
    parse_safety_profile,
)

logger = logging.getLogger(__name__)

SNAPSHOT_URL = (
    "https://safer.fmcsa.dot.gov/query.asp?searchtype=ANY&query_type=queryCarrierSnapshot"
    "&query_param=MC_MX&query_string={mc_number}"
)
REGISTRATION_URL = "https://ai.fmcsa.dot.gov/SMS/Carrier/{dot_number}/CarrierRegistration.aspx"
SAFETY_URL = "https://ai.fmcsa.dot.gov/SMS/Carrier/{dot_number}/CompleteProfile.aspx"
INSURANCE_URL = "https://searchcarriers.com/company/{dot_number}/insurances"


class CarrierScraper:
    """Fetches and parses carrier snapshots, registration emails, safety profiles and insurance filings.

    With source_only=True every lookup is a single direct fetch of the source
    site; the backend scrape routes use that mode so the server never calls
    its own proxy endpoints.
    """

    def __init__(self, gateway: Optional[FetchGateway] = None, source_only: bool = False):
        self.gateway = gateway or FetchGateway()
        self.source_only = source_only

    def _fetch(self, url: str, prefer_direct: bool, backend_path: str) -> Tuple[Any, bool]:
        if self.source_only:
            return self.gateway.fetch_direct(url), False
        outcome = self.gateway.fetch(url, prefer_direct=prefer_direct, backend_path=backend_path)
        return outcome.payload, outcome.from_backend

    def fetch_email(self, dot_number: str, use_proxy: bool = True) -> str:
        """Look up the registration email for a DOT number; empty string when unavailable."""
        if (dot_number or "").strip().upper() in ("", "UNKNOWN"):
            return ""
        url = REGISTRATION_URL.format(dot_number=dot_number)
        try:
            if self.source_only:
                payload = self.gateway.fetch_direct(url)
            else:
                payload = self.gateway.fetch(url, prefer_direct=not use_proxy).payload
        except FetchFailure as e:
            logger.warning(f"Email lookup failed for DOT {dot_number}: {e}")
            return ""
        if not isinstance(payload, str):
            return ""
        return parse_registration_email(payload)

    def fetch_carrier(self, mc_number: str, use_proxy: bool = True) -> CarrierRecord:
        """Fetch and parse the SAFER snapshot for an MC number.

        Args:
            mc_number: MC docket number
            use_proxy: Use the backend proxy / relay network instead of a direct fetch

        Returns:
            CarrierRecord including the registration email when one is published

        Raises:
            RecordNotFound: If the source has no record for the MC number
            FetchFailure: If every fetch strategy failed
        """
        payload, from_backend = self._fetch(
            SNAPSHOT_URL.format(mc_number=mc_number),
            prefer_direct=not use_proxy,
            backend_path=f"/api/scrape/carrier/{mc_number}",
        )
        if from_backend:
            return CarrierRecord.model_validate(payload)
        if not isinstance(payload, str):
            raise RecordNotFound(f"Unexpected snapshot payload for MC {mc_number}")

        record = parse_carrier_snapshot(payload, mc_number)
        if record.dot_number:
            record.email = self.fetch_email(record.dot_number, use_proxy)
        return record

    def fetch_safety(self, dot_number: str) -> SafetyProfile:
        """Fetch and parse the SMS safety profile for a DOT number.

        Raises:
            FetchFailure: If the profile could not be retrieved as HTML
        """
        url = SAFETY_URL.format(dot_number=dot_number)
        payload, from_backend = self._fetch(url, prefer_direct=False, backend_path=f"/api/scrape/safety/{dot_number}")
        if from_backend:
            return SafetyProfile.model_validate(payload)
        if not isinstance(payload, str):
            raise FetchFailure(url, ["safety profile payload was not HTML"])
        return parse_safety_profile(payload)

    def fetch_insurance(self, dot_number: str) -> Tuple[List[InsurancePolicy], Any]:
        """Fetch and normalize insurance filings for a DOT number.

        Returns:
            tuple: (policies, raw payload as received)

        Raises:
            FetchFailure: If every fetch strategy failed
        """
        payload, from_backend = self._fetch(
            INSURANCE_URL.format(dot_number=dot_number),
            prefer_direct=False,
            backend_path=f"/api/scrape/insurance/{dot_number}",
        )
        if from_backend and isinstance(payload, dict) and "policies" in payload:
            policies = [InsurancePolicy.model_validate(p) for p in payload.get("policies") or []]
            return policies, payload.get("raw")
        return parse_insurance_payload(payload, dot_number), payload

    async def scrape_carrier(self, mc_number: str, use_proxy: bool = True) -> CarrierRecord:
        return await asyncio.to_thread(self.fetch_carrier, mc_number, use_proxy)

    async def scrape_safety(self, dot_number: str) -> SafetyProfile:
        return await asyncio.to_thread(self.fetch_safety, dot_number)

    async def scrape_insurance(self, dot_number: str) -> List[InsurancePolicy]:
        policies, _ = await asyncio.to_thread(self.fetch_insurance, dot_number)
        return policies
