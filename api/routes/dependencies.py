"""Shared FastAPI dependencies for the scrape, carrier and extraction routes."""

from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status

from config import settings
from repositories.stores import Stores, get_stores
from services.carrier_scraper import CarrierScraper
from services.extraction_session import SessionRegistry
from services.fetch_gateway import FetchGateway


@lru_cache
def get_source_scraper() -> CarrierScraper:
    """Scraper that fetches the source sites directly; backs the /api/scrape proxy routes."""
    return CarrierScraper(FetchGateway(settings), source_only=True)


@lru_cache
def get_pipeline_scraper() -> CarrierScraper:
    """Scraper used by extraction runs: backend proxy, then direct, then relays."""
    return CarrierScraper(FetchGateway(settings))


@lru_cache
def get_registry() -> SessionRegistry:
    return SessionRegistry(get_stores(), get_pipeline_scraper(), settings)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def ensure_client_allowed(request: Request, stores: Stores = Depends(get_stores)) -> str:
    """Reject requests from blocked IP addresses with 403."""
    ip = client_ip(request)
    if ip and stores.blocked_ips.is_blocked(ip):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access from {ip} is blocked"
        )
    return ip
