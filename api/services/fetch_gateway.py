"""
Fetch gateway for carrier, safety and insurance source documents.

Tries an ordered list of attempt strategies (backend scrape proxy, direct
fetch, public relay proxies) and returns the first successful payload.
"""

import json
import logging
from functools import partial
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import quote, urlparse

import requests
from pydantic import BaseModel
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import Settings, settings as default_settings
from errors import FetchFailure

logger = logging.getLogger(__name__)


class FetchOutcome(BaseModel):
    """A successful fetch: decoded payload plus the strategy that produced it."""

    payload: Any
    source: str

    @property
    def from_backend(self) -> bool:
        return self.source == "backend"


Strategy = Tuple[str, Callable[[str], Any]]


def decode_payload(response: requests.Response) -> Any:
    """Return parsed JSON when the response is JSON (declared or sniffed), else text."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        return response.json()
    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        return text


class FetchGateway:
    """Retrieves raw documents with a backend -> direct -> relay fallback chain.

    Each attempt carries its own timeout. Network errors, timeouts and non-2xx
    responses fall through to the next strategy; only exhaustion of the whole
    chain is reported, as FetchFailure.
    """

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        """Initialize the gateway.

        Args:
            config: Settings providing backend URL, relay templates and timeouts
            session: Optional pre-configured session (tests inject mocks here)
        """
        self.settings = config or default_settings
        self.headers = {
            "User-Agent": self.settings.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.8,*/*;q=0.7",
            "Accept-Language": "en-US,en;q=0.5",
        }

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=1,
                backoff_factor=0.5,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET"]
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def _get(self, url: str, timeout: float) -> requests.Response:
        response = self.session.get(url, headers=self.headers, timeout=timeout)
        response.raise_for_status()
        return response

    def _fetch_backend(self, backend_path: str, target_url: str) -> Any:
        url = f"{self.settings.backend_url.rstrip('/')}{backend_path}"
        headers = dict(self.headers, Accept="application/json")
        if self.settings.api_key:
            headers["X-API-Key"] = self.settings.api_key
        response = self.session.get(url, headers=headers, timeout=self.settings.fetch_timeout_seconds)
        response.raise_for_status()
        return response.json()

    def _fetch_direct(self, target_url: str) -> Any:
        return decode_payload(self._get(target_url, self.settings.fetch_timeout_seconds))

    def _fetch_relay(self, template: str, target_url: str) -> Any:
        relay_url = template.format(url=quote(target_url, safe=""))
        return decode_payload(self._get(relay_url, self.settings.relay_timeout_seconds))

    def strategies(self, prefer_direct: bool, backend_path: Optional[str] = None) -> List[Strategy]:
        """Build the ordered attempt list for one fetch.

        Args:
            prefer_direct: Skip the backend proxy and fetch the source directly
            backend_path: Backend scrape route for the record kind, if any

        Returns:
            list: (name, callable) pairs tried in order
        """
        attempts: List[Strategy] = []
        if backend_path and not prefer_direct:
            attempts.append(("backend", partial(self._fetch_backend, backend_path)))
        if prefer_direct or self.settings.allow_direct_fetch:
            attempts.append(("direct", self._fetch_direct))
        for template in self.settings.relay_proxies:
            attempts.append((f"relay:{urlparse(template).netloc}", partial(self._fetch_relay, template)))
        return attempts

    def fetch(self, target_url: str, prefer_direct: bool = False,
              backend_path: Optional[str] = None) -> FetchOutcome:
        """Fetch a source document through the fallback chain.

        Args:
            target_url: External source URL
            prefer_direct: Direct connection instead of the proxy network
            backend_path: Backend scrape route returning the normalized record

        Returns:
            FetchOutcome for the first strategy that succeeded

        Raises:
            FetchFailure: If every strategy failed
        """
        failures = []
        for name, attempt in self.strategies(prefer_direct, backend_path):
            try:
                payload = attempt(target_url)
            except (requests.exceptions.RequestException, ValueError) as e:
                logger.debug(f"Fetch attempt '{name}' failed for {target_url}: {e}")
                failures.append(f"{name}: {e}")
                continue
            if payload in (None, ""):
                logger.debug(f"Fetch attempt '{name}' returned an empty body for {target_url}")
                failures.append(f"{name}: empty body")
                continue
            logger.debug(f"Fetched {target_url} via {name}")
            return FetchOutcome(payload=payload, source=name)

        logger.warning(f"All fetch attempts exhausted for {target_url}")
        raise FetchFailure(target_url, failures)

    def fetch_direct(self, target_url: str) -> Any:
        """Single direct attempt, used by the backend scrape routes themselves."""
        try:
            payload = self._fetch_direct(target_url)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Direct fetch failed for {target_url}: {e}")
            raise FetchFailure(target_url, [f"direct: {e}"]) from e
        if payload in (None, ""):
            raise FetchFailure(target_url, ["direct: empty body"])
        return payload
