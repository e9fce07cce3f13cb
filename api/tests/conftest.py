"""
Shared pytest configuration for all tests.
Uses the in-memory stores so no Neo4j instance or network access is needed.
"""
import asyncio
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Test settings must be in place before config is imported
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["API_KEY"] = "test-api-key"
os.environ["MOCK_DELAY_SECONDS"] = "0"
os.environ["BACKEND_URL"] = "http://backend.test"
os.environ["LOG_FILE"] = str(Path(__file__).parent / "logs" / "test.log")

import pytest

from models.carrier import BasicScore, CarrierRecord, InsurancePolicy, OosRate, SafetyProfile
from models.user import User
from repositories.memory import (
    InMemoryBlockedIPRepository,
    InMemoryCarrierRepository,
    InMemoryUserRepository,
)
from repositories.stores import Stores


class FakeScraper:
    """Async scraper double with canned results and call tracking."""

    def __init__(self, carriers=None, policies=None, safety=None, fail_mc=(), fail_dot=()):
        self.carriers = carriers or {}
        self.policies = policies or {}
        self.safety = safety or {}
        self.fail_mc = set(fail_mc)
        self.fail_dot = set(fail_dot)
        self.carrier_calls = []
        self.insurance_calls = []
        self.safety_calls = []

    async def scrape_carrier(self, mc_number, use_proxy=True):
        from errors import RecordNotFound

        self.carrier_calls.append(mc_number)
        if mc_number in self.fail_mc or mc_number not in self.carriers:
            raise RecordNotFound(f"No carrier snapshot for MC {mc_number}")
        return self.carriers[mc_number]

    async def scrape_insurance(self, dot_number):
        from errors import FetchFailure

        self.insurance_calls.append(dot_number)
        if dot_number in self.fail_dot:
            raise FetchFailure(f"insurance:{dot_number}", ["relay: timeout"])
        return self.policies.get(dot_number, [])

    async def scrape_safety(self, dot_number):
        from errors import FetchFailure

        self.safety_calls.append(dot_number)
        if dot_number in self.fail_dot:
            raise FetchFailure(f"safety:{dot_number}", ["relay: timeout"])
        return self.safety.get(dot_number, SafetyProfile())


class YieldingScraper(FakeScraper):
    """Suspends once per carrier lookup so several units are in flight together."""

    async def scrape_carrier(self, mc_number, use_proxy=True):
        await asyncio.sleep(0)
        return await super().scrape_carrier(mc_number, use_proxy)


def make_carrier(mc_number: str, **overrides) -> CarrierRecord:
    data = {
        "mc_number": mc_number,
        "dot_number": str(int(mc_number) + 1000000),
        "legal_name": f"Carrier {mc_number} Logistics",
        "entity_type": "CARRIER",
        "status": "AUTHORIZED FOR Property",
        "phone": "(713) 555-0199",
        "physical_address": "100 LOGISTICS WAY HOUSTON, TX 77002",
        "mcs150_date": "01/15/2024",
    }
    data.update(overrides)
    return CarrierRecord(**data)


@pytest.fixture
def stores():
    """Fresh in-memory stores for each test"""
    return Stores(InMemoryCarrierRepository(), InMemoryUserRepository(), InMemoryBlockedIPRepository())


@pytest.fixture
def user(stores):
    """A Free-plan user stored in the in-memory user store"""
    return stores.users.create_user(User(id="user-1", name="Dispatch Desk", email="Desk@Example.com"))


@pytest.fixture
def sample_carrier():
    return make_carrier("1580000")


@pytest.fixture
def sample_policies():
    return [
        InsurancePolicy(
            dot="2580000",
            carrier="PROGRESSIVE COUNTY MUTUAL",
            policy_number="PCM-100",
            effective_date="2024-01-01",
            coverage_amount="$1,000,000",
            type="BI&PD",
            filing_class="PRIMARY",
        ),
        InsurancePolicy(
            dot="2580000",
            carrier="GREAT WEST CASUALTY",
            policy_number="GW-7",
            effective_date="2024-02-01",
            coverage_amount="$100,000",
            type="CARGO",
            filing_class="PRIMARY",
        ),
    ]


@pytest.fixture
def sample_safety():
    return SafetyProfile(
        rating="Satisfactory",
        rating_date="03/14/2022",
        basic_scores=[BasicScore(category="Unsafe Driving", measure="1.2")],
        oos_rates=[OosRate(type="Vehicle", rate="20.1%", national_avg="22.26%")],
    )
