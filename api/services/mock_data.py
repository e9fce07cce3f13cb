"""Synthetic carrier records for simulation runs."""

import random
from typing import Optional

from models.carrier import CarrierRecord


def generate_mock_carrier(mc_number: str, is_broker: bool) -> CarrierRecord:
    """Build a synthetic record shaped by the MC number; DOT is MC + 1,000,000."""
    return CarrierRecord(
        mc_number=mc_number,
        dot_number=str(int(mc_number) + 1000000),
        legal_name=f"Carrier {mc_number} Logistics",
        entity_type="BROKER" if is_broker else "CARRIER",
        status="AUTHORIZED",
        email="info@carrier.com",
        phone="800-555-0199",
        power_units="12",
        drivers="14",
        physical_address="100 Logistics Way, Houston, TX 77002",
        date_scraped="2024-01-01",
        mcs150_date="2024-01-01",
        mcs150_mileage="120,000 (2023)",
    )


def flip_entity_type(include_carriers: bool, include_brokers: bool,
                     rng: Optional[random.Random] = None) -> bool:
    """Coin flip for the simulated entity type; True means broker.

    Brokers are only produced when brokers are included, and always when
    carriers are not.
    """
    rng = rng or random
    return include_brokers and (not include_carriers or rng.random() > 0.5)
