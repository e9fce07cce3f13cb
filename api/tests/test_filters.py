import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from models.extraction import ExtractionConfig
from services.filters import is_authorized, matches_filter, record_matches
from services.mock_data import flip_entity_type, generate_mock_carrier


@pytest.mark.parametrize("status,expected", [
    ("AUTHORIZED FOR Property", True),
    ("authorized for hhg", True),
    ("NOT AUTHORIZED", False),
    ("Not Authorized", False),
    ("OUT-OF-SERVICE", False),
    ("", False),
])
def test_is_authorized(status, expected):
    assert is_authorized(status) is expected


def test_broker_only_authorized_is_accepted():
    assert matches_filter("BROKER", "AUTHORIZED FOR PROPERTY", False, True, True)


def test_not_authorized_rejected_regardless_of_entity_flags():
    for entity in ("CARRIER", "BROKER", "CARRIER/BROKER"):
        assert not matches_filter(entity, "NOT AUTHORIZED", True, True, True)


def test_not_authorized_accepted_without_authorized_only():
    assert matches_filter("CARRIER", "NOT AUTHORIZED", True, False, False)


def test_dual_entity_needs_either_flag():
    assert matches_filter("CARRIER/BROKER", "AUTHORIZED", True, False, True)
    assert matches_filter("CARRIER/BROKER", "AUTHORIZED", False, True, True)
    assert not matches_filter("CARRIER/BROKER", "AUTHORIZED", False, False, True)


def test_excluded_kind_rejected():
    assert not matches_filter("CARRIER", "AUTHORIZED", False, True, False)
    assert not matches_filter("BROKER", "AUTHORIZED", True, False, False)
    assert not matches_filter("SHIPPER", "AUTHORIZED", True, True, False)


def test_record_matches_uses_config():
    config = ExtractionConfig(start_point="1", record_count=1, include_carriers=False, include_brokers=True)
    assert record_matches(generate_mock_carrier("1", is_broker=True), config)
    assert not record_matches(generate_mock_carrier("1", is_broker=False), config)


class TestMockData:

    def test_mock_carrier_is_shaped_by_mc(self):
        record = generate_mock_carrier("1580000", is_broker=False)
        assert record.dot_number == "2580000"
        assert record.legal_name == "Carrier 1580000 Logistics"
        assert record.entity_type == "CARRIER"
        assert record.status == "AUTHORIZED"

    def test_flip_never_brokers_when_excluded(self):
        assert all(not flip_entity_type(True, False) for _ in range(20))

    def test_flip_always_brokers_when_carriers_excluded(self):
        assert all(flip_entity_type(False, True) for _ in range(20))

    def test_flip_uses_rng(self):
        class FixedRandom:
            def __init__(self, value):
                self.value = value

            def random(self):
                return self.value

        assert flip_entity_type(True, True, FixedRandom(0.9)) is True
        assert flip_entity_type(True, True, FixedRandom(0.1)) is False


class TestExtractionConfig:

    def test_mc_numbers_range(self):
        config = ExtractionConfig(start_point="1580000", record_count=3)
        assert config.mc_numbers() == ["1580000", "1580001", "1580002"]

    def test_non_numeric_start_rejected(self):
        with pytest.raises(ValueError):
            ExtractionConfig(start_point="MC-12", record_count=3)

    def test_record_count_bounds(self):
        with pytest.raises(ValueError):
            ExtractionConfig(start_point="1", record_count=0)
