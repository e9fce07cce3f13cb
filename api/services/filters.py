"""
Inclusion filter applied to every scraped record before it is accepted.
"""

from models.carrier import CarrierRecord
from models.extraction import ExtractionConfig


def is_authorized(status: str) -> bool:
    """True for an AUTHORIZED status; the NOT AUTHORIZED phrase is checked first."""
    status = (status or "").upper()
    if "NOT AUTHORIZED" in status:
        return False
    return "AUTHORIZED" in status


def matches_filter(entity_type: str, status: str, include_carriers: bool,
                   include_brokers: bool, only_authorized: bool) -> bool:
    """Decide whether a record passes the inclusion filter.

    A record passes when its entity type matches an included kind (a record
    that is both carrier and broker needs only one of the flags) and, with
    only_authorized, its status is authorized.

    Args:
        entity_type: Entity type text, e.g. "CARRIER/BROKER"
        status: Operating authority status text
        include_carriers: Accept carriers
        include_brokers: Accept brokers
        only_authorized: Require an authorized status

    Returns:
        bool: True if the record should be accepted
    """
    kind = (entity_type or "").upper()
    wanted = ("CARRIER" in kind and include_carriers) or ("BROKER" in kind and include_brokers)
    if not wanted:
        return False
    if only_authorized and not is_authorized(status):
        return False
    return True


def record_matches(record: CarrierRecord, config: ExtractionConfig) -> bool:
    return matches_filter(
        record.entity_type,
        record.status,
        config.include_carriers,
        config.include_brokers,
        config.only_authorized,
    )
