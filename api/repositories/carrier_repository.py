import json
import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from neo4j.exceptions import DriverError, Neo4jError

from database import BaseRepository
from errors import PersistenceFailure
from models.carrier import CarrierRecord, PersistResult

logger = logging.getLogger(__name__)

# Nested model lists are stored as JSON strings; Neo4j properties cannot hold maps
JSON_FIELDS = ("insurance_policies", "basic_scores", "oos_rates")

INSURANCE_FIELDS = ("insurance_policies",)
SAFETY_FIELDS = ("safety_rating", "safety_rating_date", "basic_scores", "oos_rates")
ENRICHMENT_FIELDS = INSURANCE_FIELDS + SAFETY_FIELDS


def _encode(field: str, value: Any) -> Any:
    if field in JSON_FIELDS and value is not None:
        return json.dumps([
            item.model_dump(by_alias=True) if hasattr(item, "model_dump") else item
            for item in value
        ])
    return value


def record_to_row(record: CarrierRecord) -> Dict:
    """Flatten a CarrierRecord into storage properties.

    Unset enrichment attributes are left out so a re-scraped record does not
    erase enrichment already stored for the same MC number.
    """
    row = {}
    for field, value in record.model_dump().items():
        if field in ENRICHMENT_FIELDS and value is None:
            continue
        row[field] = _encode(field, getattr(record, field))
    return row


def row_to_record(row: Dict) -> CarrierRecord:
    """Rebuild a CarrierRecord from stored properties."""
    data = {k: v for k, v in row.items() if k in CarrierRecord.model_fields}
    for field in JSON_FIELDS:
        if isinstance(data.get(field), str):
            data[field] = json.loads(data[field])
    for field in ("operation_classification", "carrier_operation", "cargo_carried"):
        if data.get(field) is None:
            data[field] = []
    return CarrierRecord.model_validate(data)


def delta_to_row(delta: Dict) -> Dict:
    """Encode an enrichment delta (insurance or safety fields) for storage.

    Raises:
        PersistenceFailure: If the delta carries fields other than enrichment fields
    """
    unknown = set(delta) - set(ENRICHMENT_FIELDS)
    if unknown:
        raise PersistenceFailure(f"Partial updates only accept enrichment fields, got {sorted(unknown)}")
    return {field: _encode(field, value) for field, value in delta.items()}


class CarrierRepository(BaseRepository):
    """Neo4j implementation of the carrier Persistence Gateway.

    Records are upserted by MC number; enrichment deltas are applied by DOT
    number. Write methods report failures in a PersistResult instead of raising.
    """

    def upsert_carrier(self, record: CarrierRecord) -> PersistResult:
        """Create or replace a carrier keyed by MC number"""
        query = """
        MERGE (c:Carrier {mc_number: $mc_number})
        ON CREATE SET c.created_at = $now
        SET c += $props, c.updated_at = $now
        RETURN c
        """
        params = {
            "mc_number": record.mc_number,
            "props": record_to_row(record),
            "now": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.execute_query(query, params)
        except (Neo4jError, DriverError, ValueError) as e:
            logger.error(f"Failed to upsert carrier MC {record.mc_number}: {e}")
            return PersistResult(success=False, error=str(e))
        return PersistResult(success=True)

    def update_partial(self, dot_number: str, delta: Dict) -> PersistResult:
        """Apply an insurance or safety delta to every carrier with the DOT number"""
        query = """
        MATCH (c:Carrier {dot_number: $dot_number})
        SET c += $props, c.updated_at = $now
        RETURN count(c) as updated
        """
        try:
            params = {
                "dot_number": dot_number,
                "props": delta_to_row(delta),
                "now": datetime.now(timezone.utc).isoformat(),
            }
            result = self.execute_query(query, params)
        except (Neo4jError, DriverError, PersistenceFailure) as e:
            logger.error(f"Failed to update carrier DOT {dot_number}: {e}")
            return PersistResult(success=False, error=str(e))

        if not result or result[0]["updated"] == 0:
            return PersistResult(success=False, error=f"No carrier with DOT {dot_number}")
        return PersistResult(success=True)

    def get_carrier(self, mc_number: str) -> Optional[CarrierRecord]:
        """Get a carrier by MC number"""
        query = """
        MATCH (c:Carrier {mc_number: $mc_number})
        RETURN c
        """
        result = self.execute_query(query, {"mc_number": mc_number})
        return row_to_record(result[0]['c']) if result else None

    def list_carriers(self) -> List[CarrierRecord]:
        """All carriers, most recently created first"""
        query = """
        MATCH (c:Carrier)
        RETURN c
        ORDER BY c.created_at DESC
        """
        result = self.execute_query(query)
        return [row_to_record(record['c']) for record in result]
