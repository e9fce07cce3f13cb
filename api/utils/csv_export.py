"""
CSV export of extracted carriers.

One row per insurance policy with the carrier columns repeated, or a single
row with blank insurance columns when a carrier has no policies.
"""

import csv
import io
from typing import Iterable, List

from models.carrier import CarrierRecord

CSV_HEADER = [
    "MC",
    "DOT",
    "Legal Name",
    "Email",
    "Phone",
    "Status",
    "Physical Address",
    "MCS-150 Date",
    "Insurance Carrier",
    "Policy Number",
    "Coverage",
    "Insurance Type",
]


def carrier_rows(record: CarrierRecord) -> List[List[str]]:
    base = [
        record.mc_number,
        record.dot_number,
        record.legal_name,
        record.email,
        record.phone,
        record.status,
        record.physical_address,
        record.mcs150_date,
    ]
    policies = record.insurance_policies or []
    if not policies:
        return [base + ["", "", "", ""]]
    return [
        base + [policy.carrier, policy.policy_number, policy.coverage_amount, policy.type]
        for policy in policies
    ]


def carriers_to_csv(records: Iterable[CarrierRecord]) -> str:
    """Render carriers as CSV text with a header row.

    Fields containing commas, quotes or line breaks are double-quoted with
    inner quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerows(carrier_rows(record))
    return buffer.getvalue()
