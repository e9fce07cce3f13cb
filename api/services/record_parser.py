"""
Record parser for FMCSA and SearchCarriers source documents.

Pure functions that turn one fetched document (SAFER snapshot HTML, SMS
registration HTML, SMS complete-profile HTML or SearchCarriers insurance JSON)
into pipeline models. Nothing here touches the network.
"""

import re
from datetime import date
from typing import Any, Iterable, List, Optional

from bs4 import BeautifulSoup

from errors import RecordNotFound
from models.carrier import (
    BASIC_CATEGORIES,
    BasicScore,
    CarrierRecord,
    InsurancePolicy,
    OosRate,
    SafetyProfile,
)


SNAPSHOT_LABELS = {
    "dot_number": "USDOT Number:",
    "legal_name": "Legal Name:",
    "dba_name": "DBA Name:",
    "entity_type": "Entity Type:",
    "status": "Operating Authority Status:",
    "phone": "Phone:",
    "power_units": "Power Units:",
    "drivers": "Drivers:",
    "physical_address": "Physical Address:",
    "mailing_address": "Mailing Address:",
    "mcs150_date": "MCS-150 Form Date:",
    "mcs150_mileage": "MCS-150 Mileage (Year):",
    "out_of_service_date": "Out of Service Date:",
    "state_carrier_id": "State Carrier ID Number:",
    "duns_number": "DUNS Number:",
}

MARKED_TABLES = {
    "operation_classification": "Operation Classification",
    "carrier_operation": "Carrier Operation",
    "cargo_carried": "Cargo Carried",
}

INSURANCE_TYPE_CODES = {"1": "BI&PD", "2": "CARGO", "3": "BOND"}
INSURANCE_CLASS_CODES = {"P": "PRIMARY", "E": "EXCESS"}

# Coverage values below this are published in thousands of dollars
COVERAGE_THOUSANDS_CUTOFF = 10000

_WHITESPACE = re.compile(r"\s+")


def clean_text(text: Optional[str]) -> str:
    """Collapse non-breaking spaces and whitespace runs to single spaces and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.replace("\u00a0", " ")).strip()


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def find_value_by_label(soup: BeautifulSoup, label: str) -> str:
    """Return the text of the cell next to the first <th> containing the label."""
    for th in soup.find_all("th"):
        if label in clean_text(th.get_text(" ")):
            cell = th.find_next_sibling("td")
            return clean_text(cell.get_text(" ")) if cell else ""
    return ""


def find_marked(soup: BeautifulSoup, summary: str) -> List[str]:
    """Collect the labels next to cells marked with an 'X' in a checkbox table."""
    table = soup.find("table", attrs={"summary": summary})
    if not table:
        return []
    marked = []
    for cell in table.find_all("td"):
        if clean_text(cell.get_text()) == "X":
            label_cell = cell.find_next_sibling()
            if label_cell:
                marked.append(clean_text(label_cell.get_text(" ")))
    return marked


def parse_carrier_snapshot(html: str, mc_number: str, scraped_on: Optional[date] = None) -> CarrierRecord:
    """Parse a SAFER company snapshot page into a CarrierRecord.

    Args:
        html: Snapshot page HTML
        mc_number: MC number the page was requested for
        scraped_on: Extraction date, defaults to today

    Returns:
        CarrierRecord with an empty email (see parse_registration_email)

    Raises:
        RecordNotFound: If the page lacks the snapshot container
    """
    soup = _soup(html)
    if soup.find("center") is None:
        raise RecordNotFound(f"No carrier snapshot for MC {mc_number}")

    fields = {name: find_value_by_label(soup, label) for name, label in SNAPSHOT_LABELS.items()}
    for name, summary in MARKED_TABLES.items():
        fields[name] = find_marked(soup, summary)

    scraped_on = scraped_on or date.today()
    return CarrierRecord(
        mc_number=mc_number,
        date_scraped=f"{scraped_on.month}/{scraped_on.day}/{scraped_on.year}",
        **fields,
    )


def cf_decode_email(encoded: str) -> str:
    """Decode a Cloudflare-obfuscated email (hex pairs XOR the first pair)."""
    try:
        key = int(encoded[:2], 16)
        return "".join(
            chr(int(encoded[n:n + 2], 16) ^ key)
            for n in range(2, len(encoded), 2)
        )
    except ValueError:
        return ""


def cf_encode_email(email: str, key: int) -> str:
    """Obfuscate an email the way Cloudflare does; inverse of cf_decode_email."""
    return f"{key:02x}" + "".join(f"{ord(ch) ^ key:02x}" for ch in email)


def parse_registration_email(html: str) -> str:
    """Extract the contact email from an SMS carrier registration page."""
    soup = _soup(html)
    for label in soup.find_all("label"):
        if "Email:" not in label.get_text():
            continue
        parent = label.parent
        if parent is None:
            return ""
        protected = parent.find(attrs={"data-cfemail": True})
        if protected:
            return cf_decode_email(protected.get("data-cfemail", ""))
        text = clean_text(parent.get_text(" ").replace("Email:", ""))
        return text if "@" in text else ""
    return ""


def _oos_rows(table) -> Iterable:
    rows = table.select("tbody tr")
    if rows:
        return rows
    return [row for row in table.find_all("tr") if row.find_parent("thead") is None]


def parse_safety_profile(html: str) -> SafetyProfile:
    """Parse an SMS complete profile page into rating, BASIC scores and OOS rates."""
    soup = _soup(html)

    rating_el = soup.find(id="Rating")
    rating = clean_text(rating_el.get_text(" ")) if rating_el else "N/A"

    rating_date = "N/A"
    rating_date_el = soup.find(id="RatingDate")
    if rating_date_el:
        rating_date = (
            clean_text(rating_date_el.get_text(" "))
            .replace("Rating Date:", "")
            .replace("(", "")
            .replace(")", "")
            .strip()
        )

    # BASIC measures map positionally onto the summary row's columns
    basic_scores = []
    summary_row = soup.find("tr", class_="sumData")
    if summary_row:
        for category, cell in zip(BASIC_CATEGORIES, summary_row.find_all("td")):
            value_span = cell.find("span", class_="val")
            value = clean_text((value_span or cell).get_text(" "))
            basic_scores.append(BasicScore(category=category, measure=value or "0"))

    oos_rates = []
    safety_div = soup.find(id="SafetyRating")
    oos_table = safety_div.find("table") if safety_div else None
    if oos_table:
        for row in _oos_rows(oos_table):
            cols = row.find_all(["th", "td"])
            if len(cols) >= 3:
                oos_rates.append(OosRate(
                    type=clean_text(cols[0].get_text(" ")),
                    rate=clean_text(cols[1].get_text(" ")),
                    national_avg=clean_text(cols[2].get_text(" ")),
                ))

    return SafetyProfile(
        rating=rating,
        rating_date=rating_date,
        basic_scores=basic_scores,
        oos_rates=oos_rates,
    )


def _first(record: dict, keys: Iterable[str], default: Any) -> Any:
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return default


def _format_number(num: float) -> str:
    if float(num).is_integer():
        return f"{int(num):,}"
    return f"{num:,.3f}".rstrip("0").rstrip(".")


def format_coverage(value: Any) -> str:
    """Render a coverage amount as a dollar string.

    Numeric amounts under 10,000 are published in thousands, so
    5000 -> "$5,000,000" while 250000 -> "$250,000". Non-numeric values
    pass through unchanged.
    """
    if value is None or value == "N/A":
        return "N/A"
    try:
        num = float(str(value).strip())
    except ValueError:
        return str(value)
    if 0 < num < COVERAGE_THOUSANDS_CUTOFF:
        num *= 1000
    return f"${_format_number(num)}"


def normalize_type_code(code: Any) -> str:
    code = str(code or "N/A")
    return INSURANCE_TYPE_CODES.get(code, code).upper()


def normalize_class_code(code: Any) -> str:
    code = str(code or "N/A").upper()
    return INSURANCE_CLASS_CODES.get(code, code)


def parse_insurance_payload(payload: Any, dot: str) -> List[InsurancePolicy]:
    """Normalize a SearchCarriers insurance payload into InsurancePolicy models.

    Args:
        payload: Either {"data": [...]} or a bare list of policy objects
        dot: USDOT number the filings belong to

    Returns:
        list: One InsurancePolicy per filing, empty when the payload has none
    """
    if isinstance(payload, dict):
        raw = payload.get("data") or []
    elif isinstance(payload, list):
        raw = payload
    else:
        raw = []
    if not isinstance(raw, list):
        return []

    policies = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        company = _first(item, ("name_company", "insurance_company", "insurance_company_name", "company_name"), "NOT SPECIFIED")
        policy_number = _first(item, ("policy_no", "policy_number", "pol_num"), "N/A")
        effective = item.get("effective_date")
        coverage = _first(item, ("max_cov_amount", "coverage_to", "coverage_amount"), "N/A")

        policies.append(InsurancePolicy(
            dot=dot,
            carrier=str(company).upper(),
            policy_number=str(policy_number).upper(),
            effective_date=str(effective).split(" ")[0] if effective else "N/A",
            coverage_amount=format_coverage(coverage),
            type=normalize_type_code(item.get("ins_type_code")),
            filing_class=normalize_class_code(item.get("ins_class_code")),
        ))
    return policies
