"""
Unit tests for the record parser.

Covers SAFER snapshot parsing, Cloudflare email decoding, SMS safety
profiles and insurance payload normalization.
"""

import pytest
from datetime import date
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import RecordNotFound
from models.carrier import BASIC_CATEGORIES
from services.record_parser import (
    cf_decode_email,
    cf_encode_email,
    clean_text,
    format_coverage,
    normalize_class_code,
    normalize_type_code,
    parse_carrier_snapshot,
    parse_insurance_payload,
    parse_registration_email,
    parse_safety_profile,
)


SNAPSHOT_HTML = """
<html><body><center>
<table>
  <tr><th>Entity Type:</th><td>CARRIER</td></tr>
  <tr><th>Operating Authority Status:</th><td>AUTHORIZED FOR Property
      <br/>For Licensing and Insurance details click here.</td></tr>
  <tr><th>Legal Name:</th><td>ACME&nbsp;FREIGHT   LLC</td></tr>
  <tr><th>DBA Name:</th><td>&nbsp;</td></tr>
  <tr><th>Physical Address:</th><td>100 LOGISTICS WAY<br/>HOUSTON, TX 77002</td></tr>
  <tr><th>Phone:</th><td>(713) 555-0199</td></tr>
  <tr><th>USDOT Number:</th><td>3912345</td></tr>
  <tr><th>Power Units:</th><td>12</td></tr>
  <tr><th>Drivers:</th><td>14</td></tr>
  <tr><th>MCS-150 Form Date:</th><td>01/15/2024</td></tr>
  <tr><th>MCS-150 Mileage (Year):</th><td>120,000 (2023)</td></tr>
</table>
<table summary="Operation Classification">
  <tr><td>X</td><td>Auth. For Hire</td><td></td><td>Private(Property)</td></tr>
</table>
<table summary="Carrier Operation">
  <tr><td>X</td><td>Interstate</td><td></td><td>Intrastate Only (HM)</td></tr>
</table>
<table summary="Cargo Carried">
  <tr><td>X</td><td>General Freight</td><td>X</td><td>Building Materials</td></tr>
</table>
</center></body></html>
"""

SAFETY_HTML = """
<html><body>
<div id="Rating">Satisfactory</div>
<div id="RatingDate">Rating Date: (03/14/2022)</div>
<table>
  <tr class="sumData">
    <td><span class="val">1.2</span></td>
    <td>0.4</td>
    <td><span class="val">3.1</span></td>
    <td></td>
    <td>0</td>
    <td>0</td>
    <td>0.9</td>
  </tr>
</table>
<div id="SafetyRating">
  <table>
    <thead><tr><th>Type</th><th>OOS %</th><th>Nat'l Avg %</th></tr></thead>
    <tbody>
      <tr><td>Vehicle</td><td>20.1%</td><td>22.26%</td></tr>
      <tr><td>Driver</td><td>3.0%</td><td>6.67%</td></tr>
    </tbody>
  </table>
</div>
</body></html>
"""


class TestCleanText:

    def test_collapses_nbsp_and_whitespace(self):
        assert clean_text("  ACME FREIGHT \n\t LLC ") == "ACME FREIGHT LLC"

    def test_empty_values(self):
        assert clean_text(None) == ""
        assert clean_text("") == ""


class TestCarrierSnapshot:

    def test_parse_snapshot_fields(self):
        record = parse_carrier_snapshot(SNAPSHOT_HTML, "1580000", scraped_on=date(2024, 3, 5))

        assert record.mc_number == "1580000"
        assert record.dot_number == "3912345"
        assert record.legal_name == "ACME FREIGHT LLC"
        assert record.dba_name == ""
        assert record.entity_type == "CARRIER"
        assert record.status.startswith("AUTHORIZED FOR Property")
        assert record.physical_address == "100 LOGISTICS WAY HOUSTON, TX 77002"
        assert record.power_units == "12"
        assert record.drivers == "14"
        assert record.mcs150_date == "01/15/2024"
        assert record.mcs150_mileage == "120,000 (2023)"
        assert record.date_scraped == "3/5/2024"
        assert record.email == ""

    def test_parse_marked_tables(self):
        record = parse_carrier_snapshot(SNAPSHOT_HTML, "1580000")

        assert record.operation_classification == ["Auth. For Hire"]
        assert record.carrier_operation == ["Interstate"]
        assert record.cargo_carried == ["General Freight", "Building Materials"]

    def test_missing_container_raises_not_found(self):
        with pytest.raises(RecordNotFound):
            parse_carrier_snapshot("<html><body>Record Not Found</body></html>", "1")

    def test_missing_labels_default_to_empty(self):
        record = parse_carrier_snapshot("<center><table></table></center>", "42")
        assert record.dot_number == ""
        assert record.operation_classification == []
        assert record.has_valid_dot() is False


class TestRegistrationEmail:

    def test_decode_known_ciphertext(self):
        # key 0x2a applied to "a@b.co"
        assert cf_decode_email("2a4b6a48044945") == "a@b.co"

    @pytest.mark.parametrize("email,key", [
        ("dispatch@acmefreight.com", 0x5f),
        ("safety.office+ops@carrier.net", 0x11),
    ])
    def test_decode_inverts_encode(self, email, key):
        assert cf_decode_email(cf_encode_email(email, key)) == email

    def test_decode_invalid_hex(self):
        assert cf_decode_email("zz") == ""

    def test_protected_email(self):
        encoded = cf_encode_email("ops@acme.com", 0x3a)
        html = f"""
        <ul><li><label>Email:</label>
            <span class="__cf_email__" data-cfemail="{encoded}">[email&#160;protected]</span>
        </li></ul>
        """
        assert parse_registration_email(html) == "ops@acme.com"

    def test_plain_email(self):
        html = "<ul><li><label>Email:</label> ops@acme.com</li></ul>"
        assert parse_registration_email(html) == "ops@acme.com"

    def test_no_email_label(self):
        assert parse_registration_email("<ul><li><label>Phone:</label> 555</li></ul>") == ""


class TestSafetyProfile:

    def test_parse_rating_and_date(self):
        profile = parse_safety_profile(SAFETY_HTML)
        assert profile.rating == "Satisfactory"
        assert profile.rating_date == "03/14/2022"

    def test_basic_scores_follow_category_order(self):
        profile = parse_safety_profile(SAFETY_HTML)

        assert [s.category for s in profile.basic_scores] == BASIC_CATEGORIES
        assert profile.basic_scores[0].measure == "1.2"
        assert profile.basic_scores[1].measure == "0.4"
        assert profile.basic_scores[3].measure == "0"

    def test_oos_rates_skip_header(self):
        profile = parse_safety_profile(SAFETY_HTML)

        assert len(profile.oos_rates) == 2
        assert profile.oos_rates[0].type == "Vehicle"
        assert profile.oos_rates[0].rate == "20.1%"
        assert profile.oos_rates[0].national_avg == "22.26%"

    def test_empty_page_defaults(self):
        profile = parse_safety_profile("<html></html>")
        assert profile.rating == "N/A"
        assert profile.rating_date == "N/A"
        assert profile.basic_scores == []
        assert profile.oos_rates == []


class TestInsurance:

    @pytest.mark.parametrize("value,expected", [
        (5000, "$5,000,000"),
        ("750", "$750,000"),
        (250000, "$250,000"),
        ("1000000", "$1,000,000"),
        (None, "N/A"),
        ("N/A", "N/A"),
        ("See filing", "See filing"),
    ])
    def test_format_coverage(self, value, expected):
        assert format_coverage(value) == expected

    def test_code_normalization(self):
        assert normalize_type_code("1") == "BI&PD"
        assert normalize_type_code("2") == "CARGO"
        assert normalize_type_code("3") == "BOND"
        assert normalize_type_code("surety") == "SURETY"
        assert normalize_type_code(None) == "N/A"
        assert normalize_class_code("p") == "PRIMARY"
        assert normalize_class_code("E") == "EXCESS"
        assert normalize_class_code("x") == "X"

    def test_parse_payload(self):
        payload = {
            "data": [
                {
                    "name_company": "Progressive County Mutual",
                    "policy_no": "pcm-100",
                    "effective_date": "2024-01-01 00:00:00",
                    "max_cov_amount": "1000",
                    "ins_type_code": "1",
                    "ins_class_code": "P",
                },
                {
                    "insurance_company": "Great West",
                    "policy_number": "gw-7",
                    "coverage_to": 100000,
                    "ins_type_code": "2",
                },
            ]
        }
        policies = parse_insurance_payload(payload, "3912345")

        assert len(policies) == 2
        first = policies[0]
        assert first.dot == "3912345"
        assert first.carrier == "PROGRESSIVE COUNTY MUTUAL"
        assert first.policy_number == "PCM-100"
        assert first.effective_date == "2024-01-01"
        assert first.coverage_amount == "$1,000,000"
        assert first.type == "BI&PD"
        assert first.filing_class == "PRIMARY"

        second = policies[1]
        assert second.carrier == "GREAT WEST"
        assert second.effective_date == "N/A"
        assert second.coverage_amount == "$100,000"
        assert second.filing_class == "N/A"

    def test_parse_bare_list_and_garbage(self):
        assert len(parse_insurance_payload([{"policy_no": "A1"}], "1")) == 1
        assert parse_insurance_payload("<html>blocked</html>", "1") == []
        assert parse_insurance_payload({"data": None}, "1") == []

    def test_policy_serializes_class_alias(self):
        policy = parse_insurance_payload([{"ins_class_code": "E"}], "1")[0]
        dumped = policy.model_dump(by_alias=True)
        assert dumped["class"] == "EXCESS"
        assert dumped["policyNumber"] == "N/A"
        assert dumped["coverageAmount"] == "N/A"
