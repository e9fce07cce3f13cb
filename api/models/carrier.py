from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


BASIC_CATEGORIES = [
    "Unsafe Driving",
    "Crash Indicator",
    "HOS Compliance",
    "Vehicle Maintenance",
    "Controlled Substances",
    "Hazmat Compliance",
    "Driver Fitness",
]

INVALID_DOT_VALUES = ("", "UNKNOWN")


class InsurancePolicy(BaseModel):
    """Insurance filing attached to a carrier, keyed by the carrier's DOT number."""

    dot: str = Field(..., description="USDOT number of the insured carrier", examples=["2233445"])
    carrier: str = Field("NOT SPECIFIED", description="Issuing insurance company (upper-cased)")
    policy_number: str = Field("N/A", description="Policy number (upper-cased)")
    effective_date: str = Field("N/A", description="Effective date as published by the source")
    coverage_amount: str = Field("N/A", description="Currency formatted coverage, e.g. $1,000,000")
    type: str = Field("N/A", description="Filing type: BI&PD, CARGO, BOND or the raw code")
    filing_class: str = Field("N/A", alias="class", description="Filing class: PRIMARY, EXCESS or the raw code")

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class BasicScore(BaseModel):
    category: str
    measure: str


class OosRate(BaseModel):
    type: str
    rate: str
    national_avg: str

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SafetyProfile(BaseModel):
    """Safety rating, BASIC measures and out-of-service rates for one DOT number."""

    rating: str = "N/A"
    rating_date: str = "N/A"
    basic_scores: List[BasicScore] = Field(default_factory=list)
    oos_rates: List[OosRate] = Field(default_factory=list)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CarrierRecord(BaseModel):
    """Carrier registration record scraped from the FMCSA SAFER snapshot.

    The MC number is the natural key when a record is first stored. The DOT
    number keys the later insurance and safety enrichment updates.
    """

    # Identifiers
    mc_number: str = Field(..., description="MC docket number - upsert key", examples=["1580000"])
    dot_number: str = Field("", description="USDOT number - enrichment key, may be empty")

    # Registration
    legal_name: str = ""
    dba_name: str = ""
    entity_type: str = Field("", description="CARRIER, BROKER or both", examples=["CARRIER/BROKER"])
    status: str = Field("", description="Operating authority status text", examples=["AUTHORIZED FOR Property"])

    # Contact
    email: str = ""
    phone: str = ""
    physical_address: str = ""
    mailing_address: str = ""

    # Fleet
    power_units: str = ""
    drivers: str = ""

    # Filing details
    date_scraped: str = ""
    mcs150_date: str = ""
    mcs150_mileage: str = ""
    operation_classification: List[str] = Field(default_factory=list)
    carrier_operation: List[str] = Field(default_factory=list)
    cargo_carried: List[str] = Field(default_factory=list)
    out_of_service_date: str = ""
    state_carrier_id: str = ""
    duns_number: str = ""

    # Enrichment
    insurance_policies: Optional[List[InsurancePolicy]] = None
    safety_rating: Optional[str] = None
    safety_rating_date: Optional[str] = None
    basic_scores: Optional[List[BasicScore]] = None
    oos_rates: Optional[List[OosRate]] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "mcNumber": "1580000",
                "dotNumber": "3912345",
                "legalName": "ACME FREIGHT LLC",
                "entityType": "CARRIER",
                "status": "AUTHORIZED FOR Property",
                "phone": "(713) 555-0199",
                "powerUnits": "12",
                "drivers": "14",
                "physicalAddress": "100 LOGISTICS WAY HOUSTON, TX 77002",
                "carrierOperation": ["Interstate"],
                "cargoCarried": ["General Freight"]
            }
        }

    def has_valid_dot(self) -> bool:
        """True when the record carries a DOT number usable for enrichment lookups."""
        return (self.dot_number or "").strip().upper() not in INVALID_DOT_VALUES

    def with_insurance(self, policies: List[InsurancePolicy]) -> "CarrierRecord":
        return self.model_copy(update={"insurance_policies": policies})

    def with_safety(self, profile: SafetyProfile) -> "CarrierRecord":
        return self.model_copy(update={
            "safety_rating": profile.rating,
            "safety_rating_date": profile.rating_date,
            "basic_scores": profile.basic_scores,
            "oos_rates": profile.oos_rates,
        })


class PersistResult(BaseModel):
    """Outcome of a Persistence Gateway write."""

    success: bool
    error: Optional[str] = None
