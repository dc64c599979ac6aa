from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime, timezone
import re

TripKind = Literal["oneway", "return", "multicity"]
CabinClass = Literal["Y", "S", "C", "F"]  # economy, premium economy, business, first
NextStep = Literal["collecting", "confirming", "complete"]

IATA_PATTERN = r"^[A-Z]{3}$"
ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlightLeg(BaseModel):
    sequence: int = Field(..., ge=1, description="1-based position in the itinerary")
    origin_code: str = Field(..., pattern=IATA_PATTERN)
    origin_name: str = Field(..., min_length=1)
    destination_code: str = Field(..., pattern=IATA_PATTERN)
    destination_name: str = Field(..., min_length=1)
    departure_date: str = Field(..., pattern=ISO_DATE_PATTERN, description="YYYY-MM-DD")


class ExtractedFlightInfo(BaseModel):
    """Best-effort partial specification; nothing here is guaranteed."""
    origin_code: Optional[str] = None
    origin_name: Optional[str] = None
    destination_code: Optional[str] = None
    destination_name: Optional[str] = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None
    trip_kind: Optional[TripKind] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    infants: Optional[int] = None
    cabin_class: Optional[CabinClass] = None
    legs: Optional[List[FlightLeg]] = None
    next_step: Optional[NextStep] = None

    @field_validator("origin_code", "destination_code", mode="before")
    @classmethod
    def _normalise_code(cls, v):
        # Unusable codes are dropped rather than rejected
        if not isinstance(v, str):
            return None
        code = v.strip().upper()
        return code if re.fullmatch(IATA_PATTERN, code) else None

    @field_validator("departure_date", "return_date", mode="before")
    @classmethod
    def _normalise_date(cls, v):
        if not isinstance(v, str):
            return None
        v = v.strip()
        return v if re.fullmatch(ISO_DATE_PATTERN, v) else None

    def is_empty(self) -> bool:
        return not any(v not in (None, "", []) for v in self.model_dump().values())


class TripSpecification(BaseModel):
    conversation_id: str
    origin_code: Optional[str] = Field(None, pattern=IATA_PATTERN)
    origin_name: Optional[str] = None
    destination_code: Optional[str] = Field(None, pattern=IATA_PATTERN)
    destination_name: Optional[str] = None
    departure_date: Optional[str] = Field(None, pattern=ISO_DATE_PATTERN)
    return_date: Optional[str] = Field(None, pattern=ISO_DATE_PATTERN)
    trip_kind: TripKind = "return"
    trip_kind_declared: bool = False  # False when the kind came from the default policy
    adults: int = 1
    children: int = 0
    infants: int = 0
    cabin_class: Optional[CabinClass] = None
    legs: List[FlightLeg] = Field(default_factory=list)
    is_complete: bool = False  # cache only, see search.completeness


class LegUpdate(BaseModel):
    """A leg in a manual edit; position comes from its place in the list."""
    origin_code: str = Field(..., pattern=IATA_PATTERN)
    origin_name: Optional[str] = None
    destination_code: str = Field(..., pattern=IATA_PATTERN)
    destination_name: Optional[str] = None
    departure_date: str = Field(..., pattern=ISO_DATE_PATTERN)


class SpecificationUpdate(BaseModel):
    """Fields a user edits directly. Unlike extraction, malformed values are rejected."""
    origin_code: Optional[str] = Field(None, pattern=IATA_PATTERN)
    origin_name: Optional[str] = None
    destination_code: Optional[str] = Field(None, pattern=IATA_PATTERN)
    destination_name: Optional[str] = None
    departure_date: Optional[str] = Field(None, pattern=ISO_DATE_PATTERN)
    return_date: Optional[str] = Field(None, pattern=ISO_DATE_PATTERN)
    trip_kind: Optional[TripKind] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    infants: Optional[int] = None
    cabin_class: Optional[CabinClass] = None
    legs: Optional[List[LegUpdate]] = None

    def to_extracted(self) -> ExtractedFlightInfo:
        data = self.model_dump(exclude={"legs"})
        if self.legs:
            data["legs"] = [
                FlightLeg(
                    sequence=i,
                    origin_code=leg.origin_code,
                    origin_name=leg.origin_name or leg.origin_code,
                    destination_code=leg.destination_code,
                    destination_name=leg.destination_name or leg.destination_code,
                    departure_date=leg.departure_date,
                )
                for i, leg in enumerate(self.legs, start=1)
            ]
        return ExtractedFlightInfo(**data)


class Conversation(BaseModel):
    id: str
    user_id: str
    status: Literal["active", "completed", "abandoned"] = "active"
    current_step: Literal["initial", "collecting", "confirming", "complete"] = "initial"
    generated_url: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None


class TurnResult(BaseModel):
    conversation: Conversation
    specification: TripSpecification
    extracted: ExtractedFlightInfo
    missing_fields: List[str]
    completion_percentage: int
    generated_url: Optional[str] = None
    rejected: Optional[dict] = None  # validation failure that kept the previous spec
