from enum import Enum
from typing import Optional

from pydantic import BaseModel

from flightlink.config import Settings, settings as default_settings


class BookingLinkFormat(Enum):
    """Link encodings understood by the partner. Only BOOKING can be decoded."""
    BOOKING = "booking"      # full search URL on the partner site
    SHAREABLE = "shareable"  # compact /s link, lossy
    DEEP_LINK = "deep_link"  # native app URI scheme

    @property
    def supports_decode(self) -> bool:
        return self is BookingLinkFormat.BOOKING


TRIP_KIND_CODES = {"oneway": "O", "return": "R", "multicity": "M"}
TRIP_KIND_FROM_CODE = {v: k for k, v in TRIP_KIND_CODES.items()}
TRIP_KIND_SHORT = {"oneway": "o", "return": "r", "multicity": "m"}
DEFAULT_CABIN = "Y"


class BookingConfig(BaseModel):
    """Static partner parameters, injected into the codec."""
    base_url: str = "https://app.paylatertravel.com.au"
    currency: Optional[str] = "AUD"
    market: Optional[str] = "AU"
    affiliate_id: Optional[str] = None
    deep_link_base: str = "paylaterflights://search"

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "BookingConfig":
        s = s or default_settings
        return cls(
            base_url=s.BOOKING_BASE_URL.rstrip("/"),
            currency=s.BOOKING_CURRENCY,
            market=s.BOOKING_MARKET,
            affiliate_id=s.BOOKING_AFFILIATE_ID,
            deep_link_base=s.DEEP_LINK_BASE,
        )


class UTMParams(BaseModel):
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None


CHAT_UTM = UTMParams(utm_source="chat", utm_medium="ai", utm_campaign="natural_language_search")
