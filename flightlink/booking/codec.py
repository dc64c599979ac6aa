"""
Booking URL codec.

Encodes a complete trip specification into the partner's link formats and
decodes a full booking URL back into a partial specification:

- booking:   {base}/flights?from=SYD&to=NRT&depart=05032025&type=O&adults=1&class=Y&...
             {base}/flights/multi-city?from1=..&to1=..&date1=..&type=M&segments=N&...
- shareable: {base}/s?o=SYD&d=NRT&dep=250305&t=o&a=1&c=0&i=0&cl=Y
- deep link: paylaterflights://search?from=SYD&to=NRT&date=2025-03-05&type=oneway&pax=1-0-0

Only the booking format has a decoder. Decoding never raises: anything it
can't read comes back as an empty ExtractedFlightInfo.
"""

from typing import List, Optional, Tuple

import httpx

from flightlink.booking.formats import (
    BookingConfig,
    BookingLinkFormat,
    DEFAULT_CABIN,
    TRIP_KIND_CODES,
    TRIP_KIND_FROM_CODE,
    TRIP_KIND_SHORT,
    UTMParams,
)
from flightlink.errors import EncodingPreconditionError, UnsupportedDecodeError
from flightlink.obs.logger import log_event
from flightlink.obs.metrics import inc_counter
from flightlink.search.completeness import missing_fields
from flightlink.search.segments import MIN_MULTICITY_LEGS, sort_legs
from flightlink.types import ExtractedFlightInfo, FlightLeg, TripSpecification
from flightlink.utils.dates import from_booking_date, to_booking_date, to_short_date

Params = List[Tuple[str, str]]

# Upper bound on legs read back from a URL, whatever `segments` claims
MAX_DECODED_LEGS = 9


class BookingLinkCodec:
    """Builds and parses partner booking links for a fixed configuration."""

    def __init__(self, config: Optional[BookingConfig] = None):
        self.config = config or BookingConfig.from_settings()

    # Encoding

    def encode(self, spec: TripSpecification, fmt: BookingLinkFormat = BookingLinkFormat.BOOKING,
               utm: Optional[UTMParams] = None) -> str:
        if fmt is BookingLinkFormat.BOOKING:
            return self.build_booking_url(spec, utm)
        if fmt is BookingLinkFormat.SHAREABLE:
            return self.build_shareable_url(spec)
        if fmt is BookingLinkFormat.DEEP_LINK:
            return self.build_deep_link(spec)
        raise ValueError(f"Unknown link format: {fmt}")

    def build_booking_url(self, spec: TripSpecification, utm: Optional[UTMParams] = None) -> str:
        self._check_encodable(spec)
        if spec.trip_kind == "multicity":
            url = self._multicity_url(spec, utm)
        elif spec.trip_kind == "oneway":
            url = self._oneway_url(spec, utm)
        else:
            url = self._return_url(spec, utm)
        inc_counter("booking_links_total", {"format": "booking", "trip_kind": spec.trip_kind})
        return url

    def build_shareable_url(self, spec: TripSpecification) -> str:
        self._check_encodable(spec)
        essential = [
            ("o", spec.origin_code),
            ("d", spec.destination_code),
            ("dep", to_short_date(spec.departure_date or "")),
            ("ret", to_short_date(spec.return_date) if spec.return_date else None),
            ("t", TRIP_KIND_SHORT.get(spec.trip_kind, "r")),
            ("a", spec.adults or 1),
            ("c", spec.children or 0),
            ("i", spec.infants or 0),
            ("cl", spec.cabin_class or DEFAULT_CABIN),
        ]
        params = [(k, str(v)) for k, v in essential if v is not None]
        inc_counter("booking_links_total", {"format": "shareable", "trip_kind": spec.trip_kind})
        return self._join(f"{self.config.base_url}/s", params)

    def build_deep_link(self, spec: TripSpecification) -> str:
        params: Params = [
            ("from", spec.origin_code or ""),
            ("to", spec.destination_code or ""),
            ("date", spec.departure_date or ""),
        ]
        if spec.return_date:
            params.append(("return", spec.return_date))
        params.append(("type", spec.trip_kind))
        params.append(("pax", f"{spec.adults or 1}-{spec.children or 0}-{spec.infants or 0}"))
        inc_counter("booking_links_total", {"format": "deep_link", "trip_kind": spec.trip_kind})
        return self._join(self.config.deep_link_base, params)

    def _oneway_url(self, spec: TripSpecification, utm: Optional[UTMParams]) -> str:
        params: Params = [
            ("from", spec.origin_code),
            ("to", spec.destination_code),
            ("depart", to_booking_date(spec.departure_date)),
            ("type", TRIP_KIND_CODES["oneway"]),
        ]
        return self._join(f"{self.config.base_url}/flights", params + self._suffix(spec, utm))

    def _return_url(self, spec: TripSpecification, utm: Optional[UTMParams]) -> str:
        params: Params = [
            ("from", spec.origin_code),
            ("to", spec.destination_code),
            ("depart", to_booking_date(spec.departure_date)),
            ("return", to_booking_date(spec.return_date or "")),
            ("type", TRIP_KIND_CODES["return"]),
        ]
        return self._join(f"{self.config.base_url}/flights", params + self._suffix(spec, utm))

    def _multicity_url(self, spec: TripSpecification, utm: Optional[UTMParams]) -> str:
        legs = sort_legs(spec.legs)
        params: Params = []
        for i, leg in enumerate(legs, start=1):
            params.append((f"from{i}", leg.origin_code))
            params.append((f"to{i}", leg.destination_code))
            params.append((f"date{i}", to_booking_date(leg.departure_date)))
        params.append(("type", TRIP_KIND_CODES["multicity"]))
        params.append(("segments", str(len(legs))))
        return self._join(f"{self.config.base_url}/flights/multi-city", params + self._suffix(spec, utm))

    def _suffix(self, spec: TripSpecification, utm: Optional[UTMParams]) -> Params:
        """Passengers, cabin, partner defaults and tracking, shared by every trip kind."""
        params: Params = [("adults", str(spec.adults or 1))]
        if spec.children and spec.children > 0:
            params.append(("children", str(spec.children)))
        if spec.infants and spec.infants > 0:
            params.append(("infants", str(spec.infants)))
        params.append(("class", spec.cabin_class or DEFAULT_CABIN))

        if self.config.currency:
            params.append(("currency", self.config.currency))
        if self.config.market:
            params.append(("market", self.config.market))
        if self.config.affiliate_id:
            params.append(("aid", self.config.affiliate_id))
        if utm is not None:
            for key in ("utm_source", "utm_medium", "utm_campaign"):
                value = getattr(utm, key)
                if value:
                    params.append((key, value))
        return params

    def _check_encodable(self, spec: TripSpecification) -> None:
        if spec.trip_kind == "multicity" and len(spec.legs) < MIN_MULTICITY_LEGS:
            raise EncodingPreconditionError(
                f"Multi-city trip requires at least {MIN_MULTICITY_LEGS} legs",
                field="legs",
            )
        missing = missing_fields(spec)
        if missing:
            raise EncodingPreconditionError(
                f"Cannot build a booking link without: {', '.join(missing)}",
                field=missing[0],
            )
        adults = spec.adults or 1
        if adults < 1 or adults > 9:
            raise EncodingPreconditionError("Adults must be between 1 and 9", field="adults")
        if (spec.infants or 0) > adults:
            raise EncodingPreconditionError("Number of infants cannot exceed number of adults", field="infants")

    @staticmethod
    def _join(base: str, params: Params) -> str:
        return f"{base}?{httpx.QueryParams(params)}"

    # Decoding

    def decode(self, url: str, fmt: BookingLinkFormat = BookingLinkFormat.BOOKING) -> ExtractedFlightInfo:
        if not fmt.supports_decode:
            raise UnsupportedDecodeError(fmt.value)
        return self.parse_booking_url(url)

    def parse_booking_url(self, url: str) -> ExtractedFlightInfo:
        """Best-effort inverse of ``build_booking_url``."""
        try:
            return self._parse(url)
        except (httpx.InvalidURL, ValueError, TypeError) as e:
            log_event("booking_url_parse_failed", level="WARNING", error=str(e))
            inc_counter("booking_url_parse_failures_total")
            return ExtractedFlightInfo()

    def _parse(self, url: str) -> ExtractedFlightInfo:
        parsed = httpx.URL(url)
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ValueError(f"Not a booking URL: {url!r}")
        params = parsed.params
        # Missing or unknown type codes read as a round trip
        trip_kind = TRIP_KIND_FROM_CODE.get(params.get("type", ""), "return")

        fields = {
            "origin_code": params.get("from") or None,
            "destination_code": params.get("to") or None,
            "departure_date": from_booking_date(params.get("depart", "")) or None,
            "trip_kind": trip_kind,
            "adults": int(params.get("adults") or "1"),
            "children": int(params.get("children") or "0"),
            "infants": int(params.get("infants") or "0"),
            "cabin_class": params.get("class") or DEFAULT_CABIN,
        }
        if trip_kind == "return":
            fields["return_date"] = from_booking_date(params.get("return", "")) or None

        if trip_kind == "multicity":
            legs = []
            count = min(int(params.get("segments") or "0"), MAX_DECODED_LEGS)
            for i in range(1, count + 1):
                origin, destination = params.get(f"from{i}"), params.get(f"to{i}")
                date = from_booking_date(params.get(f"date{i}", ""))
                if origin and destination and date:
                    # Display names are not carried by the URL
                    legs.append(FlightLeg(
                        sequence=i,
                        origin_code=origin,
                        origin_name=origin,
                        destination_code=destination,
                        destination_name=destination,
                        departure_date=date,
                    ))
            if legs:
                fields["legs"] = legs
                fields["origin_code"] = fields["origin_code"] or legs[0].origin_code
                fields["destination_code"] = fields["destination_code"] or legs[-1].destination_code
                fields["departure_date"] = fields["departure_date"] or legs[0].departure_date

        return ExtractedFlightInfo(**fields)
