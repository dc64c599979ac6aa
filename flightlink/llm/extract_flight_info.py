from langchain_openai import ChatOpenAI
from langchain_core.prompts import ChatPromptTemplate
from pydantic import ValidationError
from typing import List, Optional
import json

from flightlink.obs.logger import log_event
from flightlink.types import ExtractedFlightInfo, FlightLeg
from flightlink.utils.dates import get_current_datetime, to_iso_date

SYSTEM = """You extract structured flight search fields from a user's message.
Today's date for reference: {today}
- Airports as 3-letter IATA codes plus a readable name.
- Dates as YYYY-MM-DD.
- trip_kind is one of: oneway, return, multicity. Only set it when the user says so.
- cabin_class is one of Y (economy), S (premium economy), C (business), F (first).
- For multi-city trips list legs with sequence starting at 1.
- next_step is "confirming" when you are about to confirm details, otherwise "collecting".
Leave out anything the user did not mention.
Output JSON ONLY with any of the keys: origin_code, origin_name, destination_code,
destination_name, departure_date, return_date, trip_kind, adults, children, infants,
cabin_class, legs, next_step.
"""

USER = """Recent messages: {history}
User location: {location}
Message: {text}"""


class FlightInfoExtractor:
    """Calls the chat model and turns its JSON into an ExtractedFlightInfo.

    Best effort: any unparseable answer yields an empty extraction.
    """

    def __init__(self, llm: ChatOpenAI, tz: str = "UTC"):
        self.llm = llm
        self.tz = tz
        self.prompt = ChatPromptTemplate.from_messages([("system", SYSTEM), ("user", USER)])

    def __call__(self, text: str, history: Optional[List[str]] = None,
                 location: Optional[str] = None) -> ExtractedFlightInfo:
        msg = self.prompt.format_messages(
            text=text,
            history=" | ".join(history or []) or "none",
            location=location or "unknown",
            today=get_current_datetime(self.tz).strftime("%Y-%m-%d"),
        )
        res = self.llm.invoke(msg)
        return self.parse(res.content)

    def parse(self, content: str) -> ExtractedFlightInfo:
        content = (content or "").strip()
        if content.startswith("```json"):
            content = content[7:]
        elif content.startswith("```"):
            content = content[3:]
        if content.endswith("```"):
            content = content[:-3]
        try:
            data = json.loads(content.strip())
        except json.JSONDecodeError as e:
            log_event("extraction_parse_error", level="WARNING", error=str(e))
            return ExtractedFlightInfo()
        if not isinstance(data, dict):
            return ExtractedFlightInfo()

        # normalise dates -> iso here
        for key in ("departure_date", "return_date"):
            if data.get(key):
                data[key] = to_iso_date(str(data[key]), self.tz) or None
        data["legs"] = self._parse_legs(data.get("legs"))
        if data.get("cabin_class") not in (None, "Y", "S", "C", "F"):
            data["cabin_class"] = None

        try:
            info = ExtractedFlightInfo(**data)
        except ValidationError as e:
            log_event("extraction_invalid", level="WARNING", error=str(e))
            return ExtractedFlightInfo()
        log_event("flight_info_extracted", fields=sorted(k for k, v in info.model_dump().items() if v))
        return info

    def _parse_legs(self, raw) -> Optional[List[FlightLeg]]:
        if not isinstance(raw, list) or not raw:
            return None
        legs = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            item = dict(item)
            for key in ("origin_code", "destination_code"):
                item[key] = str(item.get(key) or "").strip().upper()
            item["departure_date"] = to_iso_date(str(item.get("departure_date") or ""), self.tz)
            item["origin_name"] = item.get("origin_name") or item["origin_code"]
            item["destination_name"] = item.get("destination_name") or item["destination_code"]
            try:
                legs.append(FlightLeg(**item))
            except ValidationError as e:
                log_event("extraction_leg_dropped", level="WARNING", error=str(e))
        return legs or None
