from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from pydantic import BaseModel

from flightlink.config import settings
from flightlink.booking.codec import BookingLinkCodec
from flightlink.booking.formats import CHAT_UTM, BookingLinkFormat, UTMParams
from flightlink.conversation.turns import TurnProcessor
from flightlink.errors import (
    ConversationClosedError,
    ConversationNotFoundError,
    SpecValidationError,
    UnsupportedDecodeError,
)
from flightlink.obs.logger import log_event
from flightlink.obs.middleware import ObservabilityMiddleware
from flightlink.search.completeness import completion_percentage, is_complete, missing_fields
from flightlink.types import SpecificationUpdate, TripSpecification

load_dotenv()


def build_turn_processor() -> TurnProcessor:
    """Wire the default store and extractor from settings."""
    from flightlink.session.store import SessionStore

    if settings.REDIS_URL:
        from flightlink.session.redis_store import RedisSessionStore
        store = RedisSessionStore()
    else:
        store = SessionStore(ttl_seconds=settings.REDIS_TTL_SECONDS)

    from langchain_openai import ChatOpenAI
    from flightlink.llm.extract_flight_info import FlightInfoExtractor
    llm = ChatOpenAI(model=settings.OPENAI_MODEL, temperature=0, api_key=settings.OPENAI_API_KEY)
    return TurnProcessor(store=store, extractor=FlightInfoExtractor(llm, tz=settings.TZ))


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_event("startup", service="flightlink", env=settings.APP_ENV)
    if not hasattr(app.state, "turns"):
        app.state.turns = build_turn_processor()
    app.state.codec = app.state.turns.codec
    yield
    log_event("shutdown", service="flightlink")


api = FastAPI(
    title="Flightlink",
    version="1.0.0",
    lifespan=lifespan,
)


def _turns(request: Request) -> TurnProcessor:
    turns = getattr(request.app.state, "turns", None)
    if turns is None:
        raise HTTPException(status_code=503, detail="Conversation service not initialised")
    return turns


def _codec(request: Request) -> BookingLinkCodec:
    codec = getattr(request.app.state, "codec", None)
    if codec is None:
        codec = request.app.state.codec = BookingLinkCodec()
    return codec


# Request bodies
class StartConversationRequest(BaseModel):
    user_id: str
    initial_query: Optional[str] = None


class SendMessageRequest(BaseModel):
    message: str
    user_location: Optional[str] = None


class EncodeLinkRequest(BaseModel):
    specification: TripSpecification
    format: BookingLinkFormat = BookingLinkFormat.BOOKING
    utm: Optional[UTMParams] = None


class ParseLinkRequest(BaseModel):
    url: str
    format: BookingLinkFormat = BookingLinkFormat.BOOKING


# Error mapping
@api.exception_handler(SpecValidationError)
async def validation_failed(request: Request, exc: SpecValidationError):
    return JSONResponse(exc.to_dict(), status_code=422)


@api.exception_handler(ConversationNotFoundError)
async def conversation_not_found(request: Request, exc: ConversationNotFoundError):
    return JSONResponse({"error": str(exc)}, status_code=404)


@api.exception_handler(ConversationClosedError)
async def conversation_closed(request: Request, exc: ConversationClosedError):
    return JSONResponse({"error": "Conversation is no longer active", "status": exc.status}, status_code=400)


@api.exception_handler(UnsupportedDecodeError)
async def unsupported_decode(request: Request, exc: UnsupportedDecodeError):
    return JSONResponse({"error": str(exc), "format": exc.format}, status_code=400)


@api.get("/health")
async def health():
    return {"status": "healthy", "service": "flightlink"}


@api.get("/metrics")
async def metrics():
    from flightlink.obs.metrics import get_metrics_snapshot
    return get_metrics_snapshot()


@api.post("/conversations", status_code=201)
def start_conversation(request: Request, body: StartConversationRequest):
    turns = _turns(request)
    conversation = turns.start_conversation(body.user_id, body.initial_query)
    spec = turns.store.get_specification(conversation.id)
    return {"conversation": conversation.model_dump(mode="json"), "specification": spec.model_dump(mode="json")}


@api.post("/conversations/{conversation_id}/messages")
def send_message(request: Request, conversation_id: str, body: SendMessageRequest):
    if not body.message.strip():
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    result = _turns(request).handle_message(conversation_id, body.message, location=body.user_location)
    return result.model_dump(mode="json")


@api.get("/conversations/{conversation_id}/messages")
def get_messages(request: Request, conversation_id: str):
    store = _turns(request).store
    if store.get_conversation(conversation_id) is None:
        raise ConversationNotFoundError(conversation_id)
    messages = store.get_messages(conversation_id)
    return {"conversation_id": conversation_id, "messages": messages, "total": len(messages)}


def _parameters_payload(codec: BookingLinkCodec, conversation_id: str, spec: TripSpecification) -> dict:
    # The stored flag is a cache; report the recomputed value
    complete = is_complete(spec)
    spec = spec.model_copy(update={"is_complete": complete})
    return {
        "conversation_id": conversation_id,
        "specification": spec.model_dump(mode="json"),
        "is_complete": complete,
        "missing_fields": missing_fields(spec),
        "completion_percentage": completion_percentage(spec),
        "booking_url": codec.build_booking_url(spec, CHAT_UTM) if complete else None,
        "shareable_url": codec.build_shareable_url(spec) if complete else None,
    }


@api.get("/conversations/{conversation_id}/parameters")
def get_parameters(request: Request, conversation_id: str):
    spec = _turns(request).store.get_specification(conversation_id)
    if spec is None:
        raise ConversationNotFoundError(conversation_id)
    return _parameters_payload(_codec(request), conversation_id, spec)


@api.put("/conversations/{conversation_id}/parameters")
def update_parameters(request: Request, conversation_id: str, body: SpecificationUpdate):
    turns = _turns(request)
    result = turns.update_parameters(conversation_id, body)
    payload = _parameters_payload(turns.codec, conversation_id, result.specification)
    payload["conversation"] = result.conversation.model_dump(mode="json")
    return payload


@api.post("/conversations/{conversation_id}/abandon")
def abandon_conversation(request: Request, conversation_id: str):
    conversation = _turns(request).abandon(conversation_id)
    return conversation.model_dump(mode="json")


@api.post("/links/encode")
def encode_link(request: Request, body: EncodeLinkRequest):
    url = _codec(request).encode(body.specification, body.format, body.utm)
    return {"url": url, "format": body.format.value}


@api.post("/links/parse")
def parse_link(request: Request, body: ParseLinkRequest):
    info = _codec(request).decode(body.url, body.format)
    return {"specification": info.model_dump(mode="json", exclude_none=True), "empty": info.is_empty()}


# Apply middleware
app = ObservabilityMiddleware(api)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
        log_level="info"
    )
