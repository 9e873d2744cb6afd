import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from broker_bridge.config import settings
from broker_bridge.dependencies import get_dispatcher
from broker_bridge.logging_config import get_logger
from broker_bridge.schemas.line import LineWebhookRequest
from broker_bridge.services.dispatch_service import EventDispatcher
from broker_bridge.services.line_service import verify_signature
from broker_bridge.services.result import ErrorCode

logger = get_logger("webhook")

router = APIRouter()


@router.post("/webhook")
async def handle_line_webhook(request: Request, dispatcher: EventDispatcher = Depends(get_dispatcher)):
    """
    Receive a batch of LINE events:
    - every event is handled concurrently and independently
    - the response lists one result per event, in request order
    """
    try:
        raw = await request.body()

        if settings.line_verify_signature:
            signature = request.headers.get("X-Line-Signature")
            if not verify_signature(raw, signature, settings.line_channel_secret):
                logger.warning("Rejected webhook with invalid signature")
                return JSONResponse(status_code=401, content={"detail": "Invalid signature."})

        try:
            payload = LineWebhookRequest.model_validate_json(raw)
        except ValidationError as e:
            logger.error(
                f"Malformed webhook body: {e.error_count()} errors",
                extra={"context": {"error_code": ErrorCode.VALIDATION}},
            )
            payload = None

        if payload is None or not payload.events:
            logger.error("No events found in the request.")
            return JSONResponse(status_code=400, content={"detail": "No events found in request."})

        results = await asyncio.gather(*(dispatcher.dispatch(event) for event in payload.events))
        return JSONResponse(content=list(results))

    except Exception as e:
        logger.error(f"Error in webhook: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error."})
