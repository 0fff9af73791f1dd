# app/api/routes/ussd.py
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import PlainTextResponse

from app.core.config import settings
from app.core.logging import bind_callback_context, get_logger, mask_phone
from app.schemas.ussd import UssdRequest, UssdTestRequest, UssdTestResponse
from app.services.backends import build_platform_services, build_session_store
from app.services.input_decoder import decode_tokens
from app.services.response_encoder import is_terminal
from app.services.ussd_service import UssdService
from app.utils.timeout_protection import CallbackTimer

router = APIRouter(prefix="/ussd", tags=["ussd"])

logger = get_logger(__name__)


def get_ussd_service(request: Request) -> UssdService:
    """The app-wide dispatcher; built on first use when startup hooks did not run (Lambda)."""
    service = getattr(request.app.state, "ussd_service", None)
    if service is None:
        service = UssdService(build_session_store(settings), build_platform_services(settings), settings)
        request.app.state.ussd_service = service
    return service


@router.post("/callback", response_class=PlainTextResponse)
async def ussd_callback(
    sessionId: str = Form(...),
    serviceCode: str = Form(...),
    phoneNumber: str = Form(...),
    text: Optional[str] = Form(None),
    networkCode: Optional[str] = Form(None),
    service: UssdService = Depends(get_ussd_service),
):
    """Gateway callback. Always answers 200 with a CON/END body."""
    bind_callback_context(session_id=sessionId[:8], phone=mask_phone(phoneNumber))
    payload = UssdRequest(
        session_id=sessionId,
        service_code=serviceCode,
        phone_number=phoneNumber,
        text=text,
        network_code=networkCode,
    )

    with CallbackTimer("ussd_callback", max_seconds=settings.SLOW_CALLBACK_THRESHOLD):
        response = await service.process(payload)

    logger.info("ussd_callback", tokens=len(decode_tokens(text or "")), terminal=is_terminal(response))
    return PlainTextResponse(response)


@router.post("/test", response_model=UssdTestResponse, response_model_by_alias=True)
async def ussd_test(body: UssdTestRequest, service: UssdService = Depends(get_ussd_service)):
    """Simulator endpoint for development; disabled unless USSD_TEST_ENDPOINT_ENABLED."""
    if not settings.USSD_TEST_ENDPOINT_ENABLED:
        raise HTTPException(status_code=404, detail="Not Found")

    session_id = body.session_id or f"test_{uuid.uuid4().hex[:12]}"
    payload = UssdRequest(
        session_id=session_id,
        service_code="*123#",
        phone_number=body.phone_number,
        text=body.text,
    )
    response = await service.process(payload)
    return UssdTestResponse(response=response, session_id=session_id, phone_number=body.phone_number)
