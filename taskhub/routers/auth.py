from fastapi import APIRouter, Depends, HTTPException, status

from taskhub.config import Settings
from taskhub.dependencies import get_otp_service, get_settings
from taskhub.schemas.otp import (
    OtpFailure,
    OtpRequest,
    OtpResponse,
    OtpResult,
    OtpVerifyRequest,
    OtpVerifyResponse,
)
from taskhub.services.email import EmailSendError, send_otp_email, smtp_configured
from taskhub.services.otp import OtpService
from taskhub.services.users import normalize_email

router = APIRouter(prefix="/auth", tags=["auth"])


def _raise_for_failure(result: OtpResult) -> None:
    if result.failure == OtpFailure.NOT_FOUND:
        status_code = status.HTTP_404_NOT_FOUND
    elif result.failure == OtpFailure.STORAGE_ERROR:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=status_code, detail=result.message)


@router.post("/otp/request", response_model=OtpResponse, response_model_exclude_none=True)
def request_otp(
    payload: OtpRequest,
    otp_service: OtpService = Depends(get_otp_service),
    settings: Settings = Depends(get_settings),
) -> OtpResponse:
    result = otp_service.issue(payload.email)
    if not result.success:
        _raise_for_failure(result)
    # Debug mode without SMTP hands the code back in the response only.
    if smtp_configured(settings) or not settings.otp_debug:
        try:
            send_otp_email(settings, normalize_email(payload.email), result.code)
        except EmailSendError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=str(exc),
            ) from exc
    return OtpResponse(
        message="OTP sent",
        expires_in_seconds=otp_service.ttl_seconds,
        otp=result.code if settings.otp_debug else None,
    )


@router.post("/otp/verify", response_model=OtpVerifyResponse)
def verify_otp(
    payload: OtpVerifyRequest,
    otp_service: OtpService = Depends(get_otp_service),
) -> OtpVerifyResponse:
    result = otp_service.verify(payload.email, payload.code)
    if not result.success:
        _raise_for_failure(result)
    return OtpVerifyResponse(message="OTP verified", verified=True)
