from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

OTP_LENGTH = 6


class OtpFailure(str, Enum):
    NOT_FOUND = "not_found"
    STORAGE_ERROR = "storage_error"
    INVALID = "invalid"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class OtpResult:
    success: bool
    message: Optional[str] = None
    code: Optional[str] = None
    failure: Optional[OtpFailure] = None

    @classmethod
    def failed(cls, failure: OtpFailure, message: str) -> "OtpResult":
        return cls(success=False, message=message, failure=failure)


class OtpRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class OtpResponse(BaseModel):
    message: str
    expires_in_seconds: int
    otp: Optional[str] = None


class OtpVerifyRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    code: str = Field(min_length=OTP_LENGTH, max_length=OTP_LENGTH)


class OtpVerifyResponse(BaseModel):
    message: str
    verified: bool
