from fastapi import Request

from taskhub.config import Settings
from taskhub.services.integrations import IntegrationStore, NotificationDispatcher
from taskhub.services.otp import OtpService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_otp_service(request: Request) -> OtpService:
    return request.app.state.otp_service


def get_integration_store(request: Request) -> IntegrationStore:
    return request.app.state.integration_store


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher
