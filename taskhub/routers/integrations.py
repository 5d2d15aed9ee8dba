from fastapi import APIRouter, Depends, HTTPException, status

from taskhub.dependencies import get_dispatcher, get_integration_store
from taskhub.schemas.integrations import (
    IntegrationSettingResponse,
    IntegrationSettingUpdate,
    IntegrationType,
    NotificationPayload,
    NotificationResponse,
)
from taskhub.services.integrations import (
    DeliveryFailure,
    IntegrationStore,
    NotificationDispatcher,
)

router = APIRouter(prefix="/projects", tags=["integrations"])


@router.put(
    "/{project_id}/integrations/{integration_type}",
    response_model=IntegrationSettingResponse,
)
def update_integration(
    project_id: str,
    integration_type: IntegrationType,
    payload: IntegrationSettingUpdate,
    store: IntegrationStore = Depends(get_integration_store),
) -> IntegrationSettingResponse:
    entry = store.upsert(
        project_id, integration_type.value, payload.webhook_url, payload.enabled
    )
    return IntegrationSettingResponse.model_validate(entry, from_attributes=True)


@router.post(
    "/{project_id}/notifications",
    response_model=NotificationResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def send_notification(
    project_id: str,
    payload: NotificationPayload,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotificationResponse:
    try:
        await dispatcher.notify(project_id, payload)
    except DeliveryFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    return NotificationResponse(message="Notification sent")
