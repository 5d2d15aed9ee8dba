from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy import select

from taskhub.database import Database
from taskhub.models.integration import IntegrationSettingEntry
from taskhub.schemas.integrations import NotificationPayload

LOGGER = logging.getLogger(__name__)

THEME_COLORS = {
    "success": "2EB67D",
    "warning": "FFA500",
    "error": "FF0000",
}
DEFAULT_THEME_COLOR = "0076D7"

JSON_HEADERS = {"Content-Type": "application/json"}


class DeliveryFailure(RuntimeError):
    def __init__(self, destination: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.destination = destination
        self.status_code = status_code


class IntegrationStore:
    def __init__(self, database: Database) -> None:
        self._database = database

    def list_enabled(self, project_id: str) -> list[IntegrationSettingEntry]:
        with self._database.session_scope() as session:
            result = session.execute(
                select(IntegrationSettingEntry)
                .where(
                    IntegrationSettingEntry.project_id == project_id,
                    IntegrationSettingEntry.enabled.is_(True),
                )
                .order_by(IntegrationSettingEntry.type)
            )
            return list(result.scalars().all())

    def upsert(
        self, project_id: str, integration_type: str, webhook_url: str, enabled: bool
    ) -> IntegrationSettingEntry:
        now = datetime.now(timezone.utc)
        with self._database.session_scope() as session:
            entry = session.execute(
                select(IntegrationSettingEntry).where(
                    IntegrationSettingEntry.project_id == project_id,
                    IntegrationSettingEntry.type == integration_type,
                )
            ).scalar_one_or_none()
            if entry is None:
                entry = IntegrationSettingEntry(
                    project_id=project_id,
                    type=integration_type,
                    created_at=now,
                )
                session.add(entry)
            entry.webhook_url = webhook_url
            entry.enabled = enabled
            entry.updated_at = now
            session.flush()
            return entry


def format_slack_message(payload: NotificationPayload) -> dict[str, Any]:
    blocks: list[dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": payload.title}},
        {"type": "section", "text": {"type": "mrkdwn", "text": payload.message}},
    ]
    if payload.fields:
        blocks.append(
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*{key}:*\n{value}"}
                    for key, value in payload.fields.items()
                ],
            }
        )
    return {"blocks": blocks}


def format_teams_card(payload: NotificationPayload) -> dict[str, Any]:
    sections = []
    if payload.fields:
        sections.append(
            {
                "facts": [
                    {"name": key, "value": value}
                    for key, value in payload.fields.items()
                ]
            }
        )
    return {
        "@type": "MessageCard",
        "@context": "http://schema.org/extensions",
        "themeColor": THEME_COLORS.get(payload.type or "", DEFAULT_THEME_COLOR),
        "title": payload.title,
        "text": payload.message,
        "sections": sections,
    }


async def _post_json(
    client: httpx.AsyncClient, destination: str, webhook_url: str, body: dict[str, Any]
) -> None:
    try:
        response = await client.post(webhook_url, json=body, headers=JSON_HEADERS)
    except httpx.HTTPError as exc:
        raise DeliveryFailure(
            destination, f"Failed to reach {destination} webhook"
        ) from exc
    if not response.is_success:
        raise DeliveryFailure(
            destination,
            f"Failed to send {destination} notification (status {response.status_code})",
            status_code=response.status_code,
        )


async def send_to_slack(
    client: httpx.AsyncClient, webhook_url: str, payload: NotificationPayload
) -> None:
    await _post_json(client, "slack", webhook_url, format_slack_message(payload))


async def send_to_teams(
    client: httpx.AsyncClient, webhook_url: str, payload: NotificationPayload
) -> None:
    await _post_json(client, "teams", webhook_url, format_teams_card(payload))


class NotificationDispatcher:
    """Fans a project notification out to every enabled chat webhook.

    Deliveries run concurrently and are all awaited before any failure is
    reported, so one failing destination never prevents the others from
    being attempted. Nothing is retried.
    """

    def __init__(self, store: IntegrationStore, client: httpx.AsyncClient) -> None:
        self._store = store
        self._client = client

    async def notify(self, project_id: str, payload: NotificationPayload) -> None:
        try:
            settings = await asyncio.to_thread(self._store.list_enabled, project_id)
            results = await asyncio.gather(
                *(self._dispatch(setting, payload) for setting in settings),
                return_exceptions=True,
            )
            failures = [result for result in results if isinstance(result, Exception)]
            for failure in failures:
                LOGGER.warning("Integration delivery failed project_id=%s: %s", project_id, failure)
            if failures:
                raise failures[0]
        except Exception:
            LOGGER.exception(
                "Failed to send integration notification project_id=%s", project_id
            )
            raise
        LOGGER.info(
            "Integration notification sent project_id=%s destinations=%s",
            project_id,
            len(settings),
        )

    async def _dispatch(
        self, setting: IntegrationSettingEntry, payload: NotificationPayload
    ) -> None:
        if setting.type == "slack":
            await send_to_slack(self._client, setting.webhook_url, payload)
        elif setting.type == "teams":
            await send_to_teams(self._client, setting.webhook_url, payload)
        else:
            LOGGER.warning(
                "Skipping integration %s with unknown type=%s", setting.id, setting.type
            )
