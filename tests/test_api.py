from dataclasses import replace

import httpx
import pytest
from fastapi.testclient import TestClient

from taskhub.main import create_app
from taskhub.services.email import EmailSendError

SLACK_URL = "https://hooks.slack.test/services/T000/B000/XXX"
TEAMS_URL = "https://outlook.office.test/webhook/abc"


class WebhookRecorder:
    def __init__(self) -> None:
        self.requests = []
        self.failing = set()

    def __call__(self, request):
        self.requests.append(str(request.url))
        if str(request.url) in self.failing:
            return httpx.Response(500)
        return httpx.Response(200)


@pytest.fixture
def webhooks():
    return WebhookRecorder()


@pytest.fixture
def make_client(database, alice, webhooks):
    def _make(settings):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(webhooks))
        app = create_app(settings, database=database, http_client=http_client)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client, app_settings):
    with make_client(app_settings) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_request_otp_for_unknown_user(client):
    response = client.post("/api/auth/otp/request", json={"email": "nobody@example.com"})

    assert response.status_code == 404
    assert response.json()["detail"] == "User not found"


def test_request_and_verify_otp(client):
    response = client.post("/api/auth/otp/request", json={"email": "alice@example.com"})
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "OTP sent"
    assert body["expires_in_seconds"] == 300
    code = body["otp"]

    verified = client.post(
        "/api/auth/otp/verify", json={"email": "alice@example.com", "code": code}
    )
    assert verified.status_code == 200
    assert verified.json() == {"message": "OTP verified", "verified": True}

    replay = client.post(
        "/api/auth/otp/verify", json={"email": "alice@example.com", "code": code}
    )
    assert replay.status_code == 400
    assert replay.json()["detail"] == "OTP already used"


def test_verify_wrong_code_reports_remaining_attempts(client):
    code = client.post(
        "/api/auth/otp/request", json={"email": "alice@example.com"}
    ).json()["otp"]
    wrong = "111111" if code != "111111" else "222222"

    response = client.post(
        "/api/auth/otp/verify", json={"email": "alice@example.com", "code": wrong}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid code. 2 attempts remaining"


def test_verify_rejects_malformed_code(client):
    response = client.post(
        "/api/auth/otp/verify", json={"email": "alice@example.com", "code": "12"}
    )

    assert response.status_code == 422


def test_request_otp_mails_code_when_smtp_configured(
    make_client, app_settings, monkeypatch
):
    sent = []
    monkeypatch.setattr(
        "taskhub.routers.auth.send_otp_email",
        lambda settings, to_email, code: sent.append((to_email, code)),
    )
    settings = replace(
        app_settings,
        otp_debug=False,
        smtp_host="smtp.example.com",
        otp_email_sender="noreply@example.com",
    )

    with make_client(settings) as client:
        response = client.post(
            "/api/auth/otp/request", json={"email": "Alice@Example.com"}
        )

    assert response.status_code == 200
    assert "otp" not in response.json()
    assert len(sent) == 1
    assert sent[0][0] == "alice@example.com"
    assert len(sent[0][1]) == 6


def test_request_otp_mail_failure_is_bad_gateway(make_client, app_settings, monkeypatch):
    def failing_send(settings, to_email, code):
        raise EmailSendError("Failed to send OTP email")

    monkeypatch.setattr("taskhub.routers.auth.send_otp_email", failing_send)

    with make_client(replace(app_settings, otp_debug=False)) as client:
        response = client.post(
            "/api/auth/otp/request", json={"email": "alice@example.com"}
        )

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to send OTP email"


def test_configure_integration(client):
    response = client.put(
        "/api/projects/proj-1/integrations/slack",
        json={"webhook_url": SLACK_URL, "enabled": True},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["project_id"] == "proj-1"
    assert body["type"] == "slack"
    assert body["enabled"] is True


def test_configure_integration_rejects_unknown_type(client):
    response = client.put(
        "/api/projects/proj-1/integrations/discord",
        json={"webhook_url": SLACK_URL, "enabled": True},
    )

    assert response.status_code == 422


def test_send_notification(client, webhooks):
    client.put(
        "/api/projects/proj-1/integrations/slack",
        json={"webhook_url": SLACK_URL, "enabled": True},
    )
    client.put(
        "/api/projects/proj-1/integrations/teams",
        json={"webhook_url": TEAMS_URL, "enabled": True},
    )

    response = client.post(
        "/api/projects/proj-1/notifications",
        json={"title": "Phase started", "message": "Design phase started"},
    )

    assert response.status_code == 202
    assert response.json() == {"message": "Notification sent"}
    assert sorted(webhooks.requests) == sorted([SLACK_URL, TEAMS_URL])


def test_send_notification_delivery_failure(client, webhooks):
    client.put(
        "/api/projects/proj-1/integrations/slack",
        json={"webhook_url": SLACK_URL, "enabled": True},
    )
    client.put(
        "/api/projects/proj-1/integrations/teams",
        json={"webhook_url": TEAMS_URL, "enabled": True},
    )
    webhooks.failing.add(TEAMS_URL)

    response = client.post(
        "/api/projects/proj-1/notifications",
        json={
            "title": "Task overdue",
            "message": "Ship v2 is overdue",
            "type": "error",
            "fields": {"Project": "Apollo"},
        },
    )

    assert response.status_code == 502
    assert "teams" in response.json()["detail"]
    assert sorted(webhooks.requests) == sorted([SLACK_URL, TEAMS_URL])
