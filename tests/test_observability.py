import json
import logging

import pydantic
import pytest
from fastapi.testclient import TestClient

from startronics.infra.logging import RedactingJsonFormatter, clear_log_context, update_log_context
from startronics.infra.metrics import Metrics, configure_metrics
from startronics.main import create_app
from startronics.settings import Settings, settings

SETTINGS_KWARGS = {
    "supabase_url": "https://example.supabase.co/",
    "supabase_anon_key": "a" * 24,
    "supabase_service_role_key": "s" * 24,
    "jwt_secret": "j" * 40,
}


def _format(message: str, **extra) -> dict:
    record = logging.LogRecord("startronics.test", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(RedactingJsonFormatter().format(record))


def test_formatter_redacts_card_numbers_and_contacts():
    payload = _format(
        "card 4111 1111 1111 1111 paid by asha@example.com",
        extra={"upi_id": "asha@okbank", "note": "pay to asha@okbank", "cvv": "123"},
    )
    assert "4111" not in payload["message"]
    assert "[REDACTED_CARD]" in payload["message"]
    assert "[REDACTED_EMAIL]" in payload["message"]
    assert payload["upi_id"] == "[REDACTED]"
    assert payload["cvv"] == "[REDACTED]"
    assert payload["note"] == "pay to [REDACTED_UPI]"


def test_formatter_includes_request_context():
    update_log_context(request_id="req-1", path="/v1/me/cards", token="secret-token")
    try:
        payload = _format("request")
    finally:
        clear_log_context()
    assert payload["request_id"] == "req-1"
    assert payload["path"] == "/v1/me/cards"
    assert payload["token"] == "[REDACTED]"


def test_settings_normalize_values():
    configured = Settings(_env_file=None, default_currency=" inr ", cors_origins="http://a.test, http://b.test", **SETTINGS_KWARGS)
    assert configured.supabase_url == "https://example.supabase.co"
    assert configured.auth_issuer == "https://example.supabase.co/auth/v1"
    assert configured.default_currency == "INR"
    assert configured.cors_origins == ["http://a.test", "http://b.test"]


@pytest.mark.parametrize(
    "override",
    [
        {"jwt_secret": "too-short"},
        {"supabase_url": "not-a-url"},
        {"supabase_anon_key": "short"},
        {"supabase_service_role_key": "short"},
    ],
)
def test_settings_reject_invalid_values(override):
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, **{**SETTINGS_KWARGS, **override})


@pytest.fixture()
def metrics_app():
    app_settings = settings.model_copy(update={"metrics_enabled": True})
    app = create_app(app_settings)
    app.state.metrics = Metrics(enabled=True)
    try:
        yield app
    finally:
        configure_metrics(False)


def test_metrics_endpoint_renders_prometheus_text(metrics_app):
    metrics = metrics_app.state.metrics
    metrics.record_transition("repair_request", "claim", "conflict")
    client = TestClient(metrics_app)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert (
        metrics.registry.get_sample_value(
            "lifecycle_transitions_total",
            {"entity": "repair_request", "action": "claim", "outcome": "conflict"},
        )
        == 1.0
    )
    lines = [line for line in response.text.splitlines() if line.startswith("lifecycle_transitions_total{")]
    assert len(lines) == 1
    for label in ('entity="repair_request"', 'action="claim"', 'outcome="conflict"'):
        assert label in lines[0]
    assert lines[0].endswith(" 1.0")


def test_metrics_route_absent_when_disabled(client):
    assert client.get("/metrics").status_code == 404


def test_unknown_route_is_problem_json(client):
    response = client.get("/v1/nothing-here")
    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["request_id"]
