from __future__ import annotations

from types import SimpleNamespace

from fastapi.testclient import TestClient

from app.api.routes import internal_loyalty, internal_streaks
from app.main import app


def test_internal_loyalty_rejects_missing_token(monkeypatch) -> None:
    monkeypatch.setattr(
        internal_loyalty,
        "get_settings",
        lambda: SimpleNamespace(
            internal_api_token="internal-secret",
            internal_api_allowlist="127.0.0.1/32",
        ),
    )

    client = TestClient(app)
    response = client.post(
        "/internal/loyalty/claim",
        json={"user_id": 1, "owner_id": 1, "code": "WELCOME10"},
    )

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_loyalty_rejects_disallowed_ip(monkeypatch) -> None:
    monkeypatch.setattr(
        internal_loyalty,
        "get_settings",
        lambda: SimpleNamespace(
            internal_api_token="internal-secret",
            internal_api_allowlist="192.168.0.0/16",
        ),
    )

    client = TestClient(app)
    response = client.get(
        "/internal/loyalty/points",
        params={"user_id": 1, "owner_id": 1},
        headers={
            "X-Internal-Token": "internal-secret",
            "X-Forwarded-For": "10.0.0.25",
        },
    )

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_streaks_rejects_wrong_bearer_token(monkeypatch) -> None:
    monkeypatch.setattr(
        internal_streaks,
        "get_settings",
        lambda: SimpleNamespace(
            internal_api_token="internal-secret",
            internal_api_allowlist="0.0.0.0/0",
        ),
    )

    client = TestClient(app)
    response = client.post(
        "/internal/streaks/check-in",
        json={"user_id": 1, "owner_id": 1},
        headers={"Authorization": "Bearer wrong"},
    )

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}
