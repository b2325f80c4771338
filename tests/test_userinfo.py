from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from timetracker.errors import NotFoundError, UpstreamError
from timetracker.models import PersonalInfo
from timetracker.userinfo import DEMO_PEOPLE, PersonRegistry, create_app
from timetracker.userinfo_client import UserInfoClient


def test_demo_registry_answers_known_passport() -> None:
    app = create_app()

    with TestClient(app) as client:
        response = client.get("/userinfo", params={"passportSerie": 1234, "passportNumber": 567890})

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["surname"] == "Vadimov"
    assert payload["name"] == "Vadim"
    assert payload["patronymic"] == "Vadimovich"
    assert set(payload) == {"surname", "name", "patronymic", "address"}


def test_demo_registry_is_keyed_by_both_passport_parts() -> None:
    registry = PersonRegistry(DEMO_PEOPLE)

    assert len(registry) == 3
    vadim = registry.lookup(1234, 567890)
    ivan = registry.lookup(1234, 565432)
    assert vadim is not None and vadim.name == "Vadim"
    assert ivan is not None and ivan.name == "Ivan"
    assert registry.lookup(1111, 567890) is None


def test_unknown_passport_is_404() -> None:
    with TestClient(create_app(registry=PersonRegistry())) as client:
        response = client.get("/userinfo", params={"passportSerie": 1, "passportNumber": 2})

    assert response.status_code == 404
    assert response.json() == {"detail": "No person registered with the given passport"}


@pytest.mark.parametrize(
    "params",
    [
        {},
        {"passportSerie": 1234},
        {"passportSerie": "abc", "passportNumber": 567890},
    ],
)
def test_missing_or_invalid_parameters_are_400(params) -> None:
    with TestClient(create_app()) as client:
        response = client.get("/userinfo", params=params)

    assert response.status_code == 400
    assert "passportSerie" in response.json()["detail"]


def test_healthcheck() -> None:
    with TestClient(create_app()) as client:
        response = client.get("/healthz")
    assert response.json() == {"status": "ok"}


def _client(handler) -> UserInfoClient:
    return UserInfoClient("http://userinfo.internal/", transport=httpx.MockTransport(handler))


def test_client_returns_personal_info() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={"surname": "Sergeev", "name": "Sergey", "patronymic": "Sergeevich", "address": "Moscow"},
        )

    client = _client(handler)
    info = client.lookup(1111, 111111)

    assert client.base_url == "http://userinfo.internal"
    assert seen == {"path": "/userinfo", "params": {"passportSerie": "1111", "passportNumber": "111111"}}
    assert info == PersonalInfo("Sergeev", "Sergey", "Sergeevich", "Moscow")


def test_client_maps_404_to_not_found() -> None:
    client = _client(lambda request: httpx.Response(404, json={"detail": "nope"}))
    with pytest.raises(NotFoundError):
        client.lookup(1, 2)


def test_client_reports_service_errors() -> None:
    client = _client(lambda request: httpx.Response(500, json={"detail": "registry offline"}))
    with pytest.raises(UpstreamError, match="registry offline"):
        client.lookup(1, 2)


def test_client_rejects_incomplete_payload() -> None:
    client = _client(lambda request: httpx.Response(200, json={"surname": "Only"}))
    with pytest.raises(UpstreamError):
        client.lookup(1, 2)


def test_client_wraps_transport_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError, match="Failed to contact"):
        _client(handler).lookup(1, 2)


def test_client_requires_base_url() -> None:
    with pytest.raises(ValueError):
        UserInfoClient("  ")
