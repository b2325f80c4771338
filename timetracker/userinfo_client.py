"""HTTP client for the internal user info service."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .errors import NotFoundError, UpstreamError
from .models import PersonalInfo

logger = logging.getLogger("timetracker.userinfo_client")

_REQUIRED_FIELDS = ("surname", "name", "patronymic", "address")


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("User info base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return default


class UserInfoClient:
    """Look up biographic data by passport serie and number."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    def lookup(self, passport_serie: int, passport_number: int) -> PersonalInfo:
        url = f"{self._base_url}/userinfo"
        params = {"passportSerie": passport_serie, "passportNumber": passport_number}

        logger.debug("Requesting user info from %s", url)
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.error("Failed to contact user info service at %s: %s", url, exc)
            raise UpstreamError(f"Failed to contact user info service: {exc}") from exc

        if response.status_code == 404:
            raise NotFoundError(
                f"No person registered with passport {passport_serie} {passport_number}"
            )

        if response.status_code != 200:
            try:
                parsed = response.json()
            except ValueError:
                parsed = None
            message = _extract_error_message(
                parsed,
                f"User info service responded with status {response.status_code}",
            )
            logger.error("User info lookup failed: %s", message)
            raise UpstreamError(message)

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("User info service returned an invalid response") from exc

        if not isinstance(data, dict) or any(
            not isinstance(data.get(field), str) for field in _REQUIRED_FIELDS
        ):
            raise UpstreamError("User info service response was missing required fields")

        return PersonalInfo(
            surname=data["surname"],
            name=data["name"],
            patronymic=data["patronymic"],
            address=data["address"],
        )


__all__ = ["UserInfoClient"]
