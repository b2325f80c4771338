"""Internal service answering biographic lookups by passport."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Optional, Tuple

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .models import PersonalInfo

logger = logging.getLogger("timetracker.userinfo")

DEMO_PEOPLE: Tuple[Tuple[int, int, PersonalInfo], ...] = (
    (1234, 567890, PersonalInfo("Vadimov", "Vadim", "Vadimovich", "г. Москва, ул. Ленина, д. 5, кв. 1")),
    (1111, 111111, PersonalInfo("Sergeev", "Sergey", "Sergeevich", "г. Москва, ул. Ленина, д. 5, кв. 1")),
    (1234, 565432, PersonalInfo("Ivanovov", "Ivan", "Ivanovich", "г. Москва, ул. Ленина, д. 5, кв. 1")),
)


class PersonalInfoResponse(BaseModel):
    surname: str
    name: str
    patronymic: str
    address: str


class PersonRegistry:
    """Thread-safe passport -> personal info mapping."""

    def __init__(self, people: Iterable[Tuple[int, int, PersonalInfo]] = ()) -> None:
        self._people: Dict[Tuple[int, int], PersonalInfo] = {}
        self._lock = threading.Lock()
        for serie, number, info in people:
            self.register(serie, number, info)

    def __len__(self) -> int:
        with self._lock:
            return len(self._people)

    def register(self, passport_serie: int, passport_number: int, info: PersonalInfo) -> None:
        with self._lock:
            self._people[(passport_serie, passport_number)] = info

    def lookup(self, passport_serie: int, passport_number: int) -> Optional[PersonalInfo]:
        with self._lock:
            return self._people.get((passport_serie, passport_number))


def create_app(*, registry: PersonRegistry | None = None) -> FastAPI:
    """Instantiate the user info application."""

    people = registry if registry is not None else PersonRegistry(DEMO_PEOPLE)

    app = FastAPI(
        title="Time Tracker User Info",
        version="0.1.0",
        description="Biographic data lookup by passport serie and number.",
    )
    app.state.registry = people

    @app.get("/healthz")
    def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/userinfo", response_model=PersonalInfoResponse)
    def read_user_info(
        passport_serie: int = Query(..., alias="passportSerie"),
        passport_number: int = Query(..., alias="passportNumber"),
    ) -> PersonalInfoResponse:
        info = people.lookup(passport_serie, passport_number)
        if info is None:
            logger.info("No person registered for passport %s %s", passport_serie, passport_number)
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No person registered with the given passport",
            )
        return PersonalInfoResponse(
            surname=info.surname,
            name=info.name,
            patronymic=info.patronymic,
            address=info.address,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Missing or invalid passportSerie or passportNumber"},
        )

    return app


__all__ = ["DEMO_PEOPLE", "PersonRegistry", "PersonalInfoResponse", "create_app"]
