"""HTTP API for enrolling users and timing their tasks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .cache import TrackerCache
from .config import load_config
from .database import Database, resolve_database_path
from .errors import InvalidInputError, NotFoundError, StorageError, UpstreamError
from .models import Task, TaskInstance, UserProfile
from .summary import parse_report_date, summarize
from .timers import TaskTimer
from .userinfo_client import UserInfoClient
from .users import IdentityLookup, UserService

logger = logging.getLogger("timetracker.service")


class EnrollRequest(BaseModel):
    passport_number: str = Field(..., alias="passportNumber", min_length=3, max_length=32)

    model_config = {"populate_by_name": True}


class EnrollResponse(BaseModel):
    id: int


class UserProfileResponse(BaseModel):
    id: int
    passport_serie: int
    passport_number: int
    surname: str
    name: str
    patronymic: str
    address: str


class UpdateUserRequest(BaseModel):
    passport_serie: Optional[int] = Field(default=None, ge=0)
    passport_number: Optional[int] = Field(default=None, ge=0)
    surname: Optional[str] = Field(default=None, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    patronymic: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = Field(default=None, max_length=1024)


class TaskTimerRequest(BaseModel):
    user_id: int = Field(..., ge=1)
    task_id: int = Field(..., ge=1)


class TaskInstanceResponse(BaseModel):
    user_id: int
    task_id: int
    task_name: str
    start_time: datetime
    end_time: Optional[datetime]
    total_minutes: int


class CreateTaskRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class TaskResponse(BaseModel):
    id: int
    name: str


def profile_to_response(profile: UserProfile) -> UserProfileResponse:
    return UserProfileResponse(
        id=profile.id,
        passport_serie=profile.passport_serie,
        passport_number=profile.passport_number,
        surname=profile.surname,
        name=profile.name,
        patronymic=profile.patronymic,
        address=profile.address,
    )


def instance_to_response(instance: TaskInstance) -> TaskInstanceResponse:
    return TaskInstanceResponse(
        user_id=instance.user_id,
        task_id=instance.task_id,
        task_name=instance.task_name,
        start_time=instance.start_time,
        end_time=instance.end_time,
        total_minutes=instance.total_minutes,
    )


def task_to_response(task: Task) -> TaskResponse:
    return TaskResponse(id=task.id, name=task.name)


def warm_cache(database: Database) -> TrackerCache:
    """Build a cache and fill it from ``database``."""

    cache = TrackerCache()
    cache.initialize()
    cache.load_all(database)
    return cache


def create_app(
    *,
    database: Database | None = None,
    cache: TrackerCache | None = None,
    identity: IdentityLookup | None = None,
    timer: TaskTimer | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the time tracker.

    When no cache is supplied one is built and warmed from the database
    before the application is returned, so the listener never serves a cold
    cache. A missing database or identity lookup is built from
    :func:`~timetracker.config.load_config`.
    """

    config = load_config() if database is None or identity is None else None
    db = database or Database(config.database.path or resolve_database_path(None))
    db.initialize()

    app_cache = cache if cache is not None else warm_cache(db)
    lookup = identity or UserInfoClient(config.user_info.base_url, timeout=config.user_info.timeout)
    task_timer = timer or TaskTimer(db, app_cache)
    users = UserService(db, app_cache, lookup)

    app = FastAPI(
        title="Time Tracker API",
        version="0.1.0",
        description="Task timers and work summaries per user.",
    )
    app.state.database = db
    app.state.cache = app_cache
    app.state.timer = task_timer
    app.state.users = users

    @app.get("/healthz")
    def healthcheck() -> Dict[str, object]:
        return {"status": "ok", "cached_users": len(app_cache)}

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    @app.post("/users", status_code=status.HTTP_201_CREATED, response_model=EnrollResponse)
    def enroll_user(request: EnrollRequest) -> EnrollResponse:
        user = users.enroll(request.passport_number)
        return EnrollResponse(id=user.id)

    @app.get("/users", response_model=List[UserProfileResponse])
    def search_users(
        passport_serie: Optional[int] = None,
        passport_number: Optional[int] = None,
        surname: Optional[str] = None,
        name: Optional[str] = None,
        patronymic: Optional[str] = None,
        address: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ) -> List[UserProfileResponse]:
        filters = {
            "passport_serie": passport_serie,
            "passport_number": passport_number,
            "surname": surname,
            "name": name,
            "patronymic": patronymic,
            "address": address,
        }
        profiles = users.search(filters, page=page, limit=limit)
        logger.debug("User search returned %d row(s)", len(profiles))
        return [profile_to_response(profile) for profile in profiles]

    @app.get("/users/{user_id}", response_model=UserProfileResponse)
    def read_user(user_id: int) -> UserProfileResponse:
        profile = users.get(user_id)
        if profile is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return profile_to_response(profile)

    @app.put("/users/{user_id}", response_model=UserProfileResponse)
    def update_user(user_id: int, request: UpdateUserRequest) -> UserProfileResponse:
        updated = users.update_profile(user_id, request.model_dump(exclude_none=True))
        return profile_to_response(updated)

    @app.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_user(user_id: int) -> Response:
        users.delete(user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/users/{user_id}/tasks", response_model=List[TaskInstanceResponse])
    def read_user_tasks(user_id: int) -> List[TaskInstanceResponse]:
        tasks = app_cache.get_user_tasks_sorted(user_id)
        if tasks is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found in cache")
        return [instance_to_response(task) for task in tasks]

    # ------------------------------------------------------------------
    # Task timers and summaries
    # ------------------------------------------------------------------
    @app.post("/tasks/start", response_model=TaskInstanceResponse)
    def start_task(request: TaskTimerRequest) -> TaskInstanceResponse:
        instance = task_timer.start(request.user_id, request.task_id)
        return instance_to_response(instance)

    @app.post("/tasks/end", response_model=TaskInstanceResponse)
    def end_task(request: TaskTimerRequest) -> TaskInstanceResponse:
        instance = task_timer.end(request.user_id, request.task_id)
        return instance_to_response(instance)

    @app.get("/tasks/summary", response_model=List[TaskInstanceResponse])
    def task_summary(user_id: int, start_date: str, end_date: str) -> List[TaskInstanceResponse]:
        start = parse_report_date(start_date)
        end = parse_report_date(end_date)
        rows = summarize(db, user_id, start, end)
        logger.info("Summary for user %s from %s to %s: %d row(s)", user_id, start, end, len(rows))
        return [instance_to_response(row) for row in rows]

    # ------------------------------------------------------------------
    # Task catalog
    # ------------------------------------------------------------------
    @app.post("/tasks", status_code=status.HTTP_201_CREATED, response_model=TaskResponse)
    def create_task(request: CreateTaskRequest) -> TaskResponse:
        task = db.create_task(request.name)
        app_cache.put_task(task)
        logger.info("Created catalog task %s (%s)", task.id, task.name)
        return task_to_response(task)

    @app.get("/tasks", response_model=List[TaskResponse])
    def list_tasks() -> List[TaskResponse]:
        return [task_to_response(task) for task in app_cache.list_tasks()]

    @app.get("/tasks/{task_id}", response_model=TaskResponse)
    def read_task(task_id: int) -> TaskResponse:
        task = app_cache.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
        return task_to_response(task)

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------
    @app.exception_handler(NotFoundError)
    async def handle_not_found(_: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(InvalidInputError)
    async def handle_invalid_input(_: Request, exc: InvalidInputError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def handle_storage_error(_: Request, exc: StorageError):
        logger.error("Database failure: %s", exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})

    @app.exception_handler(UpstreamError)
    async def handle_upstream_error(_: Request, exc: UpstreamError):
        logger.error("Upstream failure: %s", exc)
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid input", "errors": jsonable_errors(exc)},
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> List[Dict[str, object]]:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", ""))}
        for error in exc.errors()
    ]


__all__ = ["create_app", "warm_cache"]
