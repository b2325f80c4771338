"""User enrollment, profile maintenance and removal."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Mapping, Optional, Protocol, Tuple

from .cache import TrackerCache
from .errors import InvalidInputError, NotFoundError
from .models import PersonalInfo, User, UserProfile
from .store import TrackerStore

logger = logging.getLogger("timetracker.users")

_PROFILE_FIELDS = ("passport_serie", "passport_number", "surname", "name", "patronymic", "address")


class IdentityLookup(Protocol):
    def lookup(self, passport_serie: int, passport_number: int) -> PersonalInfo:
        raise NotImplementedError


def parse_passport(value: str) -> Tuple[int, int]:
    """Split ``"1234 567890"`` into its serie and number."""

    parts = (value or "").split(" ")
    if len(parts) != 2:
        raise InvalidInputError("Passport must be a serie and a number separated by a space")
    serie_text, number_text = parts
    if not serie_text.isdigit():
        raise InvalidInputError(f"Invalid passport serie {serie_text!r}")
    if not number_text.isdigit():
        raise InvalidInputError(f"Invalid passport number {number_text!r}")
    return int(serie_text), int(number_text)


class UserService:
    """Keeps users in the database and mirrors them in the cache."""

    def __init__(
        self,
        store: TrackerStore,
        cache: TrackerCache,
        identity: IdentityLookup,
    ) -> None:
        self._store = store
        self._cache = cache
        self._identity = identity

    def enroll(self, passport: str) -> User:
        """Register the person holding ``passport`` and cache the new user."""

        passport_serie, passport_number = parse_passport(passport)
        info = self._identity.lookup(passport_serie, passport_number)

        user_id = self._store.insert_user(
            passport_serie=passport_serie,
            passport_number=passport_number,
            surname=info.surname,
            name=info.name,
            patronymic=info.patronymic,
            address=info.address,
        )
        user = User(
            id=user_id,
            passport_serie=passport_serie,
            passport_number=passport_number,
            surname=info.surname,
            name=info.name,
            patronymic=info.patronymic,
            address=info.address,
        )
        self._cache.put_user(user)

        logger.info("Enrolled user %s", user_id)
        return user

    def delete(self, user_id: int) -> None:
        """Remove the user and all of its task instances."""

        if not self._store.delete_user_and_instances(user_id):
            raise NotFoundError(f"User {user_id} not found")
        self._cache.remove_user(user_id)
        logger.info("Deleted user %s and their task instances", user_id)

    def update_profile(self, user_id: int, fields: Mapping[str, object]) -> UserProfile:
        """Apply the given profile fields; omitted fields keep their stored value."""

        current = self._store.get_user(user_id)
        if current is None:
            raise NotFoundError(f"User {user_id} not found")

        changes = {key: value for key, value in fields.items() if key in _PROFILE_FIELDS and value is not None}
        updated = replace(current, **changes)

        if self._store.update_user_profile(updated) == 0:
            raise NotFoundError(f"User {user_id} not found")

        if not self._cache.update_profile(updated):
            # The database is updated either way; a reload brings the cache in line.
            logger.debug("User %s not cached; profile updated in the database only", user_id)

        logger.info("Updated profile of user %s", user_id)
        return updated

    def search(
        self,
        filters: Mapping[str, object],
        *,
        page: int = 1,
        limit: int = 10,
    ) -> List[UserProfile]:
        return list(self._store.search_users(filters, page=page, limit=limit))

    def get(self, user_id: int) -> Optional[UserProfile]:
        return self._store.get_user(user_id)


__all__ = ["IdentityLookup", "UserService", "parse_passport"]
