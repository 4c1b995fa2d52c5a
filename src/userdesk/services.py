"""Service layer for user management, shared by the REST API and the web UI."""

import logging
import threading
from datetime import date
from functools import lru_cache
from typing import List, Optional

from prometheus_client import Counter

from .errors import DuplicateUsername, NotFound
from .models.user import User
from .repository import UserRepository, build_repository

logger = logging.getLogger(__name__)

USER_WRITE_COUNTER = Counter(
    "user_writes_total", "Total user store writes", ["operation"]
)


class UserService:
    """CRUD operations over a :class:`UserRepository`.

    Every write loads the full user set, mutates it in memory and saves it
    back. One lock serializes those cycles within the process.
    """

    def __init__(self, repository: UserRepository):
        self.repository = repository
        self._lock = threading.Lock()

    def get_all_users(self) -> List[User]:
        return self.repository.load_users()

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        for user in self.repository.load_users():
            if user.user_id == user_id:
                return user
        logger.debug("user id %s not found", user_id)
        return None

    def search_by_full_name(self, first: str | None, last: str | None) -> List[User]:
        """Return users whose first and last names both contain the given text.

        Matching is case-insensitive; an empty string matches every name.
        """
        first = (first or "").casefold()
        last = (last or "").casefold()
        results = [
            u
            for u in self.repository.load_users()
            if first in u.data.first_name.casefold() and last in u.data.last_name.casefold()
        ]
        logger.info("search first=%r last=%r matched %d users", first, last, len(results))
        return results

    def add_user(self, user: User) -> User:
        """Store a new user, assigning its id and creation date."""
        with self._lock:
            users = self.repository.load_users()
            if any(u.username == user.username for u in users):
                logger.warning("add rejected, username %s already exists", user.username)
                raise DuplicateUsername()

            new_user = user.model_copy(deep=True)
            new_user.user_id = max((u.user_id for u in users), default=0) + 1
            new_user.data.creation_date = date.today().strftime("%Y-%m-%d")
            users.append(new_user)
            self.repository.save_users(users)

        USER_WRITE_COUNTER.labels(operation="create").inc()
        logger.info(
            "created user %s id=%s group=%s",
            new_user.username,
            new_user.user_id,
            new_user.user_group_id,
        )
        return new_user

    def update_user(self, updated: User) -> Optional[User]:
        """Overwrite every mutable field of the user with ``updated.user_id``.

        An unknown id is logged and ignored; ``None`` is returned.
        """
        with self._lock:
            users = self.repository.load_users()
            for u in users:
                if u.username == updated.username and u.user_id != updated.user_id:
                    logger.warning(
                        "update of id=%s rejected, username %s taken by id=%s",
                        updated.user_id,
                        updated.username,
                        u.user_id,
                    )
                    raise DuplicateUsername()

            existing = next((u for u in users if u.user_id == updated.user_id), None)
            if existing is None:
                logger.warning("update ignored, user id=%s not found", updated.user_id)
                return None

            old_username = existing.username
            existing.username = updated.username
            existing.password = updated.password
            existing.active = updated.active
            existing.user_group_id = updated.user_group_id
            data = updated.data.model_copy()
            if not data.creation_date:
                data.creation_date = existing.data.creation_date
            existing.data = data
            self.repository.save_users(users)

        USER_WRITE_COUNTER.labels(operation="update").inc()
        logger.info(
            "updated user id=%s %s -> %s active=%s group=%s",
            existing.user_id,
            old_username,
            existing.username,
            existing.active,
            existing.user_group_id,
        )
        return existing

    def delete_user(self, user_id: int) -> None:
        with self._lock:
            users = self.repository.load_users()
            remaining = [u for u in users if u.user_id != user_id]
            if len(remaining) == len(users):
                raise NotFound()
            self.repository.save_users(remaining)

        USER_WRITE_COUNTER.labels(operation="delete").inc()
        logger.info("deleted user id=%s", user_id)


@lru_cache(maxsize=1)
def get_user_service() -> UserService:
    """Provide the process-wide service bound to the configured repository."""
    return UserService(build_repository())
