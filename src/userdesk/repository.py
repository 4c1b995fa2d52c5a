"""Storage backends for the user set.

A repository only knows how to load the complete list of users and how to
replace it. Policy and validation live in :mod:`userdesk.services`.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections import Counter as TallyCounter
from pathlib import Path
from typing import List

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .config import settings
from .database import UserRecord, make_session_factory
from .errors import StorageError
from .groups import group_name
from .models.user import User, UserData

logger = logging.getLogger(__name__)


class UserRepository(ABC):
    @abstractmethod
    def load_users(self) -> List[User]:
        """Return every stored user."""

    @abstractmethod
    def save_users(self, users: List[User]) -> None:
        """Replace the stored user set with ``users``."""


class JsonFileRepository(UserRepository):
    """Keep all users in one JSON document of the form ``{"Users": [...]}``."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if self.path.exists():
            logger.info("using user data file %s", self.path)
        else:
            logger.warning("user data file %s does not exist yet", self.path)

    def load_users(self) -> List[User]:
        if not self.path.exists():
            logger.warning("user data file %s not found, starting empty", self.path)
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
            if not raw.strip():
                return []
            document = json.loads(raw)
            if not isinstance(document, dict) or "Users" not in document:
                logger.warning("user data file %s has no Users field", self.path)
                return []
            users = [User.model_validate(item) for item in document["Users"] or []]
        except json.JSONDecodeError as exc:
            logger.exception("invalid JSON in %s", self.path)
            raise StorageError(f"The users data file contains invalid JSON: {exc}") from exc
        except PydanticValidationError as exc:
            logger.exception("malformed user record in %s", self.path)
            raise StorageError(f"The users data file contains an invalid record: {exc}") from exc
        except OSError as exc:
            logger.exception("error reading %s", self.path)
            raise StorageError(f"Error reading the users data file: {exc}") from exc

        active = sum(1 for u in users if u.active)
        logger.debug(
            "loaded %d users (%d active, %d inactive)", len(users), active, len(users) - active
        )
        return users

    def save_users(self, users: List[User]) -> None:
        document = {"Users": [u.model_dump(by_alias=True) for u in users]}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            logger.exception("error writing %s", self.path)
            raise StorageError(f"Error writing to the users data file: {exc}") from exc

        groups = TallyCounter(group_name(u.user_group_id) for u in users)
        logger.info("saved %d users to %s", len(users), self.path)
        for name, count in sorted(groups.items()):
            logger.debug("group %s: %d users", name, count)


def _to_user(record: UserRecord) -> User:
    return User(
        user_id=record.user_id,
        username=record.username,
        password=record.password,
        active=record.active,
        user_group_id=record.user_group_id,
        data=UserData(
            creation_date=record.creation_date,
            first_name=record.first_name,
            last_name=record.last_name,
            phone=record.phone,
            email=record.email,
        ),
    )


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        user_id=user.user_id,
        username=user.username,
        password=user.password,
        active=user.active,
        user_group_id=user.user_group_id,
        creation_date=user.data.creation_date,
        first_name=user.data.first_name,
        last_name=user.data.last_name,
        phone=user.data.phone,
        email=user.data.email,
    )


class SqlUserRepository(UserRepository):
    """Same load/replace contract over a SQLAlchemy ``users`` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def load_users(self) -> List[User]:
        session = self.session_factory()
        try:
            records = session.scalars(select(UserRecord).order_by(UserRecord.user_id)).all()
            return [_to_user(r) for r in records]
        except SQLAlchemyError as exc:
            logger.exception("error loading users from database")
            raise StorageError("Database error") from exc
        finally:
            session.close()

    def save_users(self, users: List[User]) -> None:
        session = self.session_factory()
        try:
            session.execute(delete(UserRecord))
            session.add_all([_to_record(u) for u in users])
            session.commit()
            logger.info("saved %d users to database", len(users))
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("error saving users to database")
            raise StorageError("Database error") from exc
        finally:
            session.close()


def build_repository() -> UserRepository:
    """Create the repository selected by ``settings.storage_backend``."""
    backend = settings.storage_backend.lower()
    if backend == "json":
        return JsonFileRepository(settings.data_file)
    if backend == "sql":
        return SqlUserRepository(make_session_factory(settings.database_url))
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
