"""Database setup for the SQL-backed user store."""

from sqlalchemy import Boolean, Column, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

Base = declarative_base()


class UserRecord(Base):
    """SQLAlchemy model for a stored user, profile fields flattened."""

    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, autoincrement=False)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    active = Column(Boolean, default=False, nullable=False)
    user_group_id = Column(Integer, nullable=True)
    creation_date = Column(String, default="", nullable=False)
    first_name = Column(String, default="", nullable=False)
    last_name = Column(String, default="", nullable=False)
    phone = Column(String, default="", nullable=False)
    email = Column(String, default="", nullable=False)


def make_session_factory(database_url: str = settings.database_url) -> sessionmaker:
    """Create the engine and tables, returning a session factory bound to it."""
    engine = create_engine(database_url, future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
