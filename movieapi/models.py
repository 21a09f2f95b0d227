# ------------------------------------------------------------
# models.py — SQLAlchemy table definitions (movie/genre/user/role/tokens)
# ------------------------------------------------------------
# The repositories talk to these tables with hand-written SQL; the ORM
# classes exist so the schema can be created with metadata.create_all().

from sqlalchemy import (
    Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func, insert, select,
)
from sqlalchemy.engine import Engine

from .db import Base

DEFAULT_ROLES = ("User", "Admin", "Guest")


class Movie(Base):
    __tablename__ = "movie"

    id = Column(String(36), primary_key=True)  # UUID string
    title = Column(String(255), nullable=False)
    year = Column(Integer, nullable=False)
    director = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    poster = Column(Text)
    rate = Column(Numeric(3, 1), nullable=False, default=5)


class Genre(Base):
    __tablename__ = "genre"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)


class MovieGenre(Base):
    __tablename__ = "movie_genre"

    # composite PK: a movie lists a genre at most once
    movie_id = Column(String(36), ForeignKey("movie.id"), primary_key=True)
    genre_id = Column(Integer, ForeignKey("genre.id"), primary_key=True)


class User(Base):
    __tablename__ = "user"

    id = Column(String(36), primary_key=True)
    username = Column(String(50), nullable=False, unique=True)
    email = Column(String(255), unique=True)
    password = Column(String(255), nullable=False)  # bcrypt hash
    age = Column(Integer)


class Role(Base):
    __tablename__ = "role"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(20), nullable=False, unique=True)


class UserRole(Base):
    __tablename__ = "user_roles"

    # one role per user
    user_id = Column(String(36), ForeignKey("user.id"), primary_key=True)
    role_id = Column(Integer, ForeignKey("role.id"), nullable=False)


class Token(Base):
    __tablename__ = "tokens"

    id = Column(String(36), primary_key=True)
    # not a foreign key: revoked tokens outlive the user as an audit trail
    user_id = Column(String(36), nullable=False, index=True)
    token = Column(String(512), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # access | refresh
    expires_at = Column(DateTime, nullable=False)
    revoked = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.current_timestamp())


def init_schema(engine: Engine) -> None:
    """Create missing tables and seed the role catalog."""
    # create_all only creates tables that do not exist yet
    Base.metadata.create_all(bind=engine)

    with engine.begin() as conn:
        existing = {name.lower() for name in conn.execute(select(Role.name)).scalars()}
        missing = [{"name": name} for name in DEFAULT_ROLES if name.lower() not in existing]
        if missing:
            conn.execute(insert(Role), missing)
