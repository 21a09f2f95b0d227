from .movies import MovieRepository
from .users import UserRepository

__all__ = ["MovieRepository", "UserRepository"]
