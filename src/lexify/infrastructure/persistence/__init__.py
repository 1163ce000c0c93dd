from .json_file import JsonFileWordRepository
from .memory import InMemoryWordRepository

__all__ = ["InMemoryWordRepository", "JsonFileWordRepository"]
