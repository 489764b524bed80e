# Infrastructure Store Adapters Package
from .json_file import JsonCollectionStore
from .memory import InMemoryCollectionStore

__all__ = ["InMemoryCollectionStore", "JsonCollectionStore"]
