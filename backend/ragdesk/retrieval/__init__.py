"""Retrieval components."""

from .vector_index import VectorIndex
from .search import RetrievalService

__all__ = [
    "VectorIndex",
    "RetrievalService",
]
