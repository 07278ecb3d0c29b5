"""Storage abstraction for vector indexes."""

from .base import VectorIndexBase, get_vector_index

__all__ = ["VectorIndexBase", "get_vector_index"]
