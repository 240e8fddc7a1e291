"""Embedding domain model."""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class Embedding:
    """Fixed-length voice embedding tagged with the extractor that produced it.

    Embeddings are only comparable when their extractor versions match.
    """

    vector: np.ndarray
    extractor_version: str

    def __post_init__(self) -> None:
        vector = np.asarray(self.vector, dtype=np.float32)
        if vector.ndim != 1 or vector.size == 0:
            raise ValueError(f"Embedding must be a non-empty 1-D vector, got {vector.shape}")
        object.__setattr__(self, "vector", vector)

    @property
    def dim(self) -> int:
        """Dimensionality of the embedding."""
        return int(self.vector.shape[0])

    def to_bytes(self) -> bytes:
        """Serialize the vector as float32 bytes."""
        return self.vector.astype(np.float32).tobytes()

    @classmethod
    def from_bytes(cls, data: bytes, extractor_version: str) -> "Embedding":
        """Rebuild an embedding from float32 bytes."""
        return cls(
            vector=np.frombuffer(data, dtype=np.float32).copy(),
            extractor_version=extractor_version,
        )
