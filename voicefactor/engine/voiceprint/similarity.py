"""Embedding comparison helpers."""

from collections.abc import Sequence

import numpy as np


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    """Scale a vector to unit length; zero vectors are returned unchanged."""
    norm = np.linalg.norm(vector)
    if norm == 0:
        return vector.astype(np.float32)
    return (vector / norm).astype(np.float32)


def cosine_similarity(embedding1: np.ndarray, embedding2: np.ndarray) -> float:
    """Calculate cosine similarity between two embeddings.

    Args:
        embedding1: First embedding vector.
        embedding2: Second embedding vector.

    Returns:
        Cosine similarity score in range [-1, 1]; 0.0 if either vector is zero.

    Raises:
        ValueError: If the embeddings have different shapes.
    """
    if embedding1.shape != embedding2.shape:
        raise ValueError(
            f"Embedding dimensions don't match: {embedding1.shape} vs {embedding2.shape}"
        )

    a = embedding1.astype(np.float64)
    b = embedding2.astype(np.float64)
    norm1 = np.linalg.norm(a)
    norm2 = np.linalg.norm(b)

    if norm1 == 0 or norm2 == 0:
        return 0.0

    similarity = np.dot(a, b) / (norm1 * norm2)
    return float(np.clip(similarity, -1.0, 1.0))


def compute_centroid(embeddings: Sequence[np.ndarray]) -> np.ndarray:
    """Compute the L2-normalized mean of multiple embeddings.

    Raises:
        ValueError: If embeddings list is empty.
    """
    if not embeddings:
        raise ValueError("Cannot compute centroid of empty embeddings list")

    return l2_normalize(np.mean(np.stack(embeddings), axis=0))
