"""Brute-force similarity ranking for stores without a vector index."""

import heapq
import math

from vecsync.store.models import Document, ScoredDocument


def cosine_similarity(vec_a: list[float], vec_b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        vec_a: First embedding vector
        vec_b: Second embedding vector

    Returns:
        float: Similarity in [-1, 1]; 0.0 for empty, zero or mismatched vectors
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    magnitude_a = math.sqrt(sum(a * a for a in vec_a))
    magnitude_b = math.sqrt(sum(b * b for b in vec_b))

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return dot_product / (magnitude_a * magnitude_b)


def rank_documents(
    query_vector: list[float], documents: list[Document], top_k: int
) -> list[ScoredDocument]:
    """Score every document against the query and keep the top_k best."""
    scored = (
        ScoredDocument(
            id=doc.id,
            score=cosine_similarity(query_vector, doc.vector),
            content=doc.content,
            metadata=doc.metadata,
        )
        for doc in documents
    )
    return heapq.nlargest(top_k, scored, key=lambda hit: hit.score)
