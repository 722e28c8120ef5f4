"""
Consensus Engine

Groups a module's understandings into agreement clusters and scores how much
of the team shares the dominant view.

Pipeline:
1. Drop understandings without a usable embedding
2. All-pairs cosine similarity
3. Union every pair at or above SIMILARITY_THRESHOLD (transitive merge)
4. Rank clusters by size, pick a representative per cluster
5. Consensus = percentage of the largest cluster

Everything here is pure: no I/O, no module-level state. Cost is O(n^2) in the
number of valid understandings, so callers bucket by module before calling.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..common.schemas import ADRStatus, Understanding

logger = logging.getLogger("accord.consensus.engine")

SIMILARITY_THRESHOLD = 0.75
ACCEPTED_THRESHOLD = 70.0
PROPOSED_THRESHOLD = 50.0


class InvalidInputError(ValueError):
    """Raised when vectors of different lengths are compared."""


# ============================================================================
# Similarity
# ============================================================================

def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        InvalidInputError: If the vectors differ in length
    """
    if len(vec_a) != len(vec_b):
        raise InvalidInputError(
            f"Vectors must have the same length: {len(vec_a)} vs {len(vec_b)}"
        )

    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    # Rounding can push parallel vectors just past 1.0
    return max(-1.0, min(1.0, similarity))


def similarity_matrix(vectors: np.ndarray) -> np.ndarray:
    """All-pairs cosine similarity for an (n, dim) matrix. Zero rows score 0."""
    norms = np.linalg.norm(vectors, axis=1)
    denom = np.outer(norms, norms)
    dots = vectors @ vectors.T

    matrix = np.zeros_like(dots)
    np.divide(dots, denom, out=matrix, where=denom > 0)
    return np.clip(matrix, -1.0, 1.0)


# ============================================================================
# Embedding validation
# ============================================================================

def _as_vector(embedding) -> Optional[np.ndarray]:
    """Convert an embedding to a 1-D float array, or None if it is unusable."""
    if embedding is None or isinstance(embedding, (str, bytes)):
        return None
    try:
        if any(isinstance(x, bool) for x in embedding):
            return None
        vector = np.asarray(embedding, dtype=np.float64)
    except (TypeError, ValueError):
        return None

    if vector.ndim != 1 or vector.size == 0:
        return None
    if not np.all(np.isfinite(vector)):
        return None
    return vector


def filter_embedded(
    statements: Sequence[Understanding],
) -> List[Tuple[Understanding, np.ndarray]]:
    """
    Keep understandings whose embedding can take part in clustering.

    An embedding is usable when it is a non-empty sequence of finite numbers
    whose length matches the batch's dominant dimension (most common length,
    earliest on ties). Everything else is logged and excluded. Input order is
    preserved.
    """
    candidates = []
    for statement in statements:
        vector = _as_vector(statement.embedding)
        if vector is None:
            if statement.embedding is None:
                logger.debug("Understanding %s has no embedding", statement.id)
            else:
                logger.warning("Understanding %s has a malformed embedding, skipping", statement.id)
            continue
        candidates.append((statement, vector))

    if not candidates:
        return []

    dimension = Counter(len(v) for _, v in candidates).most_common(1)[0][0]

    usable = []
    for statement, vector in candidates:
        if len(vector) != dimension:
            logger.warning(
                "Understanding %s embedding has %d dimensions, expected %d; skipping",
                statement.id, len(vector), dimension,
            )
            continue
        usable.append((statement, vector))
    return usable


# ============================================================================
# Clustering
# ============================================================================

class DisjointSet:
    """Union-find over positions 0..n-1 with path halving and union by size."""

    def __init__(self, n: int):
        self._parent = list(range(n))
        self._size = [1] * n

    def find(self, i: int) -> int:
        parent = self._parent
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    def union(self, i: int, j: int) -> bool:
        """Merge the sets holding i and j. Returns False if already merged."""
        root_i, root_j = self.find(i), self.find(j)
        if root_i == root_j:
            return False
        if self._size[root_i] < self._size[root_j]:
            root_i, root_j = root_j, root_i
        self._parent[root_j] = root_i
        self._size[root_i] += self._size[root_j]
        return True

    def groups(self) -> List[List[int]]:
        """Members of each set in ascending order, sets ordered by first member."""
        by_root: Dict[int, List[int]] = {}
        for i in range(len(self._parent)):
            by_root.setdefault(self.find(i), []).append(i)
        return list(by_root.values())


@dataclass(frozen=True)
class Cluster:
    """A group of understandings that agree with each other."""
    rank: int  # 1 = largest
    members: Tuple[Understanding, ...]
    representative: Understanding
    percentage: float  # share of all valid understandings, 0-100

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def representative_text(self) -> str:
        return self.representative.understanding_text

    @property
    def member_ids(self) -> List[str]:
        return [m.id for m in self.members]


def _pick_representative(indices: List[int], matrix: np.ndarray) -> int:
    """Index of the member with the highest mean similarity to its peers."""
    if len(indices) == 1:
        return indices[0]

    sub = matrix[np.ix_(indices, indices)]
    peer_totals = sub.sum(axis=1) - np.diag(sub)
    averages = peer_totals / (len(indices) - 1)
    # argmax returns the first maximum, i.e. earliest in input order
    return indices[int(np.argmax(averages))]


def cluster_statements(statements: Sequence[Understanding]) -> List[Cluster]:
    """
    Partition understandings into agreement clusters.

    Two understandings land in the same cluster when a chain of pairwise
    similarities >= SIMILARITY_THRESHOLD connects them. Understandings without a usable
    embedding are excluded from both the clusters and the percentage
    denominator.

    Args:
        statements: Understandings for a single module

    Returns:
        Clusters sorted by size (largest first, stable on ties), ranked from 1.
        Empty if no understanding has a usable embedding.
    """
    usable = filter_embedded(statements)
    if not usable:
        return []

    valid = [statement for statement, _ in usable]
    vectors = np.vstack([vector for _, vector in usable])
    matrix = similarity_matrix(vectors)

    n = len(valid)
    forest = DisjointSet(n)
    rows, cols = np.nonzero(np.triu(matrix >= SIMILARITY_THRESHOLD, k=1))
    for i, j in zip(rows.tolist(), cols.tolist()):
        forest.union(i, j)

    groups = sorted(forest.groups(), key=len, reverse=True)

    clusters = []
    for rank, indices in enumerate(groups, start=1):
        rep_index = _pick_representative(indices, matrix)
        clusters.append(Cluster(
            rank=rank,
            members=tuple(valid[i] for i in indices),
            representative=valid[rep_index],
            percentage=len(indices) / n * 100,
        ))

    logger.debug("Clustered %d understandings into %d clusters", n, len(clusters))
    return clusters


# ============================================================================
# Scoring
# ============================================================================

def consensus_percentage(clusters: Sequence[Cluster]) -> float:
    """Share of the team in the largest cluster; 0.0 when there are no clusters."""
    if not clusters:
        return 0.0
    return clusters[0].percentage


def consensus_status(percentage: float) -> ADRStatus:
    """Map a consensus percentage to the decision status it supports."""
    if percentage >= ACCEPTED_THRESHOLD:
        return ADRStatus.ACCEPTED
    if percentage >= PROPOSED_THRESHOLD:
        return ADRStatus.PROPOSED
    return ADRStatus.UNDER_DISCUSSION
