"""
Consensus - Team Agreement Analysis

Clusters the understandings recorded for a module by embedding similarity and
reports how much of the team shares the dominant view.

Key Components:
- engine: cosine similarity, union-find clustering, consensus scoring
- ConsensusAnalyzer: store-backed analysis per module or per project
- DriftAnalyzer: per-developer drift from their first understanding

Pipeline:
1. Fetch understandings for one module
2. Drop those without a usable embedding
3. Merge every pair with similarity >= 0.75 (transitively)
4. Rank clusters, pick representatives, score consensus
"""

from .engine import (
    Cluster,
    DisjointSet,
    InvalidInputError,
    SIMILARITY_THRESHOLD,
    cluster_statements,
    consensus_percentage,
    consensus_status,
    cosine_similarity,
    filter_embedded,
    similarity_matrix,
)
from .analyzer import ConsensusAnalyzer, ModuleConsensus
from .drift import DeveloperDrift, DriftAnalyzer, DriftReport, ModuleForecast

__all__ = [
    "Cluster",
    "DisjointSet",
    "InvalidInputError",
    "SIMILARITY_THRESHOLD",
    "cluster_statements",
    "consensus_percentage",
    "consensus_status",
    "cosine_similarity",
    "filter_embedded",
    "similarity_matrix",
    "ConsensusAnalyzer",
    "ModuleConsensus",
    "DeveloperDrift",
    "DriftAnalyzer",
    "DriftReport",
    "ModuleForecast",
]
