"""
Accord

Measures how well a team agrees on how its modules work. Developers record
their understanding of a module; Accord clusters the statements by meaning
and reports what share of the team holds the dominant view.

Philosophy:
- Consensus figures are computed locally and deterministically
- An LLM, when configured, writes prose around the figures and never changes them
- Understandings are immutable; corrections are new records

Usage:
    from accord.common import load_config, DocumentStore, EmbeddingService
    from accord.ingest import UnderstandingRecorder
    from accord.consensus import ConsensusAnalyzer, cluster_statements
    from accord.narrator import ADRWriter, ConflictAnalyzer, ReportWriter
    from accord.retriever import Searcher
"""

__version__ = "0.1.0"
