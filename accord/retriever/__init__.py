"""
Retriever - Understanding Search

Finds understandings and design-document passages relevant to a query by
combining substring matching with embedding similarity.
"""

from .searcher import Searcher, SearchResult

__all__ = [
    "Searcher",
    "SearchResult",
]
