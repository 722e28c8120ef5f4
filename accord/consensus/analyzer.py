"""
Consensus Analyzer

Fetches a module's understandings from the store, runs the consensus engine
and packages the result for callers (CLI, ADR writer, report writer).

Fewer than two clusterable understandings is not an error: the result is
flagged `insufficient_data` with consensus 0 so the caller can say
"not enough data yet".
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..common.schemas import ADRStatus, Understanding
from ..common.store import DocumentStore
from .engine import (
    Cluster,
    cluster_statements,
    consensus_percentage,
    consensus_status,
    filter_embedded,
)

logger = logging.getLogger("accord.consensus.analyzer")

MIN_UNDERSTANDINGS = 2


@dataclass
class ModuleConsensus:
    """Consensus result for a single module"""
    project_id: str
    module_name: str
    understandings: List[Understanding]
    clusters: List[Cluster] = field(default_factory=list)
    consensus_percentage: float = 0.0
    valid_count: int = 0
    message: str = ""

    @property
    def insufficient_data(self) -> bool:
        return self.valid_count < MIN_UNDERSTANDINGS

    @property
    def status(self) -> ADRStatus:
        return consensus_status(self.consensus_percentage)

    @property
    def contributors(self) -> List[str]:
        """Distinct developer names in order of first contribution"""
        return list(dict.fromkeys(u.developer_name for u in self.understandings))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly summary with percentages rounded to one decimal"""
        result: Dict[str, Any] = {
            "module_name": self.module_name,
            "consensus_percentage": round(self.consensus_percentage, 1),
            "status": self.status.value,
            "total_understandings": len(self.understandings),
            "valid_understandings": self.valid_count,
            "insufficient_data": self.insufficient_data,
            "clusters": [
                {
                    "id": cluster.rank,
                    "size": cluster.size,
                    "percentage": round(cluster.percentage, 1),
                    "representative_text": cluster.representative_text,
                    "representative_id": cluster.representative.id,
                    "developers": [
                        {
                            "name": u.developer_name,
                            "understanding_id": u.id,
                            "confidence_score": u.confidence_score,
                        }
                        for u in cluster.members
                    ],
                }
                for cluster in self.clusters
            ],
        }
        if self.message:
            result["message"] = self.message
        return result


class ConsensusAnalyzer:
    """
    Computes consensus for modules stored in a DocumentStore.

    Usage:
        analyzer = ConsensusAnalyzer(store)
        result = analyzer.analyze_module(project_id, "Payments")
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    def analyze_understandings(
        self,
        project_id: str,
        module_name: str,
        understandings: List[Understanding],
    ) -> ModuleConsensus:
        """Run the engine over an already-fetched set of understandings"""
        valid_count = len(filter_embedded(understandings))

        if valid_count < MIN_UNDERSTANDINGS:
            logger.info(
                "Module %s has %d valid understanding(s), need %d",
                module_name, valid_count, MIN_UNDERSTANDINGS,
            )
            return ModuleConsensus(
                project_id=project_id,
                module_name=module_name,
                understandings=understandings,
                valid_count=valid_count,
                message=(
                    f"Need at least {MIN_UNDERSTANDINGS} understandings with valid embeddings. "
                    f"Found {valid_count} valid out of {len(understandings)} total."
                ),
            )

        clusters = cluster_statements(understandings)
        percentage = consensus_percentage(clusters)
        logger.info(
            "Module %s: %d clusters, %.1f%% consensus",
            module_name, len(clusters), percentage,
        )
        return ModuleConsensus(
            project_id=project_id,
            module_name=module_name,
            understandings=understandings,
            clusters=clusters,
            consensus_percentage=percentage,
            valid_count=valid_count,
        )

    def analyze_module(self, project_id: str, module_name: str) -> ModuleConsensus:
        """
        Analyze consensus for one module.

        Raises:
            RecordNotFoundError: If the project does not exist
        """
        self._store.get_project(project_id)
        understandings = self._store.list_understandings(project_id, module_name)
        logger.info("Found %d understandings for module: %s", len(understandings), module_name)
        return self.analyze_understandings(project_id, module_name, understandings)

    def analyze_project(self, project_id: str) -> List[ModuleConsensus]:
        """Analyze every module of a project, in order of first appearance"""
        self._store.get_project(project_id)
        return [
            self.analyze_understandings(
                project_id,
                module_name,
                self._store.list_understandings(project_id, module_name),
            )
            for module_name in self._store.list_modules(project_id)
        ]
