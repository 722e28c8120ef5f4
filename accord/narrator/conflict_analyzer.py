"""
Conflict Analyzer

Asks the LLM why a module's understandings diverge and what to do about it.

Only modules with at least two clusters have a conflict to analyze. Unlike
the ADR and report writers there is no template fallback: the analysis is
the LLM's judgement, so an LLM is required.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.schemas import ConflictAnalysis, ConflictAnalysisRecord, Project, format_contributors, truncate
from ..common.store import DocumentStore
from ..consensus.analyzer import ConsensusAnalyzer
from ..consensus.engine import Cluster

logger = logging.getLogger("accord.narrator.conflict_analyzer")

MAX_APPROACHES = 3
DEFAULT_CONFIDENCE = 3


CONFLICT_PROMPT = """You are an expert software architect analyzing team understanding conflicts.

Project: {project}
Context from HLD: {hld}
Context from LLD: {lld}
Module: {module}

The team has divergent understandings about this module:

{approaches}

Provide analysis in this EXACT JSON format (no markdown, just pure JSON):
{{
  "root_cause": "Brief explanation of why these conflicts exist",
  "recommendation": "Which approach is better, or suggest a hybrid. Be specific.",
  "recommended_approach": "Approach 1" or "Approach 2" or "Hybrid",
  "reasoning": "Technical reasoning for recommendation",
  "risks": {{
    "if_unresolved": "What could go wrong if team doesn't align",
    "severity": "High" or "Medium" or "Low"
  }},
  "action_items": ["Specific action 1", "Specific action 2"],
  "technical_considerations": ["Point 1", "Point 2"]
}}

Be technical, specific, and actionable. Return ONLY the JSON, no other text."""


def average_confidence(cluster: Cluster) -> float:
    """Mean confidence of a cluster's members; unscored members count as 3"""
    scores = [u.confidence_score or DEFAULT_CONFIDENCE for u in cluster.members]
    return sum(scores) / len(scores)


def render_approaches(clusters: List[Cluster]) -> str:
    blocks = []
    for index, cluster in enumerate(clusters[:MAX_APPROACHES], start=1):
        blocks.append(
            f"=== Approach {index} ({cluster.percentage:.1f}% of team) ===\n"
            f"{cluster.representative_text}\n"
            f"Supported by: {format_contributors(cluster.members)}\n"
            f"Average Confidence: {average_confidence(cluster):.1f}/5"
        )
    return "\n\n".join(blocks)


class ConflictAnalyzer:
    """
    Analyzes and tracks conflicts between a module's agreement clusters.
    """

    def __init__(self, store: DocumentStore, llm: Optional[LLMClient] = None, context_chars: int = 1000):
        """
        Args:
            store: Document store for projects and analyses
            llm: LLM client (required for analyze)
            context_chars: How much of the HLD/LLD to quote in the prompt
        """
        self._store = store
        self._llm = llm
        self._context_chars = context_chars
        self._analyzer = ConsensusAnalyzer(store)

    @property
    def has_llm(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def analyze(self, project_id: str, module_name: str) -> ConflictAnalysisRecord:
        """
        Analyze why a module's clusters disagree and store the analysis.

        Raises:
            RecordNotFoundError: Unknown project
            ValueError: Fewer than two clusters, or an unparseable LLM answer
            RuntimeError: No LLM available
        """
        project = self._store.get_project(project_id)
        consensus = self._analyzer.analyze_module(project_id, module_name)
        if len(consensus.clusters) < 2:
            raise ValueError(
                f"Module {module_name} has {len(consensus.clusters)} cluster(s); "
                "need at least 2 to analyze a conflict"
            )
        if not self.has_llm:
            raise RuntimeError("Conflict analysis requires an LLM; none is configured")

        logger.info("Analyzing conflict for module: %s", module_name)
        raw = self._llm.generate(self._build_prompt(project, module_name, consensus.clusters))
        analysis = self._parse(raw)

        record = self._store.save_conflict_analysis(ConflictAnalysisRecord(
            project_id=project_id,
            module_name=module_name,
            analysis=analysis,
            consensus_percentage=round(consensus.consensus_percentage),
            severity=analysis.risks.severity,
        ))
        logger.info("Stored conflict analysis %s (severity %s)", record.id, record.severity.value)
        return record

    def resolve(self, analysis_id: str) -> ConflictAnalysisRecord:
        """Mark an analysis resolved once the team has aligned"""
        record = self._store.resolve_conflict(analysis_id)
        logger.info("Conflict analysis %s resolved", analysis_id)
        return record

    def open_conflicts(self, project_id: str) -> List[ConflictAnalysisRecord]:
        return self._store.list_conflict_analyses(project_id, include_resolved=False)

    def _build_prompt(self, project: Project, module_name: str, clusters: List[Cluster]) -> str:
        hld = truncate(project.hld_text, self._context_chars) if project.hld_text else "No HLD provided"
        lld = truncate(project.lld_text, self._context_chars) if project.lld_text else "No LLD provided"
        return CONFLICT_PROMPT.format(
            project=project.name,
            hld=hld,
            lld=lld,
            module=module_name,
            approaches=render_approaches(clusters),
        )

    @staticmethod
    def _parse(raw: str) -> ConflictAnalysis:
        data = parse_llm_json(raw)
        if data is None:
            logger.error("Failed to parse LLM conflict analysis: %s", raw[:200])
            raise ValueError("AI analysis did not return valid JSON")
        try:
            return ConflictAnalysis.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"AI analysis has an unexpected shape: {e}") from e
