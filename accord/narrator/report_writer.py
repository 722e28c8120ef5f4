"""
Report Writer

Builds a project-wide Development Intelligence Report: activity over the
recent window, per-module alignment and the original design intent.

All figures come from the consensus analyzer. The LLM, when configured,
turns them into a narrative; otherwise the figures are rendered as Markdown.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..common.llm_client import LLMClient
from ..common.schemas import REPORT_TEMPLATE, Project, ReportRecord, Understanding, as_utc, format_date, truncate
from ..common.store import DocumentStore
from ..consensus.analyzer import ConsensusAnalyzer, ModuleConsensus
from ..consensus.engine import PROPOSED_THRESHOLD

logger = logging.getLogger("accord.narrator.report_writer")

HIGHLIGHT_COUNT = 5
_SUMMARY_PATTERN = re.compile(r"## Executive Summary\s+([\s\S]*?)(?=\n##|$)")


@dataclass
class ReportResult:
    """A generated report and its metadata snapshot"""
    content: str
    report_number: int
    summary: str
    metadata: Dict[str, Any]
    report_id: str
    used_llm: bool


REPORT_PROMPT = """You are a technical project manager generating a Development Intelligence Report.

Project: {project}
Report Date: {date}

=== Project Overview ===
Total Modules: {module_count}
Total Understandings: {understanding_count}
Active Contributors: {contributor_count}

=== Module Activity (Last {recent_days} Days) ===
{activity}

=== Team Alignment Status ===
{alignment}

=== Recent Understanding Highlights ===
{highlights}

=== Original Design Intent ===
HLD Key Points: {hld}
LLD Key Points: {lld}

Generate a Development Intelligence Report in markdown with these sections:
## Executive Summary (2-3 sentences on overall project health)
## Active Development Areas (per module: alignment, contributors, what is being built, team approach; flag alignment below 70%)
## Risk Areas & Action Items (High Priority / Medium Priority)
## Well-Aligned Modules (above 80% consensus)
## Architecture Evolution (design intent vs. current understanding)
## Knowledge Gaps (modules with few understandings or low confidence)
## Recommended Next Steps (numbered)

Use only the figures above; do not invent consensus numbers. Return ONLY the markdown, no other text."""


def _days_ago(moment: datetime, now: datetime) -> int:
    return max(0, (now - as_utc(moment)).days)


class ReportWriter:
    """
    Generates and stores development reports for a project.

    Falls back to template rendering if the LLM is not available.
    """

    def __init__(
        self,
        store: DocumentStore,
        llm: Optional[LLMClient] = None,
        recent_days: int = 7,
        excerpt_chars: int = 500,
    ):
        self._store = store
        self._llm = llm
        self._recent_days = recent_days
        self._excerpt_chars = excerpt_chars
        self._analyzer = ConsensusAnalyzer(store)

    @property
    def has_llm(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def generate(self, project_id: str, now: Optional[datetime] = None) -> ReportResult:
        """
        Generate, store and return a report for the project.

        Raises:
            RecordNotFoundError: Unknown project
            ValueError: The project has no understandings yet
        """
        now = now or datetime.now(timezone.utc)
        project = self._store.get_project(project_id)
        understandings = self._store.list_understandings(project_id)
        if not understandings:
            raise ValueError("No understandings found for this project")

        logger.info("Generating Development Intelligence Report for project: %s", project_id)

        modules = self._analyzer.analyze_project(project_id)
        cutoff = now - timedelta(days=self._recent_days)
        recent = [u for u in understandings if as_utc(u.created_at) >= cutoff]
        recent.sort(key=lambda u: as_utc(u.created_at), reverse=True)

        metadata = self._build_metadata(understandings, modules, recent)
        sections = self._build_sections(project, understandings, modules, recent, now)
        sections["executive_summary"] = self._summarize(metadata)

        content = None
        if self.has_llm:
            try:
                content = self._llm.generate(REPORT_PROMPT.format(**sections), max_tokens=4096)
            except Exception as e:
                logger.warning("LLM report generation failed, using template: %s", e)

        used_llm = bool(content)
        if not content:
            content = REPORT_TEMPLATE.format(**sections).strip() + "\n"

        summary = self._extract_summary(content)
        record = self._store.save_report(ReportRecord(
            project_id=project_id,
            report_number=self._store.next_report_number(project_id),
            content=content,
            summary=summary,
            metadata=metadata,
        ))

        return ReportResult(
            content=content,
            report_number=record.report_number,
            summary=summary,
            metadata=metadata,
            report_id=record.id,
            used_llm=used_llm,
        )

    def _build_sections(
        self,
        project: Project,
        understandings: List[Understanding],
        modules: List[ModuleConsensus],
        recent: List[Understanding],
        now: datetime,
    ) -> Dict[str, Any]:
        contributors = {u.developer_name for u in understandings}

        recent_by_module: Dict[str, List[Understanding]] = {}
        for u in recent:
            recent_by_module.setdefault(u.module_name, []).append(u)

        activity_lines = []
        for module_name, items in recent_by_module.items():
            latest = items[0]
            activity_lines.append(
                f"- {module_name}: {len(items)} new understanding(s)\n"
                f"  Latest by {latest.developer_name} {_days_ago(latest.created_at, now)} days ago"
            )

        alignment_lines = []
        for m in modules:
            if m.insufficient_data:
                alignment_lines.append(
                    f"- {m.module_name}: not enough data ({m.valid_count} embedded understanding(s))"
                )
                continue
            line = f"- {m.module_name}: {m.consensus_percentage:.1f}% consensus"
            if len(m.clusters) >= 2:
                for cluster in m.clusters[:2]:
                    line += f"\n  * {cluster.percentage:.1f}%: {truncate(cluster.representative_text, 80)}"
            alignment_lines.append(line)

        highlight_lines = [
            f'- {u.module_name} by {u.developer_name}: "{truncate(u.understanding_text, 100)}"'
            for u in recent[:HIGHLIGHT_COUNT]
        ]

        return {
            "project": project.name,
            "date": format_date(now.date()),
            "module_count": len(modules),
            "understanding_count": len(understandings),
            "contributor_count": len(contributors),
            "recent_days": self._recent_days,
            "activity": "\n".join(activity_lines) or "No recent activity",
            "alignment": "\n".join(alignment_lines) or "No modules yet",
            "highlights": "\n".join(highlight_lines) or "No recent understandings",
            "hld": truncate(project.hld_text, self._excerpt_chars) if project.hld_text else "No HLD provided",
            "lld": truncate(project.lld_text, self._excerpt_chars) if project.lld_text else "No LLD provided",
        }

    @staticmethod
    def _build_metadata(
        understandings: List[Understanding],
        modules: List[ModuleConsensus],
        recent: List[Understanding],
    ) -> Dict[str, Any]:
        analyzed = [m for m in modules if not m.insufficient_data]
        avg_consensus = None
        if analyzed:
            avg_consensus = round(sum(m.consensus_percentage for m in analyzed) / len(analyzed), 1)
        return {
            "total_understandings": len(understandings),
            "total_modules": len(modules),
            "active_contributors": len({u.developer_name for u in understandings}),
            "avg_consensus": avg_consensus,
            "recent_activity_count": len(recent),
            "low_consensus_modules": sum(1 for m in analyzed if m.consensus_percentage < PROPOSED_THRESHOLD),
            "insufficient_data_modules": len(modules) - len(analyzed),
        }

    @staticmethod
    def _extract_summary(content: str) -> str:
        match = _SUMMARY_PATTERN.search(content)
        if match:
            return match.group(1).strip()[:300]
        return ""

    @staticmethod
    def _summarize(metadata: Dict[str, Any]) -> str:
        """One-paragraph summary of the metadata, used when no LLM writes one"""
        parts = [
            f"{metadata['total_understandings']} understanding(s) across "
            f"{metadata['total_modules']} module(s) from "
            f"{metadata['active_contributors']} contributor(s)."
        ]
        if metadata["avg_consensus"] is not None:
            parts.append(f"Average module consensus is {metadata['avg_consensus']:.1f}%.")
        if metadata["low_consensus_modules"]:
            parts.append(
                f"{metadata['low_consensus_modules']} module(s) are below "
                f"{PROPOSED_THRESHOLD:.0f}% consensus and need discussion."
            )
        if metadata["insufficient_data_modules"]:
            parts.append(
                f"{metadata['insufficient_data_modules']} module(s) do not have enough "
                "understandings to measure yet."
            )
        return " ".join(parts)
