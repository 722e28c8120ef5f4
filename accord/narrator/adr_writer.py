"""
ADR Writer

Turns a module's consensus into an Architecture Decision Record.

The number, status and consensus figure are fixed before the LLM is called;
the LLM only writes the prose. Without an LLM (or if the call fails) the ADR
is rendered from the clusters directly.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..common.llm_client import LLMClient
from ..common.schemas import ADRRecord, format_contributors, format_date, render_adr, render_cluster_block
from ..common.schemas.templates import LOW_ALIGNMENT_NOTE
from ..common.store import DocumentStore, RecordNotFoundError
from ..consensus.analyzer import ConsensusAnalyzer, ModuleConsensus
from ..consensus.engine import ACCEPTED_THRESHOLD

logger = logging.getLogger("accord.narrator.adr_writer")

_TITLE_PATTERN = re.compile(r"# ADR-\d+: (.+)")


@dataclass
class ADRResult:
    """A generated ADR and the numbers it was built from"""
    content: str
    adr_number: int
    title: str
    status: str
    consensus_percentage: float
    adr_id: str
    used_llm: bool


ADR_PROMPT = """Generate an Architecture Decision Record (ADR) in professional format.

Project: {project}
Module: {module}
Team Consensus: {consensus:.1f}%
Total Contributors: {total}

{clusters}

Generate ADR in this EXACT markdown format:

# ADR-{number:03d}: [Descriptive Title for {module} Decision]

**Date:** {date}
**Status:** {status}
**Team Consensus:** {consensus:.1f}%

## Context

[Describe the technical context and why this architectural decision matters. Use information from understandings.]

## Decision

[Clearly state what approach was chosen and WHY. Be specific and technical. Use team's actual reasoning.]

## Rationale

[Explain the reasoning behind this decision. Include technical considerations mentioned by team members.]

## Consequences

### Positive
- [Benefits based on team understanding]

### Negative
- [Trade-offs if any mentioned]

## Alternatives Considered

[If multiple approaches exist, describe alternatives and why they weren't chosen]

## Implementation Notes

[Practical implementation details from team understandings]

## Team Alignment

- **Consensus Level:** {consensus:.1f}%
- **Contributors:** {contributors}
- **Date Established:** {date}

{note}

Use technical language and be specific. Return ONLY the markdown, no other text."""


def extract_title(content: str, module_name: str) -> str:
    """Title from the '# ADR-NNN: <title>' heading, or a default for the module"""
    match = _TITLE_PATTERN.search(content)
    if match:
        return match.group(1).strip()
    return f"{module_name} Architecture Decision"


class ADRWriter:
    """
    Generates and stores ADRs for modules.

    Falls back to template rendering if the LLM is not available.
    """

    def __init__(self, store: DocumentStore, llm: Optional[LLMClient] = None):
        self._store = store
        self._llm = llm
        self._analyzer = ConsensusAnalyzer(store)

    @property
    def has_llm(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def generate(self, project_id: str, module_name: str, today: Optional[date] = None) -> ADRResult:
        """
        Generate, store and return the next ADR for a module.

        Raises:
            RecordNotFoundError: Unknown project, or no understandings for the module
        """
        today = today or date.today()
        project = self._store.get_project(project_id)
        consensus = self._analyzer.analyze_module(project_id, module_name)
        if not consensus.understandings:
            raise RecordNotFoundError(f"No understandings found for module: {module_name}")

        number = self._store.next_adr_number(project_id)
        status = consensus.status.value
        logger.info("Generating ADR-%03d for module: %s", number, module_name)

        content = None
        if self.has_llm:
            try:
                content = self._llm.generate(self._build_prompt(project.name, consensus, number, status, today))
            except Exception as e:
                logger.warning("LLM ADR generation failed, using template: %s", e)

        used_llm = bool(content)
        if not content:
            content = render_adr(
                number=number,
                title=f"{module_name} Architecture Decision",
                module=module_name,
                status=status,
                consensus=consensus.consensus_percentage,
                clusters=consensus.clusters,
                understandings=consensus.understandings,
                day=today,
                low_alignment_threshold=ACCEPTED_THRESHOLD,
            )

        title = extract_title(content, module_name)
        record = self._store.save_adr(ADRRecord(
            project_id=project_id,
            module_name=module_name,
            adr_number=number,
            title=title,
            content=content,
            status=consensus.status,
            consensus_percentage=round(consensus.consensus_percentage, 1),
        ))

        return ADRResult(
            content=content,
            adr_number=number,
            title=title,
            status=status,
            consensus_percentage=consensus.consensus_percentage,
            adr_id=record.id,
            used_llm=used_llm,
        )

    def _build_prompt(
        self,
        project_name: str,
        consensus: ModuleConsensus,
        number: int,
        status: str,
        today: date,
    ) -> str:
        clusters = "\n\n".join(render_cluster_block(c) for c in consensus.clusters)
        note = ""
        if consensus.consensus_percentage < ACCEPTED_THRESHOLD:
            note = LOW_ALIGNMENT_NOTE

        return ADR_PROMPT.format(
            project=project_name,
            module=consensus.module_name,
            consensus=consensus.consensus_percentage,
            total=len(consensus.understandings),
            clusters=clusters or "(not enough embedded understandings to cluster)",
            number=number,
            date=format_date(today),
            status=status,
            contributors=format_contributors(consensus.understandings),
            note=note,
        )
