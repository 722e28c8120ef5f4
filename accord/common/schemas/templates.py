"""
Markdown Templates

Renders consensus results as Markdown. Used directly when no LLM is configured,
and as the cluster summaries fed into LLM prompts when one is.
"""

from datetime import date
from typing import TYPE_CHECKING, List, Sequence

if TYPE_CHECKING:
    from ...consensus.engine import Cluster
    from .understanding import Understanding


ADR_TEMPLATE = """# ADR-{number:03d}: {title}

**Date:** {date}
**Status:** {status}
**Team Consensus:** {consensus:.1f}%

## Context

{total} understanding(s) of the {module} module were recorded by the team.

## Decision

{decision}

## Alternatives Considered

{alternatives}

## Team Alignment

- **Consensus Level:** {consensus:.1f}%
- **Contributors:** {contributors}
- **Date Established:** {date}

{note}
"""


REPORT_TEMPLATE = """# Development Intelligence Report: {project}

**Report Date:** {date}

## Executive Summary

{executive_summary}

## Project Overview

- Total Modules: {module_count}
- Total Understandings: {understanding_count}
- Active Contributors: {contributor_count}

## Module Activity (Last {recent_days} Days)

{activity}

## Team Alignment Status

{alignment}

## Recent Understanding Highlights

{highlights}

## Original Design Intent

HLD Key Points: {hld}

LLD Key Points: {lld}
"""


LOW_ALIGNMENT_NOTE = "**Note:** Moderate team alignment. Recommend follow-up discussion."


def format_date(day: date) -> str:
    """Long US-style date, e.g. 'October 19, 2026'"""
    return f"{day:%B} {day.day}, {day.year}"


def truncate(text: str, limit: int) -> str:
    """Cut text to `limit` characters, marking the cut with '...'"""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def format_contributor(understanding: "Understanding") -> str:
    """'Name (4/5)', with N/A for a missing confidence"""
    score = understanding.confidence_score or "N/A"
    return f"{understanding.developer_name} ({score}/5)"


def format_contributors(understandings: Sequence["Understanding"]) -> str:
    if not understandings:
        return "(none)"
    return ", ".join(format_contributor(u) for u in understandings)


def cluster_heading(cluster: "Cluster") -> str:
    """'Majority Understanding' for rank 1, 'Alternative N' for the rest"""
    if cluster.rank == 1:
        return "Majority Understanding"
    return f"Alternative {cluster.rank - 1}"


def render_cluster_block(cluster: "Cluster") -> str:
    """One cluster as a prompt/report section"""
    return (
        f"=== {cluster_heading(cluster)} ({cluster.percentage:.1f}%) ===\n"
        f"{cluster.representative_text}\n"
        f"Team members: {format_contributors(cluster.members)}"
    )


def render_alternatives(clusters: Sequence["Cluster"]) -> str:
    """Bullets for every cluster after the majority one"""
    alternatives = clusters[1:]
    if not alternatives:
        return "- (none: the team converged on a single approach)"

    lines: List[str] = []
    for cluster in alternatives:
        lines.append(
            f"- {cluster_heading(cluster)} ({cluster.percentage:.1f}%): "
            f"{cluster.representative_text}"
        )
    return "\n".join(lines)


def render_adr(
    number: int,
    title: str,
    module: str,
    status: str,
    consensus: float,
    clusters: Sequence["Cluster"],
    understandings: Sequence["Understanding"],
    day: date,
    low_alignment_threshold: float,
) -> str:
    """Render an ADR straight from the clusters, without an LLM."""
    decision = clusters[0].representative_text if clusters else "(no agreed approach yet)"
    note = LOW_ALIGNMENT_NOTE if consensus < low_alignment_threshold else ""

    text = ADR_TEMPLATE.format(
        number=number,
        title=title,
        date=format_date(day),
        status=status,
        consensus=consensus,
        total=len(understandings),
        module=module,
        decision=decision,
        alternatives=render_alternatives(clusters),
        contributors=format_contributors(understandings),
        note=note,
    )
    return text.strip() + "\n"
