"""
Accord Record Schemas

Projects, understandings and the documents derived from them.
"""

from .understanding import (
    Project,
    Understanding,
    ADRRecord,
    ADRStatus,
    ConflictAnalysis,
    ConflictAnalysisRecord,
    ConflictRisk,
    ReportRecord,
    Severity,
    as_utc,
    generate_id,
    parse_vector_text,
)
from .templates import (
    render_adr,
    render_cluster_block,
    format_contributors,
    format_date,
    truncate,
    REPORT_TEMPLATE,
)

__all__ = [
    "Project",
    "Understanding",
    "ADRRecord",
    "ADRStatus",
    "ConflictAnalysis",
    "ConflictAnalysisRecord",
    "ConflictRisk",
    "ReportRecord",
    "Severity",
    "as_utc",
    "generate_id",
    "parse_vector_text",
    "render_adr",
    "render_cluster_block",
    "format_contributors",
    "format_date",
    "truncate",
    "REPORT_TEMPLATE",
]
