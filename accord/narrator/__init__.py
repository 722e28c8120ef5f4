"""
Narrator - Human-readable output from consensus results

Turns computed consensus into documents. Every figure is computed locally
first; an LLM, when configured, only writes the prose.

Key Components:
- ADRWriter: Architecture Decision Records per module
- ConflictAnalyzer: LLM assessment of diverging clusters (LLM required)
- ReportWriter: Project-wide Development Intelligence Report
- Forecaster: early warnings on developer drift
"""

from .adr_writer import ADRWriter, ADRResult
from .conflict_analyzer import ConflictAnalyzer
from .forecaster import Forecaster, ForecastResult
from .report_writer import ReportWriter, ReportResult

__all__ = [
    "ADRWriter",
    "ADRResult",
    "ConflictAnalyzer",
    "Forecaster",
    "ForecastResult",
    "ReportWriter",
    "ReportResult",
]
