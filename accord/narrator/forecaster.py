"""
Forecaster

Early-warning narrative for a project: who is drifting from the team's view
of a module, which modules are holding steady, and what to do next.

Drift figures come from the drift analyzer. The LLM, when configured, only
writes recommendations around them; otherwise they are rendered as Markdown.
Forecasts are computed on demand and not stored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from ..common.llm_client import LLMClient
from ..common.store import DocumentStore
from ..consensus.drift import DriftAnalyzer, DriftReport

logger = logging.getLogger("accord.narrator.forecaster")


@dataclass
class ForecastResult:
    """Drift figures for a project plus their narration"""
    report: DriftReport
    narrative: str
    used_llm: bool


FORECAST_PROMPT = """You are a predictive analytics AI for software development teams.

Analyze the drift figures below and forecast potential alignment issues before they become conflicts.

=== Developer Drift (latest recent understanding vs. first, last {recent_days} days) ===
{drifts}

=== Module Consensus ===
{forecasts}

=== Stable Modules ===
{stable}

Write a short markdown early-warning brief with these sections:
## Early Warnings (one bullet per drifting developer/module: why it matters, concrete recommendation)
## Consensus Forecast (per module: likely direction over the next 1-2 weeks and the reason)
## Stable Areas

Use only the figures above; do not invent similarity or consensus numbers. Return ONLY the markdown, no other text."""


class Forecaster:
    """
    Narrates drift analysis for a project.

    Falls back to template rendering if the LLM is not available.
    """

    def __init__(self, store: DocumentStore, llm: Optional[LLMClient] = None, recent_days: int = 7):
        self._llm = llm
        self._recent_days = recent_days
        self._analyzer = DriftAnalyzer(store, recent_days=recent_days)

    @property
    def has_llm(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def generate(self, project_id: str, now: Optional[datetime] = None) -> ForecastResult:
        """
        Analyze drift and narrate it.

        Raises:
            RecordNotFoundError: Unknown project
        """
        report = self._analyzer.analyze(project_id, now=now)
        if report.insufficient_data:
            return ForecastResult(report=report, narrative=report.message, used_llm=False)

        drifts = self._drift_lines(report)
        forecasts = self._forecast_lines(report)
        stable = ", ".join(report.stable_modules) or "None yet"

        narrative = None
        if self.has_llm:
            try:
                narrative = self._llm.generate(
                    FORECAST_PROMPT.format(
                        recent_days=self._recent_days,
                        drifts="\n".join(drifts),
                        forecasts="\n".join(forecasts),
                        stable=stable,
                    ),
                    max_tokens=2048,
                )
            except Exception as e:
                logger.warning("LLM forecast failed, using template: %s", e)

        used_llm = bool(narrative)
        if not narrative:
            narrative = self._render(drifts, forecasts, stable)
        return ForecastResult(report=report, narrative=narrative, used_llm=used_llm)

    @staticmethod
    def _drift_lines(report: DriftReport) -> List[str]:
        lines = []
        for drift in report.drifts:
            lines.append(
                f"- {drift.developer} on {drift.module}: {drift.similarity_trend * 100:.0f}% similar to "
                f"their first understanding ({drift.recent_count} recent of {drift.total_count}), "
                f"{drift.trend}\n"
                f'  Latest: "{drift.recent_understanding}"'
            )
        return lines or ["- No developer has enough recent history to measure drift"]

    @staticmethod
    def _forecast_lines(report: DriftReport) -> List[str]:
        lines = []
        for forecast in report.forecasts:
            if forecast.insufficient_data:
                lines.append(f"- {forecast.module}: not enough data")
                continue
            line = f"- {forecast.module}: {forecast.current_consensus:.1f}% consensus, {forecast.trend}"
            if forecast.drifting_developers:
                line += f" (drifting: {', '.join(forecast.drifting_developers)})"
            lines.append(line)
        return lines or ["- No modules yet"]

    @staticmethod
    def _render(drifts: List[str], forecasts: List[str], stable: str) -> str:
        return (
            "## Developer Drift\n\n" + "\n".join(drifts) + "\n\n"
            "## Consensus Forecast\n\n" + "\n".join(forecasts) + "\n\n"
            "## Stable Areas\n\n" + stable + "\n"
        )
