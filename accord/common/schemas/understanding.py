"""
Understanding Schemas

Records kept in the document store. An Understanding is one developer's
statement of how a module works; everything else is derived from them.

Core principle: an understanding is never edited after it is recorded.
Corrections are recorded as new understandings.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("accord.common.schemas")


def generate_id() -> str:
    """Generate a unique record ID"""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive timestamps (older store files) as UTC"""
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def parse_vector_text(value: str) -> Optional[List[float]]:
    """
    Parse a vector in pgvector text form ("[1,2,3]" or "1,2,3").

    Returns None if the text is not a flat list of numbers.
    """
    text = value.strip()
    if not text.startswith("["):
        text = f"[{text}]"
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list):
        return None
    if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in parsed):
        return None
    return [float(x) for x in parsed]


# ============================================================================
# Enums
# ============================================================================

class ADRStatus(str, Enum):
    """Decision status derived from team consensus"""
    ACCEPTED = "Accepted"
    PROPOSED = "Proposed"
    UNDER_DISCUSSION = "Under Discussion"


class Severity(str, Enum):
    """Risk severity of an unresolved conflict"""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# ============================================================================
# Store records
# ============================================================================

class Project(BaseModel):
    """A project with optional high/low level design documents"""
    id: str = Field(default_factory=generate_id)
    name: str
    hld_text: Optional[str] = None
    lld_text: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class Understanding(BaseModel):
    """
    One developer's understanding of a module.

    `embedding` is None when no usable vector exists. Text in pgvector form is
    accepted and parsed; anything that is not a flat numeric list is dropped
    to None so the record is excluded from clustering rather than rejected.
    An all-zero vector is kept as-is.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    project_id: str
    developer_name: str
    module_name: str
    understanding_text: str
    change_description: Optional[str] = None
    confidence_score: Optional[int] = Field(default=None, ge=1, le=5)
    embedding: Optional[List[float]] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("embedding", mode="before")
    @classmethod
    def _coerce_embedding(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            parsed = parse_vector_text(value)
            if parsed is None:
                logger.warning("Unparseable embedding text, treating as missing")
            return parsed
        if isinstance(value, (list, tuple)):
            if all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value):
                return [float(x) for x in value]
            logger.warning("Embedding contains non-numeric values, treating as missing")
            return None
        if hasattr(value, "tolist"):
            return cls._coerce_embedding(value.tolist())
        logger.warning("Unsupported embedding type %s, treating as missing", type(value).__name__)
        return None

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None and len(self.embedding) > 0


class ADRRecord(BaseModel):
    """A generated Architecture Decision Record"""
    id: str = Field(default_factory=generate_id)
    project_id: str
    module_name: str
    adr_number: int = Field(ge=1)
    title: str
    content: str
    status: ADRStatus
    consensus_percentage: float
    created_at: datetime = Field(default_factory=_utcnow)


class ConflictRisk(BaseModel):
    """What happens if a conflict is left alone"""
    if_unresolved: str = ""
    severity: Severity = Severity.MEDIUM


class ConflictAnalysis(BaseModel):
    """LLM assessment of diverging understandings for one module"""
    root_cause: str = ""
    recommendation: str = ""
    recommended_approach: str = ""
    reasoning: str = ""
    risks: ConflictRisk = Field(default_factory=ConflictRisk)
    action_items: List[str] = Field(default_factory=list)
    technical_considerations: List[str] = Field(default_factory=list)


class ConflictAnalysisRecord(BaseModel):
    """A stored conflict analysis and its resolution state"""
    id: str = Field(default_factory=generate_id)
    project_id: str
    module_name: str
    analysis: ConflictAnalysis
    consensus_percentage: float
    severity: Severity
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)


class ReportRecord(BaseModel):
    """A generated development intelligence report"""
    id: str = Field(default_factory=generate_id)
    project_id: str
    report_number: int = Field(ge=1)
    content: str
    summary: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
