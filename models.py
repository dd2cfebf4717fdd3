from datetime import datetime
from typing import Annotated, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from risk import IssueType, RiskLevel, Severity, classify_risk

MIN_LOG_CONTENT = 10
MAX_LOG_CONTENT = 1_000_000

Tag = Annotated[str, Field(min_length=2, max_length=50)]
Title = Annotated[str, Field(min_length=3, max_length=200)]

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SecurityThreat(CamelModel):
    model_config = ConfigDict(frozen=True)

    severity: Severity = Field(..., description="Critical | High | Medium | Low | Informational")
    description: str
    recommendation: str
    timestamp: str = Field("N/A", description="Timestamp from the log, 'N/A' when unknown")
    category: Optional[str] = None
    risk_score: Optional[int] = Field(None, ge=0, le=100)


class OperationalIssue(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: IssueType = Field(..., description="Error | Warning | Performance | Info")
    description: str
    recommendation: str
    timestamp: str = Field("N/A", description="Timestamp from the log, 'N/A' when unknown")
    category: Optional[str] = None
    impact: Optional[str] = None


class LogAnalysisResult(CamelModel):
    """Output of one analysis, from either the AI path or the fallback.

    Totals and the overall risk level are derived from the two lists on
    every access; they are never read from input.
    """

    model_config = ConfigDict(frozen=True)

    summary: str = Field(..., min_length=1)
    security_threats: tuple[SecurityThreat, ...] = ()
    operational_issues: tuple[OperationalIssue, ...] = ()

    @computed_field(alias="totalThreats")
    @property
    def total_threats(self) -> int:
        return len(self.security_threats)

    @computed_field(alias="totalIssues")
    @property
    def total_issues(self) -> int:
        return len(self.operational_issues)

    @computed_field(alias="overallRiskLevel")
    @property
    def overall_risk_level(self) -> RiskLevel:
        return classify_risk(self.security_threats, self.operational_issues)


class AnalysisMetadata(CamelModel):
    processing_time: float = Field(..., description="Wall-clock milliseconds spent in the pipeline")
    log_size: int = Field(..., description="Characters in the raw submitted log")
    lines_analyzed: int
    mode: Literal["ai", "fallback"]
    attempts: int = Field(0, description="AI attempts made; 0 when the AI path is disabled")


class AnalysisReport(CamelModel):
    model_config = ConfigDict(frozen=True)

    result: LogAnalysisResult
    metadata: AnalysisMetadata


class HistoryEntry(CamelModel):
    id: str
    owner_id: str
    title: str
    log_content: str
    analysis: LogAnalysisResult
    metadata: AnalysisMetadata
    tags: list[str] = Field(default_factory=list)
    is_public: bool = False
    created_at: datetime
    updated_at: datetime


class AnalyzeRequest(CamelModel):
    log_content: str = Field(..., min_length=MIN_LOG_CONTENT, max_length=MAX_LOG_CONTENT,
                             description="Raw log text to analyze")
    title: Optional[Title] = None
    tags: list[Tag] = Field(default_factory=list, max_length=10)
    is_public: bool = False


class LogSubmission(AnalyzeRequest):
    """Analysis request delivered through the ingest queue or Kafka."""

    owner_id: str = Field(..., min_length=1, description="Owner the stored entry belongs to")


class HistoryUpdate(CamelModel):
    title: Optional[Title] = None
    tags: Optional[list[Tag]] = Field(None, max_length=10)
    is_public: Optional[bool] = None


class BulkDeleteRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1)


class BulkDeleteResult(CamelModel):
    deleted_count: int


class Page(CamelModel, Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int
    pages: int


class AnalysisStats(CamelModel):
    total_analyses: int = 0
    total_threats: int = 0
    total_issues: int = 0
    avg_processing_time: float = 0.0
    risk_level_distribution: dict[str, int] = Field(default_factory=dict)
