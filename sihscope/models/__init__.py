from sihscope.models.problem import (
    DEFAULT_ORGANIZATION_NAME,
    DEFAULT_ORGANIZATION_SECTOR,
    DEFAULT_ORGANIZATION_TYPE,
    Difficulty,
    ProblemStatement,
    edition_label,
)
from sihscope.models.session import (
    DEFAULT_FRESHNESS,
    OutcomeStatus,
    ScrapingSession,
    SessionError,
    SessionStatus,
    YearOutcome,
)

__all__ = [
    "DEFAULT_FRESHNESS",
    "DEFAULT_ORGANIZATION_NAME",
    "DEFAULT_ORGANIZATION_SECTOR",
    "DEFAULT_ORGANIZATION_TYPE",
    "Difficulty",
    "OutcomeStatus",
    "ProblemStatement",
    "ScrapingSession",
    "SessionError",
    "SessionStatus",
    "YearOutcome",
    "edition_label",
]
