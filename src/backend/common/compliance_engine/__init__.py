"""Provider-agnostic compliance policy engine.

This package contains only evaluation logic:
- Inputs are resource inventory records, rule rows and an optional live provider.
- No persistence, HTTP routing, or credential handling lives here.
"""

from .context import ConditionOutcome, EvaluationContext
from .models import (
    AccountRuleOverride,
    ComplianceProfile,
    ComplianceRule,
    ConditionType,
    EvaluationReport,
    Finding,
    FindingNote,
    FindingStatus,
    Resource,
    ResourceComplianceHistoryEntry,
    ScoreHistoryEntry,
    Severity,
)
from .provider import LiveAccountProvider, ProviderError
from .runner import ComplianceRunner

# Import condition modules so they self-register with the global registry.
from . import conditions as _conditions  # noqa: F401
