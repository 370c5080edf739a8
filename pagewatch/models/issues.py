"""Pydantic models for DevTools audit issues.

This module defines the Issue model built from raw ``Audits.issueAdded``
payloads and the AggregatedIssue model that groups repeated issues of the
same kind into a single, updatable record.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


# Detail fields that identify the kind of problem an issue reports, keyed by
# issue code. Values are dotted paths into the issue details.
AGGREGATION_FIELDS: Dict[str, Tuple[str, ...]] = {
    "CookieIssue": (
        "cookieIssueDetails.cookieExclusionReasons",
        "cookieIssueDetails.cookieWarningReasons",
        "cookieIssueDetails.operation",
    ),
    "MixedContentIssue": (
        "mixedContentIssueDetails.resolutionStatus",
        "mixedContentIssueDetails.resourceType",
    ),
    "BlockedByResponseIssue": ("blockedByResponseIssueDetails.reason",),
    "HeavyAdIssue": ("heavyAdIssueDetails.reason", "heavyAdIssueDetails.resolution"),
    "ContentSecurityPolicyIssue": (
        "contentSecurityPolicyIssueDetails.contentSecurityPolicyViolationType",
    ),
    "CorsIssue": ("corsIssueDetails.corsErrorStatus.corsError",),
    "DeprecationIssue": ("deprecationIssueDetails.type",),
    "GenericIssue": ("genericIssueDetails.errorType",),
    "LowTextContrastIssue": ("lowTextContrastIssueDetails.violatingNodeSelector",),
    "QuirksModeIssue": ("quirksModeIssueDetails.isLimitedQuirksMode",),
    "AttributionReportingIssue": ("attributionReportingIssueDetails.violationType",),
    "SharedArrayBufferIssue": ("sharedArrayBufferIssueDetails.type",),
}


def _resolve(details: Dict[str, Any], path: str) -> Any:
    value: Any = details
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class Issue(BaseModel):
    """A single audit issue reported by the browser."""

    code: str = Field(description="Protocol issue code, e.g. CookieIssue")
    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Protocol issue details"
    )
    issue_id: Optional[str] = Field(
        default=None,
        description="Protocol issue id, when the browser supplies one"
    )

    @field_validator('code')
    @classmethod
    def validate_code(cls, v):
        if not v:
            raise ValueError("Issue code must not be empty")
        return v

    def primary_key(self) -> str:
        """Key identifying verbatim repeats of the same raw issue."""
        return f"{self.code}-{json.dumps(self.details, sort_keys=True, default=str)}"

    def aggregation_key(self) -> str:
        """Key grouping issues that report the same kind of problem."""
        fields = AGGREGATION_FIELDS.get(self.code, ())
        parts = [self.code]
        for path in fields:
            value = _resolve(self.details, path)
            if value is not None:
                parts.append(json.dumps(value, sort_keys=True, default=str))
        return "::".join(parts)


class AggregatedIssue(BaseModel):
    """All issues sharing an aggregation key.

    The aggregator updates one instance in place as more issues arrive, so
    consumers can rely on object identity across update notifications.
    """

    code: str = Field(description="Protocol issue code")
    aggregation_key: str = Field(description="Key the issues were grouped by")
    issues: List[Issue] = Field(default_factory=list, description="Aggregated issues")
    first_seen: datetime = Field(default_factory=datetime.utcnow)
    last_seen: datetime = Field(default_factory=datetime.utcnow)

    @property
    def count(self) -> int:
        return len(self.issues)

    def add_issue(self, issue: Issue) -> None:
        """Merge another issue into this aggregate."""
        self.issues.append(issue)
        self.last_seen = datetime.utcnow()

    def __repr__(self) -> str:
        return f"AggregatedIssue(code={self.code!r}, count={self.count})"
