"""
Freshness Stamps - How old is a verified data point?

    age < 24h        fresh     "Verified against WY G&F: 4 hours ago"
    age < 4 days     aging     "Verified: 3 days ago"
    age < 14 days    stale     "Last verified: 8 days ago"
    age >= 14 days   critical  "STALE: Last verified 30 days ago"

Stamps are derived on demand from last_verified_at and never stored.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Union

from utils.normalize import to_datetime, to_naive_utc, utcnow

FRESH_MAX_AGE = timedelta(hours=24)
AGING_MAX_AGE = timedelta(days=4)
STALE_MAX_AGE = timedelta(days=14)


class VerificationMethod(str, Enum):
    CRAWL = "crawl"
    MANUAL = "manual"
    API = "api"
    LKG_FALLBACK = "lkg_fallback"   # last-known-good value served after a failed crawl


class StalenessLevel(str, Enum):
    FRESH = "fresh"
    AGING = "aging"
    STALE = "stale"
    CRITICAL = "critical"


@dataclass(frozen=True)
class FreshnessStamp:
    state_id: str
    field: str
    last_verified_at: datetime
    verification_method: VerificationMethod
    source_url: str
    freshness_label: str
    is_stale: bool
    staleness_level: StalenessLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_id": self.state_id,
            "field": self.field,
            "last_verified_at": self.last_verified_at.isoformat(),
            "verification_method": self.verification_method.value,
            "source_url": self.source_url,
            "freshness_label": self.freshness_label,
            "is_stale": self.is_stale,
            "staleness_level": self.staleness_level.value,
        }


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def compute_freshness_stamp(
    state_id: str,
    field: str,
    last_verified_at: Union[datetime, str],
    source_url: str,
    verification_method: Union[VerificationMethod, str] = VerificationMethod.CRAWL,
    now: Optional[datetime] = None,
) -> FreshnessStamp:
    """
    Stamp a data point with its staleness label and level.

    A last_verified_at in the future (clock skew) counts as "just now".
    """
    verified_at = to_datetime(last_verified_at, field="last_verified_at")
    now = to_naive_utc(now) if now else utcnow()
    age = max(now - verified_at, timedelta(0))

    if age < FRESH_MAX_AGE:
        hours = int(age // timedelta(hours=1))
        if hours == 0:
            label = f"Verified against {state_id} G&F: just now"
        else:
            label = f"Verified against {state_id} G&F: {_plural(hours, 'hour')} ago"
        level = StalenessLevel.FRESH
    elif age < AGING_MAX_AGE:
        label = f"Verified: {_plural(age.days, 'day')} ago"
        level = StalenessLevel.AGING
    elif age < STALE_MAX_AGE:
        label = f"Last verified: {age.days} days ago"
        level = StalenessLevel.STALE
    else:
        label = f"STALE: Last verified {age.days} days ago"
        level = StalenessLevel.CRITICAL

    return FreshnessStamp(
        state_id=state_id,
        field=field,
        last_verified_at=verified_at,
        verification_method=VerificationMethod(verification_method),
        source_url=source_url,
        freshness_label=label,
        is_stale=level in (StalenessLevel.STALE, StalenessLevel.CRITICAL),
        staleness_level=level,
    )
