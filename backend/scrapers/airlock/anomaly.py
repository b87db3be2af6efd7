"""
Anomaly detection - z-score check of scraped fees against approved history.

The diff compares a value with the single live value and the sanity bounds
are fixed per state. Neither notices a fee that is plausible on its own but
out of line with every price previously approved for the same slot.

Rules per fee slot (residency, field, species):
    fewer than 2 history points  -> never an anomaly
    constant history             -> any different value is an anomaly
    otherwise                    -> anomaly when |z| > threshold_sigma

History is one point per approved batch, using the population standard
deviation. Anomalies become warn diffs (see anomaly_diffs): the batch is
quarantined for review, never blocked outright.
"""
import logging
import math
import statistics
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from scrapers.airlock.sanity import NONRESIDENT, RESIDENT
from scrapers.airlock.snapshot_builder import build_fee_data
from scrapers.airlock.types import DiffCategory, DiffEntry, DiffSeverity, FeeData, StagingSnapshot

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_SIGMA = 3.0
MIN_HISTORY_POINTS = 2

# (residency, field, species_id)
FeeKey = Tuple[str, str, Optional[str]]


@dataclass(frozen=True)
class AnomalyCheckResult:
    field: str
    new_value: float
    historical_mean: float
    historical_std_dev: float
    z_score: float
    threshold: float
    is_anomaly: bool
    explanation: str
    history_size: int = 0
    species_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "species_id": self.species_id,
            "new_value": self.new_value,
            "historical_mean": self.historical_mean,
            "historical_std_dev": self.historical_std_dev,
            "z_score": self.z_score if math.isfinite(self.z_score) else None,
            "threshold": self.threshold,
            "is_anomaly": self.is_anomaly,
            "history_size": self.history_size,
            "explanation": self.explanation,
        }


def check_anomaly(
    field: str,
    new_value: float,
    history: Sequence[float],
    threshold_sigma: float = DEFAULT_THRESHOLD_SIGMA,
    species_id: Optional[str] = None,
) -> AnomalyCheckResult:
    """Compare new_value with its history."""
    if len(history) < MIN_HISTORY_POINTS:
        return AnomalyCheckResult(
            field=field,
            new_value=new_value,
            historical_mean=new_value,
            historical_std_dev=0.0,
            z_score=0.0,
            threshold=threshold_sigma,
            is_anomaly=False,
            explanation=(
                f"Insufficient history for anomaly detection "
                f"(need at least {MIN_HISTORY_POINTS} points, have {len(history)})"
            ),
            history_size=len(history),
            species_id=species_id,
        )

    mean = statistics.fmean(history)
    std_dev = statistics.pstdev(history)

    if std_dev == 0:
        is_anomaly = new_value != mean
        return AnomalyCheckResult(
            field=field,
            new_value=new_value,
            historical_mean=mean,
            historical_std_dev=0.0,
            z_score=math.inf if is_anomaly else 0.0,
            threshold=threshold_sigma,
            is_anomaly=is_anomaly,
            explanation=(
                f"History is constant at {mean:,.2f}; {new_value:,.2f} is a departure"
                if is_anomaly
                else f"Matches constant history ({mean:,.2f})"
            ),
            history_size=len(history),
            species_id=species_id,
        )

    z_score = abs(new_value - mean) / std_dev
    is_anomaly = z_score > threshold_sigma
    if is_anomaly:
        explanation = (
            f"{new_value:,.2f} is {z_score:.1f} sigma from historical mean {mean:,.2f} "
            f"(threshold {threshold_sigma:g}); history range {min(history):,.2f}-{max(history):,.2f}"
        )
    else:
        explanation = f"Within normal range: {z_score:.1f} sigma from mean {mean:,.2f}"
    return AnomalyCheckResult(
        field=field,
        new_value=new_value,
        historical_mean=mean,
        historical_std_dev=std_dev,
        z_score=z_score,
        threshold=threshold_sigma,
        is_anomaly=is_anomaly,
        explanation=explanation,
        history_size=len(history),
        species_id=species_id,
    )


# =============================================================================
# FEE SLOTS
# =============================================================================

def fee_values(fees: FeeData) -> Dict[FeeKey, float]:
    """Every present fee amount in a fee section, keyed by slot."""
    values: Dict[FeeKey, float] = {}
    sides = [
        (NONRESIDENT, fees.license_fees, fees.tag_costs, fees.point_cost),
        (RESIDENT, fees.resident_license_fees, fees.resident_tag_costs or {}, fees.resident_point_cost or {}),
    ]
    for residency, license_fees, tag_costs, point_cost in sides:
        if license_fees is not None:
            for name, _label, amount in license_fees.items():
                if amount is not None:
                    values[(residency, name, None)] = amount
        for field, per_species in (("tag_cost", tag_costs), ("point_cost", point_cost)):
            for species_id, amount in per_species.items():
                if amount is not None:
                    values[(residency, field, species_id)] = amount
    return values


def fee_history(approved_rows: Iterable[Any]) -> Dict[FeeKey, List[float]]:
    """
    Per-slot history from approved fee rows: one point per batch.

    Rows should arrive ordered by pull time; batches keep that order.
    """
    by_batch: Dict[str, List[Any]] = {}
    for row in approved_rows:
        by_batch.setdefault(row.scrape_batch_id, []).append(row)

    history: Dict[FeeKey, List[float]] = {}
    for rows in by_batch.values():
        for key, amount in fee_values(build_fee_data(rows)).items():
            history.setdefault(key, []).append(amount)
    return history


def detect_fee_anomalies(
    fees: FeeData,
    history: Mapping[FeeKey, Sequence[float]],
    threshold_sigma: float = DEFAULT_THRESHOLD_SIGMA,
) -> List[AnomalyCheckResult]:
    """Anomalous slots of a fee section; slots without history are skipped."""
    anomalies = []
    for (residency, field, species_id), amount in fee_values(fees).items():
        result = check_anomaly(
            f"{residency}.{field}",
            amount,
            history.get((residency, field, species_id), ()),
            threshold_sigma,
            species_id,
        )
        if result.is_anomaly:
            anomalies.append(result)
    return anomalies


def anomaly_diffs(snapshot: StagingSnapshot, anomalies: Sequence[AnomalyCheckResult]) -> List[DiffEntry]:
    """Turn anomalies into warn DiffEntries for the verdict."""
    stamp = snapshot.captured_at.strftime("%Y%m%dT%H%M%S")
    diffs = []
    for anomaly in anomalies:
        field = f"anomaly.{anomaly.field}"
        if anomaly.species_id:
            field = f"{field}.{anomaly.species_id}"
        diffs.append(DiffEntry(
            id=f"diff-{snapshot.state_id}-{field}-{stamp}",
            category=DiffCategory.FEE,
            field=field,
            label=f"{snapshot.state_id} {anomaly.field} vs approved history",
            severity=DiffSeverity.WARN,
            old_value=round(anomaly.historical_mean, 2),
            new_value=anomaly.new_value,
            change_description=anomaly.explanation,
            tolerance_rule=f"|z| > {anomaly.threshold:g} sigma over {anomaly.history_size} approved batches = WARN",
            species_id=anomaly.species_id,
        ))
    return diffs
