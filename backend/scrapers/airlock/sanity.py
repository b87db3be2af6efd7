"""
Sanity constraints - hard bounds on fee values.

The diff evaluator only compares against the baseline, so a first-seen
value passes silently. These bounds catch the obvious scrape errors the
diff cannot: a $55 non-resident elk tag, a $0 qualifying license, NaN.

Violations are converted to block diffs by the orchestrator (see
sanity_violation_diffs) so the batch is quarantined like any other block.
"""
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from scrapers.airlock.types import DiffCategory, DiffEntry, DiffSeverity, FeeData, StagingSnapshot

ANY_STATE = "*"

NONRESIDENT = "NR"
RESIDENT = "R"
ANY_RESIDENCY = "any"


@dataclass(frozen=True)
class SanityConstraint:
    state_id: str            # two-letter code or ANY_STATE
    field: str               # 'tag_cost', 'qualifying_license', 'app_fee'
    residency: str           # NONRESIDENT, RESIDENT or ANY_RESIDENCY
    min_value: float
    max_value: float
    description: str
    species_id: Optional[str] = None

    def applies_to(self, state_id: str, field: str, residency: str, species_id: Optional[str] = None) -> bool:
        return (
            self.state_id in (state_id, ANY_STATE)
            and self.field == field
            and self.residency in (residency, ANY_RESIDENCY)
            and (self.species_id is None or self.species_id == species_id)
        )


@dataclass(frozen=True)
class SanityViolation:
    constraint: SanityConstraint
    field: str
    actual_value: float
    message: str
    species_id: Optional[str] = None
    residency: str = NONRESIDENT

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "species_id": self.species_id,
            "residency": self.residency,
            "actual_value": None if math.isnan(self.actual_value) else self.actual_value,
            "min_value": self.constraint.min_value,
            "max_value": self.constraint.max_value,
            "message": self.message,
        }


SANITY_CONSTRAINTS: Sequence[SanityConstraint] = (
    # Wyoming
    SanityConstraint("WY", "tag_cost", NONRESIDENT, 500, 3000, "WY NR elk tag", species_id="elk"),
    SanityConstraint("WY", "tag_cost", NONRESIDENT, 300, 2000, "WY NR mule deer tag", species_id="mule_deer"),
    SanityConstraint("WY", "tag_cost", RESIDENT, 30, 200, "WY R elk tag", species_id="elk"),
    SanityConstraint("WY", "qualifying_license", NONRESIDENT, 200, 1000, "WY NR qualifying license"),
    # Colorado
    SanityConstraint("CO", "tag_cost", NONRESIDENT, 500, 2000, "CO NR elk tag", species_id="elk"),
    SanityConstraint("CO", "tag_cost", NONRESIDENT, 200, 1500, "CO NR mule deer tag", species_id="mule_deer"),
    SanityConstraint("CO", "tag_cost", NONRESIDENT, 1500, 5000, "CO NR moose tag", species_id="moose"),
    SanityConstraint("CO", "qualifying_license", NONRESIDENT, 50, 500, "CO NR qualifying license"),
    # Montana
    SanityConstraint("MT", "tag_cost", NONRESIDENT, 500, 2500, "MT NR elk tag", species_id="elk"),
    SanityConstraint("MT", "tag_cost", NONRESIDENT, 200, 1500, "MT NR mule deer tag", species_id="mule_deer"),
    SanityConstraint("MT", "qualifying_license", NONRESIDENT, 100, 800, "MT NR qualifying license"),
    # Arizona
    SanityConstraint("AZ", "tag_cost", NONRESIDENT, 300, 2000, "AZ NR elk tag", species_id="elk"),
    # Nevada
    SanityConstraint("NV", "tag_cost", NONRESIDENT, 500, 3000, "NV NR elk tag", species_id="elk"),
    SanityConstraint("NV", "tag_cost", NONRESIDENT, 200, 1500, "NV NR mule deer tag", species_id="mule_deer"),
    # Everywhere
    SanityConstraint(ANY_STATE, "app_fee", ANY_RESIDENCY, 0, 200, "Application fee reasonable range"),
)


def _check(
    constraints: Sequence[SanityConstraint],
    state_id: str,
    field: str,
    residency: str,
    value: Optional[float],
    species_id: Optional[str] = None,
) -> List[SanityViolation]:
    if value is None:
        return []
    violations = []
    for constraint in constraints:
        if not constraint.applies_to(state_id, field, residency, species_id):
            continue
        if math.isfinite(value) and constraint.min_value <= value <= constraint.max_value:
            continue
        violations.append(SanityViolation(
            constraint=constraint,
            field=field,
            actual_value=value,
            species_id=species_id,
            residency=residency,
            message=(
                f"{constraint.description}: ${value:,.2f} is outside "
                f"${constraint.min_value:,.2f}-${constraint.max_value:,.2f}"
            ),
        ))
    return violations


def validate_sanity_constraints(
    state_id: str,
    fees: FeeData,
    constraints: Sequence[SanityConstraint] = SANITY_CONSTRAINTS,
) -> List[SanityViolation]:
    """Check tag costs, qualifying license and application fee for both residencies."""
    violations: List[SanityViolation] = []
    sides = [(NONRESIDENT, fees.license_fees, fees.tag_costs)]
    if fees.resident_license_fees is not None or fees.resident_tag_costs is not None:
        sides.append((RESIDENT, fees.resident_license_fees, fees.resident_tag_costs or {}))

    for residency, license_fees, tag_costs in sides:
        for species_id, amount in tag_costs.items():
            violations.extend(_check(constraints, state_id, "tag_cost", residency, amount, species_id))
        if license_fees is not None:
            violations.extend(_check(
                constraints, state_id, "qualifying_license", residency, license_fees.qualifying_license,
            ))
            violations.extend(_check(constraints, state_id, "app_fee", residency, license_fees.app_fee))
    return violations


def sanity_violation_diffs(snapshot: StagingSnapshot, violations: Sequence[SanityViolation]) -> List[DiffEntry]:
    """Turn violations into block DiffEntries for the verdict."""
    stamp = snapshot.captured_at.strftime("%Y%m%dT%H%M%S")
    diffs = []
    for violation in violations:
        field = f"sanity.{violation.residency}.{violation.field}"
        if violation.species_id:
            field = f"{field}.{violation.species_id}"
        value = violation.actual_value
        diffs.append(DiffEntry(
            id=f"diff-{snapshot.state_id}-{field}-{stamp}",
            category=DiffCategory.FEE,
            field=field,
            label=violation.constraint.description,
            severity=DiffSeverity.BLOCK,
            old_value=None,
            new_value=value if math.isfinite(value) else str(value),
            change_description=violation.message,
            tolerance_rule=(
                f"Sanity bound ${violation.constraint.min_value:,.0f}-"
                f"${violation.constraint.max_value:,.0f} = BLOCK"
            ),
            species_id=violation.species_id,
        ))
    return diffs
