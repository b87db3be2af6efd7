"""
Airlock data types.

A StagingSnapshot is the candidate state of one jurisdiction's regulatory
data built from a scrape batch. A LiveBaseline is the currently published
state. Both are composed of the same section types (FeeData, DeadlineData,
RuleData, SpeciesData), which is what lets one snapshot serve as the
baseline for the next.

Absent values are None and are never compared. A zero fee is a real
value; a missing fee is not.
"""
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

DiffValue = Union[float, int, str, None]


class DiffSeverity(str, Enum):
    """Severity of a single field difference, ordered pass < warn < block."""
    PASS = "pass"
    WARN = "warn"
    BLOCK = "block"


class DiffCategory(str, Enum):
    FEE = "fee"
    DEADLINE = "deadline"
    QUOTA = "quota"
    RULE = "rule"
    SPECIES = "species"


class CaptureMethod(str, Enum):
    """How a snapshot was captured."""
    SCRAPE = "scrape"
    MANUAL = "manual"
    API = "api"


# =============================================================================
# FEES
# =============================================================================

LICENSE_FEE_LABELS = {
    "qualifying_license": "Qualifying License",
    "app_fee": "Application Fee",
    "point_fee": "Point Fee",
}


@dataclass(frozen=True)
class LicenseFees:
    """License-level fees. Each may be absent."""
    qualifying_license: Optional[float] = None
    app_fee: Optional[float] = None
    point_fee: Optional[float] = None

    def items(self) -> Iterator[Tuple[str, str, Optional[float]]]:
        """Yield (field, label, amount) for every license-level fee."""
        for name, label in LICENSE_FEE_LABELS.items():
            yield name, label, getattr(self, name)

    def merged_with(self, override: Optional["LicenseFees"]) -> "LicenseFees":
        """Return a copy where every non-None fee of override wins."""
        if override is None:
            return self
        changes = {
            name: value for name, _, value in override.items() if value is not None
        }
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {name: value for name, _, value in self.items()}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "LicenseFees":
        data = data or {}
        return cls(**{name: _opt_float(data.get(name)) for name in LICENSE_FEE_LABELS})


@dataclass(frozen=True)
class FeeLineItem:
    """One named entry of a fee schedule."""
    name: str
    amount: float
    frequency: str = "annual"
    required: bool = True
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "amount": self.amount,
            "frequency": self.frequency,
            "required": self.required,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeeLineItem":
        return cls(
            name=data["name"],
            amount=float(data["amount"]),
            frequency=data.get("frequency") or "annual",
            required=bool(data.get("required", True)),
            notes=data.get("notes"),
        )


def merge_fee_schedules(
    base: Optional[Tuple[FeeLineItem, ...]],
    override: Optional[Tuple[FeeLineItem, ...]],
) -> Optional[Tuple[FeeLineItem, ...]]:
    """Merge two schedules by item name; override items replace base items."""
    if override is None:
        return base
    merged = {item.name: item for item in (base or ())}
    for item in override:
        merged[item.name] = item
    return tuple(merged.values())


def _merge_amounts(
    base: Optional[Dict[str, float]],
    override: Optional[Dict[str, float]],
) -> Optional[Dict[str, float]]:
    if override is None:
        return base
    merged = dict(base or {})
    merged.update(override)
    return merged


@dataclass(frozen=True)
class FeeData:
    """Fee section: non-resident values plus optional resident variants."""
    license_fees: LicenseFees = field(default_factory=LicenseFees)
    fee_schedule: Tuple[FeeLineItem, ...] = ()
    tag_costs: Dict[str, float] = field(default_factory=dict)
    point_cost: Dict[str, float] = field(default_factory=dict)
    resident_license_fees: Optional[LicenseFees] = None
    resident_fee_schedule: Optional[Tuple[FeeLineItem, ...]] = None
    resident_tag_costs: Optional[Dict[str, float]] = None
    resident_point_cost: Optional[Dict[str, float]] = None

    def merged_with(self, override: "FeeData") -> "FeeData":
        """Overlay another fee section on top of this one."""
        resident_license = self.resident_license_fees
        if override.resident_license_fees is not None:
            resident_license = (resident_license or LicenseFees()).merged_with(
                override.resident_license_fees
            )
        return FeeData(
            license_fees=self.license_fees.merged_with(override.license_fees),
            fee_schedule=merge_fee_schedules(self.fee_schedule, override.fee_schedule) or (),
            tag_costs=_merge_amounts(self.tag_costs, override.tag_costs) or {},
            point_cost=_merge_amounts(self.point_cost, override.point_cost) or {},
            resident_license_fees=resident_license,
            resident_fee_schedule=merge_fee_schedules(
                self.resident_fee_schedule, override.resident_fee_schedule
            ),
            resident_tag_costs=_merge_amounts(self.resident_tag_costs, override.resident_tag_costs),
            resident_point_cost=_merge_amounts(self.resident_point_cost, override.resident_point_cost),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "license_fees": self.license_fees.to_dict(),
            "fee_schedule": [item.to_dict() for item in self.fee_schedule],
            "tag_costs": dict(self.tag_costs),
            "point_cost": dict(self.point_cost),
            "resident_license_fees": (
                self.resident_license_fees.to_dict() if self.resident_license_fees else None
            ),
            "resident_fee_schedule": (
                [item.to_dict() for item in self.resident_fee_schedule]
                if self.resident_fee_schedule is not None else None
            ),
            "resident_tag_costs": (
                dict(self.resident_tag_costs) if self.resident_tag_costs is not None else None
            ),
            "resident_point_cost": (
                dict(self.resident_point_cost) if self.resident_point_cost is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeeData":
        resident_schedule = data.get("resident_fee_schedule")
        resident_license = data.get("resident_license_fees")
        return cls(
            license_fees=LicenseFees.from_dict(data.get("license_fees")),
            fee_schedule=tuple(FeeLineItem.from_dict(i) for i in data.get("fee_schedule") or ()),
            tag_costs=_float_map(data.get("tag_costs")) or {},
            point_cost=_float_map(data.get("point_cost")) or {},
            resident_license_fees=(
                LicenseFees.from_dict(resident_license) if resident_license is not None else None
            ),
            resident_fee_schedule=(
                tuple(FeeLineItem.from_dict(i) for i in resident_schedule)
                if resident_schedule is not None else None
            ),
            resident_tag_costs=_float_map(data.get("resident_tag_costs")),
            resident_point_cost=_float_map(data.get("resident_point_cost")),
        )


# =============================================================================
# DEADLINES / QUOTAS
# =============================================================================

@dataclass(frozen=True)
class DeadlineWindow:
    """Application window for one species. Either bound may be unknown."""
    open: Optional[date] = None
    close: Optional[date] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"open": _iso(self.open), "close": _iso(self.close)}


@dataclass(frozen=True)
class DeadlineData:
    application_deadlines: Dict[str, DeadlineWindow] = field(default_factory=dict)
    draw_result_dates: Dict[str, date] = field(default_factory=dict)

    def merged_with(self, override: "DeadlineData") -> "DeadlineData":
        """Overlay another deadline section; known bounds of override win."""
        windows = dict(self.application_deadlines)
        for species, window in override.application_deadlines.items():
            current = windows.get(species) or DeadlineWindow()
            windows[species] = DeadlineWindow(
                open=window.open if window.open is not None else current.open,
                close=window.close if window.close is not None else current.close,
            )
        return DeadlineData(
            application_deadlines=windows,
            draw_result_dates={**self.draw_result_dates, **override.draw_result_dates},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "application_deadlines": {
                species: window.to_dict()
                for species, window in self.application_deadlines.items()
            },
            "draw_result_dates": {
                species: _iso(value) for species, value in self.draw_result_dates.items()
            },
        }


@dataclass(frozen=True)
class QuotaData:
    """Tag quotas. Not scraped yet, so always None for now."""
    tag_quotas: Optional[Dict[str, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"tag_quotas": dict(self.tag_quotas) if self.tag_quotas is not None else None}


# =============================================================================
# RULES / SPECIES
# =============================================================================

@dataclass(frozen=True)
class PointSystemDetails:
    description: str = ""
    preference_pct: Optional[float] = None
    random_pct: Optional[float] = None
    squared: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "preference_pct": self.preference_pct,
            "random_pct": self.random_pct,
            "squared": self.squared,
        }


@dataclass(frozen=True)
class RuleData:
    point_system: str
    point_system_details: PointSystemDetails = field(default_factory=PointSystemDetails)
    application_approach: str = "per_unit"
    once_in_a_lifetime: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "point_system": self.point_system,
            "point_system_details": self.point_system_details.to_dict(),
            "application_approach": self.application_approach,
            "once_in_a_lifetime": (
                list(self.once_in_a_lifetime) if self.once_in_a_lifetime is not None else None
            ),
        }


@dataclass(frozen=True)
class SpeciesData:
    available_species: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"available_species": list(self.available_species)}


# =============================================================================
# SNAPSHOT / BASELINE
# =============================================================================

@dataclass(frozen=True)
class StagingSnapshot:
    """Immutable candidate state for one jurisdiction, built from one scrape batch."""
    id: str
    state_id: str
    captured_at: datetime
    source_url: str
    data_version: str
    capture_method: CaptureMethod
    fees: FeeData
    deadlines: DeadlineData
    rules: RuleData
    species: SpeciesData
    quotas: QuotaData = field(default_factory=QuotaData)
    captured_by: str = "airlock"
    notes: Optional[str] = None
    previous_snapshot_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state_id": self.state_id,
            "captured_at": self.captured_at.isoformat(),
            "source_url": self.source_url,
            "data_version": self.data_version,
            "capture_method": self.capture_method.value,
            "captured_by": self.captured_by,
            "notes": self.notes,
            "previous_snapshot_id": self.previous_snapshot_id,
            "fees": self.fees.to_dict(),
            "deadlines": self.deadlines.to_dict(),
            "quotas": self.quotas.to_dict(),
            "rules": self.rules.to_dict(),
            "species": self.species.to_dict(),
        }


@dataclass(frozen=True)
class LiveBaseline:
    """Currently published data for one jurisdiction."""
    state_id: str
    name: str
    fees: FeeData
    deadlines: DeadlineData
    rules: RuleData
    species: SpeciesData
    fg_url: Optional[str] = None
    regulatory_url: Optional[str] = None
    source_url: Optional[str] = None
    data_version: Optional[str] = None
    source_pulled_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_id": self.state_id,
            "name": self.name,
            "fg_url": self.fg_url,
            "regulatory_url": self.regulatory_url,
            "source_url": self.source_url,
            "data_version": self.data_version,
            "source_pulled_at": self.source_pulled_at.isoformat() if self.source_pulled_at else None,
            "fees": self.fees.to_dict(),
            "deadlines": self.deadlines.to_dict(),
            "rules": self.rules.to_dict(),
            "species": self.species.to_dict(),
        }


# =============================================================================
# DIFFS / VERDICT
# =============================================================================

@dataclass(frozen=True)
class DiffEntry:
    """One detected difference between baseline and snapshot."""
    id: str
    category: DiffCategory
    field: str
    label: str
    severity: DiffSeverity
    old_value: DiffValue
    new_value: DiffValue
    change_description: str
    tolerance_rule: str
    pct_change: Optional[float] = None
    days_delta: Optional[int] = None
    species_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "field": self.field,
            "label": self.label,
            "severity": self.severity.value,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "change_description": self.change_description,
            "tolerance_rule": self.tolerance_rule,
            "pct_change": self.pct_change,
            "days_delta": self.days_delta,
            "species_id": self.species_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DiffEntry":
        return cls(
            id=data["id"],
            category=DiffCategory(data["category"]),
            field=data["field"],
            label=data["label"],
            severity=DiffSeverity(data["severity"]),
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            change_description=data["change_description"],
            tolerance_rule=data["tolerance_rule"],
            pct_change=data.get("pct_change"),
            days_delta=data.get("days_delta"),
            species_id=data.get("species_id"),
        )


@dataclass(frozen=True)
class AirlockVerdict:
    """Outcome of evaluating one snapshot against its baseline."""
    snapshot_id: str
    state_id: str
    evaluated_at: datetime
    overall_verdict: DiffSeverity
    diffs: Tuple[DiffEntry, ...]
    block_count: int
    warn_count: int
    pass_count: int
    summary: str
    can_auto_promote: bool
    required_action: Optional[str] = None

    @property
    def blocking_diffs(self) -> List[DiffEntry]:
        return [d for d in self.diffs if d.severity == DiffSeverity.BLOCK]

    @property
    def warning_diffs(self) -> List[DiffEntry]:
        return [d for d in self.diffs if d.severity == DiffSeverity.WARN]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "state_id": self.state_id,
            "evaluated_at": self.evaluated_at.isoformat(),
            "overall_verdict": self.overall_verdict.value,
            "diffs": [d.to_dict() for d in self.diffs],
            "block_count": self.block_count,
            "warn_count": self.warn_count,
            "pass_count": self.pass_count,
            "summary": self.summary,
            "can_auto_promote": self.can_auto_promote,
            "required_action": self.required_action,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AirlockVerdict":
        return cls(
            snapshot_id=data["snapshot_id"],
            state_id=data["state_id"],
            evaluated_at=datetime.fromisoformat(data["evaluated_at"]),
            overall_verdict=DiffSeverity(data["overall_verdict"]),
            diffs=tuple(DiffEntry.from_dict(d) for d in data.get("diffs") or ()),
            block_count=int(data["block_count"]),
            warn_count=int(data["warn_count"]),
            pass_count=int(data["pass_count"]),
            summary=data["summary"],
            can_auto_promote=bool(data["can_auto_promote"]),
            required_action=data.get("required_action"),
        )

    def to_markdown(self) -> str:
        """Render the verdict for the review queue."""
        lines = [
            f"# Airlock Verdict: {self.state_id}",
            "",
            f"**Snapshot:** `{self.snapshot_id}`",
            f"**Evaluated:** {self.evaluated_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"**Verdict:** {self.overall_verdict.value}",
            "",
            "## Summary",
            "",
            "| Severity | Count |",
            "|----------|-------|",
            f"| Block | {self.block_count} |",
            f"| Warn | {self.warn_count} |",
            f"| Pass | {self.pass_count} |",
            "",
        ]

        flagged = [d for d in self.diffs if d.severity != DiffSeverity.PASS]
        if flagged:
            lines.extend([
                "## Flagged Changes",
                "",
                "| Field | Old | New | Change | Rule | Severity |",
                "|-------|-----|-----|--------|------|----------|",
            ])
            for diff in flagged:
                lines.append(
                    f"| {diff.label} | {diff.old_value} | {diff.new_value} | "
                    f"{diff.change_description} | {diff.tolerance_rule} | {diff.severity.value} |"
                )
            lines.append("")

        lines.extend([
            "## Recommendation",
            "",
        ])
        if self.can_auto_promote:
            lines.append(f"✅ **Safe to auto-promote** ({self.pass_count} change(s) within tolerance)")
        else:
            lines.append(f"⛔ **Review required** - {self.required_action or self.summary}")

        return "\n".join(lines)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _opt_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def _float_map(data: Optional[Mapping[str, Any]]) -> Optional[Dict[str, float]]:
    if data is None:
        return None
    return {key: float(value) for key, value in data.items()}
