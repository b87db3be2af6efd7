"""
Airlock Evaluator - Diff a StagingSnapshot against the live baseline.

Pure and deterministic: no I/O, no clock reads unless evaluated_at is
omitted. Every field present on both sides that differs produces exactly
one DiffEntry. Fields missing on either side are not compared, so
first-seen values pass silently.

Severity rules:
    fees          increase > fee_increase_max_pct  -> block
                  decrease > fee_decrease_max_pct  -> block
                  otherwise                        -> pass (no warn tier)
    deadlines     |shift| > deadline_shift_max_days -> block, else pass
    draw results  |shift| > deadline_shift_max_days -> warn, else pass
    rules         any change -> block (warn if block_on_rule_mutation is off)
    species       added -> warn (pass if warn_on_species_added is off)
                  removed -> block (warn if block_on_species_removal is off)
    quotas        not supported yet
"""
import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from scrapers.airlock.tolerances import DEFAULT_TOLERANCES, AirlockTolerances
from scrapers.airlock.types import (
    AirlockVerdict,
    DiffCategory,
    DiffEntry,
    DiffSeverity,
    FeeData,
    FeeLineItem,
    LicenseFees,
    LiveBaseline,
    StagingSnapshot,
)
from utils.normalize import utcnow

logger = logging.getLogger(__name__)

WITHIN_TOLERANCE = "Within tolerance"


# =============================================================================
# FEES
# =============================================================================

def fee_pct_change(old: float, new: float) -> float:
    """Percent change from old to new; a rise from zero counts as 100%."""
    if old == 0:
        return 100.0 if new > 0 else 0.0
    return (new - old) / old * 100


def classify_fee_change(
    diff_id: str,
    field: str,
    label: str,
    old: float,
    new: float,
    tolerances: AirlockTolerances,
    species_id: Optional[str] = None,
) -> DiffEntry:
    """Build the DiffEntry for one changed fee."""
    pct = fee_pct_change(old, new)
    increased = new > old
    severity = DiffSeverity.PASS
    rule = WITHIN_TOLERANCE

    if increased and abs(pct) > tolerances.fee_increase_max_pct:
        severity = DiffSeverity.BLOCK
        rule = (
            f"Fee increase {abs(pct):.1f}% exceeds "
            f"{tolerances.fee_increase_max_pct:g}% threshold"
        )
    elif new < old and abs(pct) > tolerances.fee_decrease_max_pct:
        severity = DiffSeverity.BLOCK
        rule = (
            f"Fee decrease {abs(pct):.1f}% exceeds "
            f"{tolerances.fee_decrease_max_pct:g}% threshold (suspicious)"
        )

    direction = "increased" if increased else "decreased"
    return DiffEntry(
        id=diff_id,
        category=DiffCategory.FEE,
        field=field,
        label=label,
        severity=severity,
        old_value=old,
        new_value=new,
        change_description=f"Fee {direction} {abs(pct):.1f}% (${old:.2f} → ${new:.2f})",
        tolerance_rule=rule,
        pct_change=pct,
        species_id=species_id,
    )


def _diff_license_fees(
    prefix: str,
    label_prefix: str,
    old: Optional[LicenseFees],
    new: Optional[LicenseFees],
    tolerances: AirlockTolerances,
    ctx: "_DiffContext",
) -> List[DiffEntry]:
    if old is None or new is None:
        return []
    diffs = []
    old_values = old.to_dict()
    for name, label, new_value in new.items():
        old_value = old_values[name]
        if old_value is None or new_value is None or old_value == new_value:
            continue
        field = f"{prefix}.{name}"
        diffs.append(classify_fee_change(
            ctx.diff_id(field), field, f"{ctx.state_id} {label_prefix} {label}",
            old_value, new_value, tolerances,
        ))
    return diffs


def _diff_species_amounts(
    prefix: str,
    label_suffix: str,
    old: Optional[Dict[str, float]],
    new: Optional[Dict[str, float]],
    tolerances: AirlockTolerances,
    ctx: "_DiffContext",
) -> List[DiffEntry]:
    if not old or not new:
        return []
    diffs = []
    for species_id, new_value in new.items():
        old_value = old.get(species_id)
        if old_value is None or old_value == new_value:
            continue
        field = f"{prefix}.{species_id}"
        diffs.append(classify_fee_change(
            ctx.diff_id(field), field, f"{ctx.state_id} {species_id} {label_suffix}",
            old_value, new_value, tolerances, species_id=species_id,
        ))
    return diffs


def _diff_fee_schedule(
    prefix: str,
    old: Optional[Sequence[FeeLineItem]],
    new: Optional[Sequence[FeeLineItem]],
    tolerances: AirlockTolerances,
    ctx: "_DiffContext",
) -> List[DiffEntry]:
    if not old or not new:
        return []
    old_by_name = {item.name: item for item in old}
    diffs = []
    for item in new:
        previous = old_by_name.get(item.name)
        if previous is None or previous.amount == item.amount:
            continue
        field = f"{prefix}.{item.name}"
        diffs.append(classify_fee_change(
            ctx.diff_id(field), field, f"{ctx.state_id} {item.name}",
            previous.amount, item.amount, tolerances,
        ))
    return diffs


def diff_fees(old: FeeData, new: FeeData, tolerances: AirlockTolerances, ctx: "_DiffContext") -> List[DiffEntry]:
    """Non-resident fees, then resident variants where both sides have them."""
    return (
        _diff_license_fees("license_fees", "NR", old.license_fees, new.license_fees, tolerances, ctx)
        + _diff_species_amounts("tag_costs", "NR Tag Cost", old.tag_costs, new.tag_costs, tolerances, ctx)
        + _diff_species_amounts("point_cost", "Point Cost", old.point_cost, new.point_cost, tolerances, ctx)
        + _diff_fee_schedule("fee_schedule", old.fee_schedule, new.fee_schedule, tolerances, ctx)
        + _diff_license_fees(
            "resident_license_fees", "R", old.resident_license_fees, new.resident_license_fees,
            tolerances, ctx,
        )
        + _diff_species_amounts(
            "resident_tag_costs", "R Tag Cost", old.resident_tag_costs, new.resident_tag_costs,
            tolerances, ctx,
        )
        + _diff_species_amounts(
            "resident_point_cost", "R Point Cost", old.resident_point_cost, new.resident_point_cost,
            tolerances, ctx,
        )
        + _diff_fee_schedule(
            "resident_fee_schedule", old.resident_fee_schedule, new.resident_fee_schedule,
            tolerances, ctx,
        )
    )


# =============================================================================
# DEADLINES
# =============================================================================

def days_between(old: date, new: date) -> int:
    """Signed whole days from old to new (positive = later)."""
    return (new - old).days


def _date_shift_entry(
    ctx: "_DiffContext",
    field: str,
    label: str,
    noun: str,
    old: date,
    new: date,
    severity_over: DiffSeverity,
    tolerances: AirlockTolerances,
    species_id: str,
) -> DiffEntry:
    delta = days_between(old, new)
    shift = abs(delta)
    over = shift > tolerances.deadline_shift_max_days
    direction = "later" if delta > 0 else "earlier"
    return DiffEntry(
        id=ctx.diff_id(field),
        category=DiffCategory.DEADLINE,
        field=field,
        label=label,
        severity=severity_over if over else DiffSeverity.PASS,
        old_value=old.isoformat(),
        new_value=new.isoformat(),
        change_description=(
            f"{noun} moved {shift} day{'s' if shift != 1 else ''} {direction} "
            f"({old.isoformat()} → {new.isoformat()})"
        ),
        tolerance_rule=(
            f"{noun} shifted {shift} days (>{tolerances.deadline_shift_max_days} day threshold)"
            if over else WITHIN_TOLERANCE
        ),
        days_delta=delta,
        species_id=species_id,
    )


def diff_deadlines(old, new, tolerances: AirlockTolerances, ctx: "_DiffContext") -> List[DiffEntry]:
    diffs = []
    for species_id, window in new.application_deadlines.items():
        previous = old.application_deadlines.get(species_id)
        if previous is None:
            continue
        for bound, noun, label in (
            ("close", "Deadline", "Application Close"),
            ("open", "Open date", "Application Open"),
        ):
            old_date = getattr(previous, bound)
            new_date = getattr(window, bound)
            if old_date is None or new_date is None or old_date == new_date:
                continue
            diffs.append(_date_shift_entry(
                ctx,
                f"application_deadlines.{species_id}.{bound}",
                f"{ctx.state_id} {species_id} {label}",
                noun,
                old_date,
                new_date,
                DiffSeverity.BLOCK,
                tolerances,
                species_id,
            ))

    for species_id, new_date in new.draw_result_dates.items():
        old_date = old.draw_result_dates.get(species_id)
        if old_date is None or new_date is None or old_date == new_date:
            continue
        diffs.append(_date_shift_entry(
            ctx,
            f"draw_result_dates.{species_id}",
            f"{ctx.state_id} {species_id} Draw Result Date",
            "Draw result date",
            old_date,
            new_date,
            DiffSeverity.WARN,
            tolerances,
            species_id,
        ))
    return diffs


# =============================================================================
# QUOTAS
# =============================================================================

def diff_quotas(snapshot: StagingSnapshot, tolerances: AirlockTolerances, ctx: "_DiffContext") -> List[DiffEntry]:
    """
    Quota comparison is not supported yet.

    The live baseline carries no per-state quota data, so there is nothing
    to compare against. quota_drop_max_pct is reserved for when it does.
    """
    if snapshot.quotas.tag_quotas:
        logger.info(
            f"Quota diffing not yet supported; {len(snapshot.quotas.tag_quotas)} "
            f"quota value(s) on {snapshot.id} were not compared"
        )
    return []


# =============================================================================
# RULES / SPECIES
# =============================================================================

def _rule_entry(
    ctx: "_DiffContext",
    field: str,
    label: str,
    old,
    new,
    description: str,
    reason: str,
    tolerances: AirlockTolerances,
    species_id: Optional[str] = None,
) -> DiffEntry:
    severity = DiffSeverity.BLOCK if tolerances.block_on_rule_mutation else DiffSeverity.WARN
    return DiffEntry(
        id=ctx.diff_id(field),
        category=DiffCategory.RULE,
        field=field,
        label=label,
        severity=severity,
        old_value=old,
        new_value=new,
        change_description=description,
        tolerance_rule=f"Rule mutation = {severity.value.upper()} ({reason})",
        species_id=species_id,
    )


def diff_rules(old, new, tolerances: AirlockTolerances, ctx: "_DiffContext") -> List[DiffEntry]:
    state_id = ctx.state_id
    diffs = []

    if old.point_system != new.point_system:
        diffs.append(_rule_entry(
            ctx, "point_system", f"{state_id} Point System Type",
            old.point_system, new.point_system,
            f'Point system changed from "{old.point_system}" to "{new.point_system}"',
            "structural change", tolerances,
        ))

    old_details, new_details = old.point_system_details, new.point_system_details
    for name, label in (("preference_pct", "Preference Pool %"), ("random_pct", "Random Pool %")):
        old_pct, new_pct = getattr(old_details, name), getattr(new_details, name)
        if old_pct is None or new_pct is None or old_pct == new_pct:
            continue
        diffs.append(_rule_entry(
            ctx, f"point_system_details.{name}", f"{state_id} {label}",
            old_pct, new_pct,
            f"{label[:-2]} changed from {old_pct:g}% to {new_pct:g}%",
            "draw odds fundamentally changed", tolerances,
        ))

    if (
        old_details.squared is not None
        and new_details.squared is not None
        and old_details.squared != new_details.squared
    ):
        old_mode = "squared" if old_details.squared else "linear"
        new_mode = "squared" if new_details.squared else "linear"
        diffs.append(_rule_entry(
            ctx, "point_system_details.squared", f"{state_id} Bonus Point Squaring",
            old_mode, new_mode,
            f"Bonus point calculation changed from {old_mode} to {new_mode}",
            "draw odds calculation fundamentally changed", tolerances,
        ))

    if old.application_approach != new.application_approach:
        diffs.append(_rule_entry(
            ctx, "application_approach", f"{state_id} Application Approach",
            old.application_approach, new.application_approach,
            f'Application approach changed from "{old.application_approach}" '
            f'to "{new.application_approach}"',
            "application strategy may need rebuild", tolerances,
        ))

    # A missing list means no once-in-a-lifetime species.
    old_list = old.once_in_a_lifetime or ()
    new_list = new.once_in_a_lifetime or ()
    old_oil, new_oil = set(old_list), set(new_list)
    for species in _ordered(new_list, exclude=old_oil):
        diffs.append(_rule_entry(
            ctx, f"once_in_a_lifetime.{species}", f"{state_id} {species} Now Once-in-a-Lifetime",
            None, species,
            f"{species} added to once-in-a-lifetime list; drawing it now means permanent ineligibility",
            "once-in-a-lifetime list changed", tolerances, species_id=species,
        ))
    for species in _ordered(old_list, exclude=new_oil):
        diffs.append(_rule_entry(
            ctx, f"once_in_a_lifetime.{species}", f"{state_id} {species} No Longer Once-in-a-Lifetime",
            species, None,
            f"{species} removed from once-in-a-lifetime list; verify with official regulation",
            "once-in-a-lifetime list changed", tolerances, species_id=species,
        ))

    return diffs


def diff_species(old, new, tolerances: AirlockTolerances, ctx: "_DiffContext") -> List[DiffEntry]:
    state_id = ctx.state_id
    old_set, new_set = set(old.available_species), set(new.available_species)
    diffs = []

    for species in _ordered(new.available_species, exclude=old_set):
        severity = DiffSeverity.WARN if tolerances.warn_on_species_added else DiffSeverity.PASS
        diffs.append(DiffEntry(
            id=ctx.diff_id(f"available_species.{species}.added"),
            category=DiffCategory.SPECIES,
            field=f"available_species.{species}",
            label=f"{state_id} New Species: {species}",
            severity=severity,
            old_value=None,
            new_value=species,
            change_description=f"{species} added to {state_id} available species list",
            tolerance_rule=f"New species = {severity.value.upper()} (confirm availability and fee data)",
            species_id=species,
        ))

    for species in _ordered(old.available_species, exclude=new_set):
        severity = DiffSeverity.BLOCK if tolerances.block_on_species_removal else DiffSeverity.WARN
        diffs.append(DiffEntry(
            id=ctx.diff_id(f"available_species.{species}.removed"),
            category=DiffCategory.SPECIES,
            field=f"available_species.{species}",
            label=f"{state_id} Species Removed: {species}",
            severity=severity,
            old_value=species,
            new_value=None,
            change_description=f"{species} removed from {state_id} available species list; verify official delisting",
            tolerance_rule=f"Species removal = {severity.value.upper()} (may affect committed positions)",
            species_id=species,
        ))
    return diffs


def _ordered(values: Iterable[str], exclude: set) -> List[str]:
    """Values not in exclude, deduplicated, in first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value in exclude or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


# =============================================================================
# VERDICT
# =============================================================================

class _DiffContext:
    """Shared id/label inputs for one evaluation."""

    def __init__(self, snapshot: StagingSnapshot):
        self.state_id = snapshot.state_id
        self._stamp = snapshot.captured_at.strftime("%Y%m%dT%H%M%S")

    def diff_id(self, field: str) -> str:
        return f"diff-{self.state_id}-{field.replace(' ', '_')}-{self._stamp}"


def build_verdict(
    snapshot: StagingSnapshot,
    diffs: Sequence[DiffEntry],
    evaluated_at: Optional[datetime] = None,
) -> AirlockVerdict:
    """Aggregate diffs into a verdict: block beats warn beats pass."""
    block_count = sum(1 for d in diffs if d.severity == DiffSeverity.BLOCK)
    warn_count = sum(1 for d in diffs if d.severity == DiffSeverity.WARN)
    pass_count = sum(1 for d in diffs if d.severity == DiffSeverity.PASS)

    if block_count:
        overall = DiffSeverity.BLOCK
    elif warn_count:
        overall = DiffSeverity.WARN
    else:
        overall = DiffSeverity.PASS

    if diffs:
        parts = []
        if block_count:
            parts.append(f"{block_count} blocked")
        if warn_count:
            parts.append(f"{warn_count} warning{'s' if warn_count != 1 else ''}")
        if pass_count:
            parts.append(f"{pass_count} passed")
        summary = ", ".join(parts)
    else:
        summary = "No changes detected"

    required_action = None
    if block_count:
        required_action = (
            f"Review {block_count} blocked change{'s' if block_count != 1 else ''} before "
            f"promoting to live data. Verify against official F&G source."
        )
    elif warn_count:
        required_action = (
            f"Confirm {warn_count} flagged change{'s' if warn_count != 1 else ''} before promoting."
        )

    return AirlockVerdict(
        snapshot_id=snapshot.id,
        state_id=snapshot.state_id,
        evaluated_at=evaluated_at or utcnow(),
        overall_verdict=overall,
        diffs=tuple(diffs),
        block_count=block_count,
        warn_count=warn_count,
        pass_count=pass_count,
        summary=summary,
        can_auto_promote=overall == DiffSeverity.PASS,
        required_action=required_action,
    )


def evaluate_snapshot(
    snapshot: StagingSnapshot,
    baseline: LiveBaseline,
    tolerances: AirlockTolerances = DEFAULT_TOLERANCES,
    evaluated_at: Optional[datetime] = None,
) -> AirlockVerdict:
    """Compare a snapshot to the live baseline and classify every change."""
    if snapshot.state_id != baseline.state_id:
        raise ValueError(
            f"Snapshot {snapshot.id} is for {snapshot.state_id}, baseline is for {baseline.state_id}"
        )
    ctx = _DiffContext(snapshot)
    diffs = (
        diff_fees(baseline.fees, snapshot.fees, tolerances, ctx)
        + diff_deadlines(baseline.deadlines, snapshot.deadlines, tolerances, ctx)
        + diff_quotas(snapshot, tolerances, ctx)
        + diff_rules(baseline.rules, snapshot.rules, tolerances, ctx)
        + diff_species(baseline.species, snapshot.species, tolerances, ctx)
    )
    return build_verdict(snapshot, diffs, evaluated_at)


# =============================================================================
# SNAPSHOT <-> BASELINE
# =============================================================================

def baseline_from_snapshot(snapshot: StagingSnapshot, name: Optional[str] = None) -> LiveBaseline:
    """Treat a snapshot as a baseline, for snapshot-to-snapshot comparison."""
    return LiveBaseline(
        state_id=snapshot.state_id,
        name=name or snapshot.state_id,
        fees=snapshot.fees,
        deadlines=snapshot.deadlines,
        rules=snapshot.rules,
        species=snapshot.species,
        source_url=snapshot.source_url,
        data_version=snapshot.data_version,
        source_pulled_at=snapshot.captured_at,
    )


def diff_snapshots(
    old: StagingSnapshot,
    new: StagingSnapshot,
    tolerances: AirlockTolerances = DEFAULT_TOLERANCES,
) -> Tuple[DiffEntry, ...]:
    """What changed between two snapshots, judged by the same tolerances."""
    return evaluate_snapshot(new, baseline_from_snapshot(old), tolerances, evaluated_at=new.captured_at).diffs


def promote_snapshot(snapshot: StagingSnapshot, baseline: LiveBaseline) -> LiveBaseline:
    """
    Apply a snapshot on top of a baseline and return the new baseline.

    Fees and deadlines are merged (snapshot wins where it has a value);
    rules and species are replaced. The input baseline is not modified.
    """
    deadlines = baseline.deadlines.merged_with(snapshot.deadlines)
    rules = snapshot.rules
    if rules.once_in_a_lifetime is None:
        rules = replace(rules, once_in_a_lifetime=baseline.rules.once_in_a_lifetime)

    return replace(
        baseline,
        fees=baseline.fees.merged_with(snapshot.fees),
        deadlines=deadlines,
        rules=rules,
        species=snapshot.species,
        source_url=snapshot.source_url,
        data_version=snapshot.data_version,
        source_pulled_at=snapshot.captured_at,
    )
