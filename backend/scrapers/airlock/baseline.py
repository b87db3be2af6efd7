"""
Live baseline construction.

The baseline is built per call and passed into the evaluator; nothing here
caches or mutates module-level state. Callers choose the reference data
(constants.REFERENCE_STATES by default) and supply already-approved fee
rows, so evaluation stays a pure function of its inputs.
"""
from dataclasses import replace
from typing import Any, Dict, Iterable, Mapping, Optional

from constants import REFERENCE_STATES
from scrapers.airlock.snapshot_builder import build_deadline_data, build_fee_data
from scrapers.airlock.types import (
    DeadlineData,
    DeadlineWindow,
    FeeData,
    LiveBaseline,
    PointSystemDetails,
    RuleData,
    SpeciesData,
)
from utils.normalize import to_date


def baseline_from_reference(state_id: str, reference: Mapping[str, Any]) -> LiveBaseline:
    """Convert one REFERENCE_STATES entry into a LiveBaseline."""
    details = reference.get("point_system_details") or {}
    oil = reference.get("once_in_a_lifetime")
    return LiveBaseline(
        state_id=state_id,
        name=reference.get("name", state_id),
        fg_url=reference.get("fg_url"),
        regulatory_url=reference.get("regulatory_url"),
        fees=FeeData.from_dict(reference),
        deadlines=DeadlineData(
            application_deadlines={
                species: DeadlineWindow(
                    open=to_date(window.get("open"), field=f"{species}.open"),
                    close=to_date(window.get("close"), field=f"{species}.close"),
                )
                for species, window in (reference.get("application_deadlines") or {}).items()
            },
            draw_result_dates={
                species: to_date(value, field=f"{species}.draw_results")
                for species, value in (reference.get("draw_result_dates") or {}).items()
            },
        ),
        rules=RuleData(
            point_system=reference["point_system"],
            point_system_details=PointSystemDetails(
                description=details.get("description", ""),
                preference_pct=details.get("preference_pct"),
                random_pct=details.get("random_pct"),
                squared=details.get("squared"),
            ),
            application_approach=reference.get("application_approach", "per_unit"),
            once_in_a_lifetime=tuple(oil) if oil is not None else None,
        ),
        species=SpeciesData(available_species=tuple(reference.get("available_species") or ())),
    )


def reference_baseline(
    state_id: str,
    reference_states: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Optional[LiveBaseline]:
    """Baseline for one state from reference data, or None if the state is unknown."""
    states = REFERENCE_STATES if reference_states is None else reference_states
    reference = states.get(state_id)
    if reference is None:
        return None
    return baseline_from_reference(state_id, reference)


def reference_baselines(
    reference_states: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, LiveBaseline]:
    states = REFERENCE_STATES if reference_states is None else reference_states
    return {state_id: baseline_from_reference(state_id, ref) for state_id, ref in states.items()}


def merge_approved_fees(baseline: LiveBaseline, approved_fee_rows: Iterable[Any]) -> LiveBaseline:
    """
    Overlay approved scraped fee rows on a baseline.

    Rows must be ordered oldest first; a later approval wins for the same slot.
    """
    rows = list(approved_fee_rows)
    if not rows:
        return baseline
    approved: FeeData = build_fee_data(rows)
    return replace(baseline, fees=baseline.fees.merged_with(approved))


def merge_approved_deadlines(baseline: LiveBaseline, approved_deadline_rows: Iterable[Any]) -> LiveBaseline:
    """Overlay approved scraped deadline rows on a baseline, oldest first."""
    rows = list(approved_deadline_rows)
    if not rows:
        return baseline
    return replace(baseline, deadlines=baseline.deadlines.merged_with(build_deadline_data(rows)))
