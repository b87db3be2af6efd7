"""
Snapshot Builder - Scraped staging rows -> typed StagingSnapshot.

Fee rows are classified exactly once, at parse time, into a ParsedFee
carrying a FeeKind. Everything downstream routes on the kind and never
looks at the fee name text again.

Classification (case-insensitive, on the fee name):
    species rows:
    - "point fee|cost" / "preference fee|cost"    -> POINT
    - any other name                              -> TAG
    license-level rows, first match wins:
    - "app fee|cost" / "application fee|cost"     -> APPLICATION
    - "point fee|cost" / "preference fee|cost"    -> POINT
    - license/qualifying/sportsman/conservation/
      habitat/combo                               -> LICENSE
    - anything else without a species             -> OTHER (schedule only)

Every license-level row (no species) is also listed in the fee schedule.

Residency "both" counts as non-resident only: resident maps hold rows the
source explicitly marks as resident.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from scrapers.airlock.errors import InvalidScrapedRowError
from scrapers.airlock.types import (
    CaptureMethod,
    DeadlineData,
    DeadlineWindow,
    FeeData,
    FeeLineItem,
    LicenseFees,
    LiveBaseline,
    QuotaData,
    StagingSnapshot,
)
from utils.normalize import ValidationError, to_date, to_float, utcnow

logger = logging.getLogger(__name__)

POINT_FEE_PATTERN = re.compile(r"point\s*(fee|cost)|preference\s*(fee|cost)")
APPLICATION_FEE_PATTERN = re.compile(r"app(lication)?\s*(fee|cost)")
LICENSE_FEE_PATTERN = re.compile(r"license|qualifying|sportsman|conservation|habitat|combo")


class FeeKind(str, Enum):
    """What a scraped fee row represents, decided once from its name."""
    LICENSE = "license"
    APPLICATION = "application"
    POINT = "point"
    TAG = "tag"
    OTHER = "other"


class Residency(str, Enum):
    RESIDENT = "resident"
    NONRESIDENT = "nonresident"
    BOTH = "both"


class DeadlineType(str, Enum):
    APPLICATION_OPEN = "application_open"
    APPLICATION_CLOSE = "application_close"
    DRAW_RESULTS = "draw_results"


@dataclass(frozen=True)
class ParsedFee:
    """A fee row after classification."""
    kind: FeeKind
    name: str
    amount: float
    residency: Residency
    species_id: Optional[str] = None
    frequency: str = "annual"
    notes: Optional[str] = None

    @property
    def applies_to_resident(self) -> bool:
        return self.residency == Residency.RESIDENT

    @property
    def applies_to_nonresident(self) -> bool:
        return self.residency in (Residency.NONRESIDENT, Residency.BOTH)

    @property
    def is_license_level(self) -> bool:
        return self.species_id is None

    def to_line_item(self) -> FeeLineItem:
        return FeeLineItem(
            name=self.name,
            amount=self.amount,
            frequency=self.frequency,
            required=True,
            notes=self.notes,
        )


@dataclass(frozen=True)
class ParsedDeadline:
    deadline_type: DeadlineType
    species_id: str
    date: date
    year: Optional[int] = None


def _field(row: Any, name: str) -> Any:
    """Read a column from a model instance or a plain mapping."""
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


def classify_fee(fee_name: str, species_id: Optional[str]) -> FeeKind:
    """Decide the FeeKind of a scraped fee row."""
    name = (fee_name or "").lower()
    if species_id:
        return FeeKind.POINT if POINT_FEE_PATTERN.search(name) else FeeKind.TAG
    if APPLICATION_FEE_PATTERN.search(name):
        return FeeKind.APPLICATION
    if POINT_FEE_PATTERN.search(name):
        return FeeKind.POINT
    if LICENSE_FEE_PATTERN.search(name):
        return FeeKind.LICENSE
    return FeeKind.OTHER


def parse_fee_row(row: Any) -> ParsedFee:
    """
    Parse and classify one scraped fee row.

    Raises:
        InvalidScrapedRowError: amount is missing or not a finite number,
            or residency is not one of resident/nonresident/both
    """
    row_id = _field(row, "id")
    fee_name = (_field(row, "fee_name") or "").strip()
    try:
        amount = to_float(_field(row, "amount"), field="amount")
    except ValidationError as e:
        raise InvalidScrapedRowError(
            f"Fee row {row_id} ({fee_name!r}): {e}", row_id=row_id, field="amount"
        )
    if amount is None:
        raise InvalidScrapedRowError(
            f"Fee row {row_id} ({fee_name!r}) has no amount", row_id=row_id, field="amount"
        )

    raw_residency = (_field(row, "residency") or "").strip().lower()
    try:
        residency = Residency(raw_residency)
    except ValueError:
        raise InvalidScrapedRowError(
            f"Fee row {row_id} ({fee_name!r}) has unknown residency {raw_residency!r}",
            row_id=row_id,
            field="residency",
        )

    species_id = _field(row, "species_id") or None
    return ParsedFee(
        kind=classify_fee(fee_name, species_id),
        name=fee_name,
        amount=amount,
        residency=residency,
        species_id=species_id,
        frequency=_field(row, "frequency") or "annual",
        notes=_field(row, "notes"),
    )


def parse_deadline_row(row: Any) -> Optional[ParsedDeadline]:
    """
    Parse one scraped deadline row.

    Returns None for deadline types the airlock does not track.

    Raises:
        InvalidScrapedRowError: the date cannot be parsed
    """
    row_id = _field(row, "id")
    try:
        deadline_type = DeadlineType(_field(row, "deadline_type"))
    except ValueError:
        logger.debug(f"Skipping deadline row {row_id}: untracked type {_field(row, 'deadline_type')!r}")
        return None
    try:
        parsed_date = to_date(_field(row, "date"), field="date")
    except ValidationError as e:
        raise InvalidScrapedRowError(f"Deadline row {row_id}: {e}", row_id=row_id, field="date")
    if parsed_date is None:
        raise InvalidScrapedRowError(
            f"Deadline row {row_id} has no date", row_id=row_id, field="date"
        )
    return ParsedDeadline(
        deadline_type=deadline_type,
        species_id=_field(row, "species_id"),
        date=parsed_date,
        year=_field(row, "year"),
    )


# =============================================================================
# SECTION BUILDERS
# =============================================================================

def build_fee_data(rows: Iterable[Any]) -> FeeData:
    """
    Build the fee section from scraped fee rows.

    Rows are applied in order, so a later row for the same slot wins.
    Resident variants are None when the batch has no resident rows for them.
    """
    parsed = [parse_fee_row(row) for row in rows]

    license_fees: Dict[str, float] = {}
    resident_license_fees: Dict[str, float] = {}
    tag_costs: Dict[str, float] = {}
    resident_tag_costs: Dict[str, float] = {}
    point_cost: Dict[str, float] = {}
    resident_point_cost: Dict[str, float] = {}
    fee_schedule: List[FeeLineItem] = []
    resident_fee_schedule: List[FeeLineItem] = []

    license_slot = {
        FeeKind.LICENSE: "qualifying_license",
        FeeKind.APPLICATION: "app_fee",
        FeeKind.POINT: "point_fee",
    }

    for fee in parsed:
        if not fee.is_license_level:
            target_nr, target_res = (
                (point_cost, resident_point_cost)
                if fee.kind == FeeKind.POINT
                else (tag_costs, resident_tag_costs)
            )
            if fee.applies_to_nonresident:
                target_nr[fee.species_id] = fee.amount
            if fee.applies_to_resident:
                target_res[fee.species_id] = fee.amount
            continue

        slot = license_slot.get(fee.kind)
        if slot:
            if fee.applies_to_nonresident:
                license_fees[slot] = fee.amount
            if fee.applies_to_resident:
                resident_license_fees[slot] = fee.amount

        item = fee.to_line_item()
        if fee.applies_to_nonresident:
            fee_schedule.append(item)
        if fee.applies_to_resident:
            resident_fee_schedule.append(item)

    return FeeData(
        license_fees=LicenseFees(**license_fees),
        fee_schedule=tuple(fee_schedule),
        tag_costs=tag_costs,
        point_cost=point_cost,
        resident_license_fees=LicenseFees(**resident_license_fees) if resident_license_fees else None,
        resident_fee_schedule=tuple(resident_fee_schedule) if resident_fee_schedule else None,
        resident_tag_costs=resident_tag_costs or None,
        resident_point_cost=resident_point_cost or None,
    )


def build_deadline_data(rows: Iterable[Any]) -> DeadlineData:
    """Merge open/close rows into one window per species; draw results go to their own map."""
    windows: Dict[str, Dict[str, date]] = {}
    draw_result_dates: Dict[str, date] = {}

    for row in rows:
        deadline = parse_deadline_row(row)
        if deadline is None:
            continue
        if deadline.deadline_type == DeadlineType.DRAW_RESULTS:
            draw_result_dates[deadline.species_id] = deadline.date
            continue
        bound = "open" if deadline.deadline_type == DeadlineType.APPLICATION_OPEN else "close"
        windows.setdefault(deadline.species_id, {})[bound] = deadline.date

    return DeadlineData(
        application_deadlines={
            species: DeadlineWindow(open=bounds.get("open"), close=bounds.get("close"))
            for species, bounds in windows.items()
        },
        draw_result_dates=draw_result_dates,
    )


def build_quota_data(rows: Optional[Iterable[Any]] = None) -> QuotaData:
    """Quotas are not scraped yet; the section is always empty."""
    if rows:
        logger.warning("Quota rows supplied but quota ingestion is not supported yet; ignoring")
    return QuotaData(tag_quotas=None)


def build_data_version(batch_id: str, captured_at: datetime) -> str:
    return f"{captured_at.year}.{batch_id[-4:]}"


def build_snapshot(
    batch_id: str,
    baseline: LiveBaseline,
    fee_rows: Iterable[Any],
    deadline_rows: Iterable[Any],
    captured_at: Optional[datetime] = None,
    source_url: Optional[str] = None,
    previous_snapshot_id: Optional[str] = None,
) -> StagingSnapshot:
    """
    Build a StagingSnapshot for one scrape batch.

    Rules and species are not scraped; they are carried over from the
    baseline so they only change through a manual snapshot.
    """
    captured_at = captured_at or utcnow()
    fee_rows = list(fee_rows)
    return StagingSnapshot(
        id=f"staging-{baseline.state_id}-{batch_id}",
        state_id=baseline.state_id,
        captured_at=captured_at,
        source_url=source_url or _first_source_url(fee_rows) or baseline.fg_url or "",
        data_version=build_data_version(batch_id, captured_at),
        capture_method=CaptureMethod.SCRAPE,
        captured_by="airlock",
        notes=f"Batch: {batch_id}",
        fees=build_fee_data(fee_rows),
        deadlines=build_deadline_data(deadline_rows),
        quotas=build_quota_data(),
        rules=baseline.rules,
        species=baseline.species,
        previous_snapshot_id=previous_snapshot_id,
    )


def _first_source_url(rows: List[Any]) -> Optional[str]:
    for row in rows:
        url = _field(row, "source_url")
        if url:
            return url
    return None
