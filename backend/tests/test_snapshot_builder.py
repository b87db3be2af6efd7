"""
Tests for scrapers/airlock/snapshot_builder.py

Fee rows are classified once into a FeeKind; the section builders route
on the kind. Deadline rows merge into one window per species.
"""

from datetime import date, datetime

import pytest

from scrapers.airlock.baseline import reference_baseline
from scrapers.airlock.errors import InvalidScrapedRowError
from scrapers.airlock.snapshot_builder import (
    FeeKind,
    Residency,
    build_deadline_data,
    build_fee_data,
    build_quota_data,
    build_snapshot,
    classify_fee,
    parse_deadline_row,
    parse_fee_row,
)
from scrapers.airlock.types import CaptureMethod, DeadlineWindow, FeeLineItem

from factories import PULLED_AT, deadline, fee


# =============================================================================
# Classification
# =============================================================================

class TestClassifyFee:
    """Keyword classification of fee names."""

    @pytest.mark.parametrize("name,species,expected", [
        ("Elk Preference Point Fee", "elk", FeeKind.POINT),
        ("Preference Point Cost", None, FeeKind.POINT),
        ("Bonus Point Fee", None, FeeKind.POINT),
        ("Elk Tag", "elk", FeeKind.TAG),
        ("Nonresident Elk License", "elk", FeeKind.TAG),
        ("Application Fee", None, FeeKind.APPLICATION),
        ("App Fee", None, FeeKind.APPLICATION),
        ("Qualifying License", None, FeeKind.LICENSE),
        ("Base Hunting & Conservation License", None, FeeKind.LICENSE),
        ("Combo Hunt & Fish", None, FeeKind.LICENSE),
        ("Habitat Stamp", None, FeeKind.LICENSE),
        ("Sportsman Package", None, FeeKind.LICENSE),
        ("Processing Charge", None, FeeKind.OTHER),
        ("Application and Preference Point Fee", None, FeeKind.APPLICATION),
        ("Application and Preference Point Fee", "elk", FeeKind.POINT),
        ("Elk Application Fee", "elk", FeeKind.TAG),
    ])
    def test_classification(self, name, species, expected):
        assert classify_fee(name, species) == expected

    def test_case_insensitive(self):
        assert classify_fee("APPLICATION FEE", None) == FeeKind.APPLICATION

    def test_empty_name(self):
        assert classify_fee("", None) == FeeKind.OTHER
        assert classify_fee(None, "elk") == FeeKind.TAG


class TestParseFeeRow:
    """Parsing and validation at the ingestion boundary."""

    def test_parses_dict_row(self):
        parsed = parse_fee_row(fee("  Elk Tag ", "692.00", species_id="elk"))

        assert parsed.kind == FeeKind.TAG
        assert parsed.name == "Elk Tag"
        assert parsed.amount == 692.0
        assert parsed.residency == Residency.NONRESIDENT
        assert parsed.frequency == "annual"

    def test_residency_is_case_insensitive(self):
        parsed = parse_fee_row(fee("Elk Tag", 57, species_id="elk", residency=" Resident "))
        assert parsed.residency == Residency.RESIDENT

    def test_missing_amount_raises(self):
        with pytest.raises(InvalidScrapedRowError) as exc:
            parse_fee_row(fee("Elk Tag", None, species_id="elk"))
        assert exc.value.field == "amount"

    def test_non_numeric_amount_raises(self):
        with pytest.raises(InvalidScrapedRowError) as exc:
            parse_fee_row(fee("Elk Tag", "call office", species_id="elk"))
        assert exc.value.field == "amount"
        assert exc.value.row_id == "Elk Tag"

    def test_nan_amount_raises(self):
        with pytest.raises(InvalidScrapedRowError):
            parse_fee_row(fee("Elk Tag", float("nan"), species_id="elk"))

    def test_unknown_residency_raises(self):
        with pytest.raises(InvalidScrapedRowError) as exc:
            parse_fee_row(fee("Elk Tag", 692, species_id="elk", residency="alien"))
        assert exc.value.field == "residency"


class TestParseDeadlineRow:

    def test_parses_string_date(self):
        parsed = parse_deadline_row(deadline("elk", "application_close", "2026-02-02"))
        assert parsed.date == date(2026, 2, 2)
        assert parsed.species_id == "elk"

    def test_untracked_type_is_skipped(self):
        assert parse_deadline_row(deadline("elk", "leftover_sale", "2026-07-01")) is None

    def test_bad_date_raises(self):
        with pytest.raises(InvalidScrapedRowError) as exc:
            parse_deadline_row(deadline("elk", "application_close", "next tuesday"))
        assert exc.value.field == "date"

    def test_missing_date_raises(self):
        with pytest.raises(InvalidScrapedRowError):
            parse_deadline_row(deadline("elk", "application_close", None))


# =============================================================================
# Section builders
# =============================================================================

class TestBuildFeeData:
    """Routing of classified fees into the fee section."""

    def test_routes_each_kind(self):
        fees = build_fee_data([
            fee("Application Fee", 15.00),
            fee("Qualifying License", 300.00),
            fee("Bonus Point Fee", 50.00),
            fee("Elk Tag", 692.00, species_id="elk"),
            fee("Elk Preference Point Fee", 52.00, species_id="elk"),
        ])

        assert fees.license_fees.app_fee == 15.00
        assert fees.license_fees.qualifying_license == 300.00
        assert fees.license_fees.point_fee == 50.00
        assert fees.tag_costs == {"elk": 692.00}
        assert fees.point_cost == {"elk": 52.00}

    def test_license_level_rows_are_listed_in_schedule(self):
        fees = build_fee_data([
            fee("Application Fee", 15.00),
            fee("Processing Charge", 5.00),
            fee("Elk Tag", 692.00, species_id="elk"),
        ])

        assert [item.name for item in fees.fee_schedule] == ["Application Fee", "Processing Charge"]
        assert fees.fee_schedule[0] == FeeLineItem(name="Application Fee", amount=15.00)

    def test_other_kind_only_reaches_schedule(self):
        fees = build_fee_data([fee("Processing Charge", 5.00)])

        assert fees.license_fees.app_fee is None
        assert fees.license_fees.qualifying_license is None
        assert len(fees.fee_schedule) == 1

    def test_residents_kept_separate(self):
        fees = build_fee_data([
            fee("Elk Tag", 692.00, species_id="elk", residency="nonresident"),
            fee("Elk Tag", 57.00, species_id="elk", residency="resident"),
        ])

        assert fees.tag_costs == {"elk": 692.00}
        assert fees.resident_tag_costs == {"elk": 57.00}
        assert fees.resident_license_fees is None

    def test_both_residency_counts_as_nonresident(self):
        fees = build_fee_data([fee("Application Fee", 10.00, residency="both")])

        assert fees.license_fees.app_fee == 10.00
        assert len(fees.fee_schedule) == 1
        assert fees.resident_license_fees is None
        assert fees.resident_fee_schedule is None

    def test_both_residency_species_row(self):
        fees = build_fee_data([fee("Elk Tag", 692.00, species_id="elk", residency="both")])

        assert fees.tag_costs == {"elk": 692.00}
        assert fees.resident_tag_costs is None

    def test_resident_sections_absent_without_resident_rows(self):
        fees = build_fee_data([fee("Elk Tag", 692.00, species_id="elk")])

        assert fees.resident_tag_costs is None
        assert fees.resident_point_cost is None
        assert fees.resident_fee_schedule is None

    def test_later_row_wins(self):
        fees = build_fee_data([
            fee("Elk Tag", 692.00, species_id="elk"),
            fee("Elk Tag", 700.00, species_id="elk"),
        ])
        assert fees.tag_costs == {"elk": 700.00}

    def test_zero_fee_is_kept(self):
        fees = build_fee_data([fee("Application Fee", 0)])
        assert fees.license_fees.app_fee == 0.0


class TestBuildDeadlineData:

    def test_open_and_close_merge_into_one_window(self):
        deadlines = build_deadline_data([
            deadline("elk", "application_open", "2026-01-02"),
            deadline("elk", "application_close", "2026-02-02"),
            deadline("moose", "application_close", "2026-03-02"),
        ])

        assert deadlines.application_deadlines == {
            "elk": DeadlineWindow(open=date(2026, 1, 2), close=date(2026, 2, 2)),
            "moose": DeadlineWindow(open=None, close=date(2026, 3, 2)),
        }
        assert deadlines.draw_result_dates == {}

    def test_draw_results_have_own_map(self):
        deadlines = build_deadline_data([deadline("elk", "draw_results", "2026-05-21")])

        assert deadlines.application_deadlines == {}
        assert deadlines.draw_result_dates == {"elk": date(2026, 5, 21)}

    def test_untracked_types_ignored(self):
        deadlines = build_deadline_data([deadline("elk", "leftover_sale", "2026-07-01")])
        assert deadlines.application_deadlines == {}


class TestBuildQuotaData:
    """Quota ingestion is not supported yet."""

    def test_always_empty(self):
        assert build_quota_data().tag_quotas is None

    def test_supplied_rows_ignored(self):
        assert build_quota_data([{"species_id": "elk", "quota": 100}]).tag_quotas is None


# =============================================================================
# Snapshot
# =============================================================================

class TestBuildSnapshot:
    """StagingSnapshot assembly for one batch."""

    def test_snapshot_fields(self):
        baseline = reference_baseline("WY")
        snapshot = build_snapshot(
            "batch-2026-03-01-0042",
            baseline,
            [dict(fee("Elk Tag", 700.00, species_id="elk"), source_url="https://wgfd.wyo.gov/fees")],
            [deadline("elk", "application_close", "2026-02-02")],
            captured_at=PULLED_AT,
        )

        assert snapshot.id == "staging-WY-batch-2026-03-01-0042"
        assert snapshot.state_id == "WY"
        assert snapshot.captured_at == PULLED_AT
        assert snapshot.capture_method == CaptureMethod.SCRAPE
        assert snapshot.data_version == "2026.0042"
        assert snapshot.source_url == "https://wgfd.wyo.gov/fees"
        assert snapshot.notes == "Batch: batch-2026-03-01-0042"

    def test_rules_and_species_carried_from_baseline(self):
        baseline = reference_baseline("WY")
        snapshot = build_snapshot("batch-0001", baseline, [], [], captured_at=PULLED_AT)

        assert snapshot.rules == baseline.rules
        assert snapshot.species == baseline.species
        assert snapshot.quotas.tag_quotas is None

    def test_source_url_falls_back_to_fg_url(self):
        snapshot = build_snapshot("batch-0001", reference_baseline("WY"), [], [], captured_at=PULLED_AT)
        assert snapshot.source_url == "https://wgfd.wyo.gov"

    def test_captured_at_defaults_to_now(self):
        snapshot = build_snapshot("batch-0001", reference_baseline("WY"), [], [])
        assert snapshot.captured_at.tzinfo is None
        assert snapshot.captured_at > datetime(2020, 1, 1)

    def test_invalid_row_raises(self):
        with pytest.raises(InvalidScrapedRowError):
            build_snapshot(
                "batch-0001", reference_baseline("WY"),
                [fee("Elk Tag", "n/a", species_id="elk")], [],
            )

    def test_to_dict_is_json_ready(self):
        snapshot = build_snapshot(
            "batch-0001", reference_baseline("WY"),
            [fee("Elk Tag", 700.00, species_id="elk")],
            [deadline("elk", "application_close", "2026-02-02")],
            captured_at=PULLED_AT,
        )
        data = snapshot.to_dict()

        assert data["captured_at"] == "2026-03-01T12:00:00"
        assert data["fees"]["tag_costs"] == {"elk": 700.00}
        assert data["deadlines"]["application_deadlines"]["elk"] == {"open": None, "close": "2026-02-02"}
        assert data["quotas"] == {"tag_quotas": None}
