"""
Tests for z-score anomaly detection against approved fee history.
"""

import math

import pytest

from scrapers.airlock.anomaly import (
    anomaly_diffs,
    check_anomaly,
    detect_fee_anomalies,
    fee_history,
    fee_values,
)
from scrapers.airlock.types import DiffSeverity, FeeData, LicenseFees

from factories import fee, make_fee_row, wy_snapshot


class TestCheckAnomaly:
    """Mean 100, population sigma 10 for [90, 110]."""

    def test_exactly_at_threshold_is_normal(self):
        result = check_anomaly("NR.tag_cost", 130.0, [90.0, 110.0])

        assert result.z_score == 3.0
        assert result.is_anomaly is False
        assert result.historical_mean == 100.0
        assert result.historical_std_dev == 10.0

    def test_just_over_threshold(self):
        result = check_anomaly("NR.tag_cost", 130.5, [90.0, 110.0])

        assert result.is_anomaly is True
        assert result.z_score > 3.0
        assert "history range 90.00-110.00" in result.explanation

    def test_below_mean_uses_absolute_z(self):
        assert check_anomaly("NR.tag_cost", 69.0, [90.0, 110.0]).is_anomaly is True

    def test_custom_threshold(self):
        result = check_anomaly("NR.tag_cost", 115.0, [90.0, 110.0], threshold_sigma=1.0)

        assert result.is_anomaly is True
        assert result.threshold == 1.0

    @pytest.mark.parametrize("history", [[], [700.0]])
    def test_insufficient_history(self, history):
        result = check_anomaly("NR.tag_cost", 55.0, history)

        assert result.is_anomaly is False
        assert result.z_score == 0.0
        assert result.history_size == len(history)
        assert "Insufficient history" in result.explanation

    def test_constant_history_departure(self):
        result = check_anomaly("NR.app_fee", 16.0, [15.0, 15.0, 15.0])

        assert result.is_anomaly is True
        assert math.isinf(result.z_score)
        assert result.to_dict()["z_score"] is None

    def test_constant_history_match(self):
        result = check_anomaly("NR.app_fee", 15.0, [15.0, 15.0])

        assert result.is_anomaly is False
        assert result.z_score == 0.0


class TestFeeSlots:

    def test_fee_values_keys(self):
        fees = FeeData(
            license_fees=LicenseFees(app_fee=15.0),
            tag_costs={"elk": 692.0},
            point_cost={"elk": 52.0},
            resident_tag_costs={"elk": 57.0},
        )

        assert fee_values(fees) == {
            ("NR", "app_fee", None): 15.0,
            ("NR", "tag_cost", "elk"): 692.0,
            ("NR", "point_cost", "elk"): 52.0,
            ("R", "tag_cost", "elk"): 57.0,
        }

    def test_history_one_point_per_batch(self):
        rows = [
            make_fee_row(batch_id="b0", fee_name="Elk Tag", amount=680.00, species_id="elk"),
            make_fee_row(batch_id="b0", fee_name="Elk Tag", amount=690.00, species_id="elk"),
            make_fee_row(batch_id="b1", fee_name="Elk Tag", amount=700.00, species_id="elk"),
            make_fee_row(batch_id="b1", fee_name="Application Fee", amount=15.00),
        ]

        history = fee_history(rows)

        # Later row of a batch wins, as in the snapshot
        assert history[("NR", "tag_cost", "elk")] == [690.00, 700.00]
        assert history[("NR", "app_fee", None)] == [15.00]


class TestDetectFeeAnomalies:

    def test_only_anomalous_slots_returned(self):
        fees = FeeData(tag_costs={"elk": 705.0, "mule_deer": 380.0})
        history = {
            ("NR", "tag_cost", "elk"): [700.0, 700.0],
            ("NR", "tag_cost", "mule_deer"): [370.0, 390.0],
        }

        anomalies = detect_fee_anomalies(fees, history)

        assert [(a.field, a.species_id) for a in anomalies] == [("NR.tag_cost", "elk")]

    def test_slots_without_history_pass(self):
        assert detect_fee_anomalies(FeeData(tag_costs={"elk": 5000.0}), {}) == []


class TestAnomalyDiffs:

    def test_warn_diff(self):
        snapshot = wy_snapshot([fee("Elk Tag", 705.00, species_id="elk")])
        anomalies = detect_fee_anomalies(snapshot.fees, {("NR", "tag_cost", "elk"): [700.0, 700.0]})

        diffs = anomaly_diffs(snapshot, anomalies)

        assert len(diffs) == 1
        diff = diffs[0]
        assert diff.severity == DiffSeverity.WARN
        assert diff.field == "anomaly.NR.tag_cost.elk"
        assert diff.id == "diff-WY-anomaly.NR.tag_cost.elk-20260301T120000"
        assert diff.old_value == 700.0
        assert diff.new_value == 705.0
        assert "over 2 approved batches" in diff.tolerance_rule
