"""
Tests for services/freshness.py

Boundaries: < 24h fresh, < 4d aging, < 14d stale, >= 14d critical.
"""

from datetime import datetime, timedelta, timezone

import pytest

from services.freshness import StalenessLevel, VerificationMethod, compute_freshness_stamp
from utils.normalize import ValidationError

NOW = datetime(2026, 3, 15, 12, 0, 0)


def _stamp(age, **kwargs):
    return compute_freshness_stamp(
        "WY", "tag_costs.elk", NOW - age, "https://wgfd.wyo.gov", now=NOW, **kwargs
    )


class TestStalenessLevels:
    """Level and label per age bracket."""

    def test_just_now(self):
        stamp = _stamp(timedelta(minutes=20))

        assert stamp.staleness_level == StalenessLevel.FRESH
        assert stamp.freshness_label == "Verified against WY G&F: just now"
        assert stamp.is_stale is False

    def test_hours(self):
        assert _stamp(timedelta(hours=4, minutes=30)).freshness_label == "Verified against WY G&F: 4 hours ago"

    def test_one_hour_singular(self):
        assert _stamp(timedelta(hours=1)).freshness_label == "Verified against WY G&F: 1 hour ago"

    def test_exactly_24h_is_aging(self):
        stamp = _stamp(timedelta(hours=24))

        assert stamp.staleness_level == StalenessLevel.AGING
        assert stamp.freshness_label == "Verified: 1 day ago"
        assert stamp.is_stale is False

    def test_just_under_24h_is_fresh(self):
        assert _stamp(timedelta(hours=23, minutes=59)).staleness_level == StalenessLevel.FRESH

    def test_aging_days(self):
        assert _stamp(timedelta(days=3)).freshness_label == "Verified: 3 days ago"

    def test_stale(self):
        stamp = _stamp(timedelta(days=8))

        assert stamp.staleness_level == StalenessLevel.STALE
        assert stamp.freshness_label == "Last verified: 8 days ago"
        assert stamp.is_stale is True

    def test_four_days_is_stale(self):
        assert _stamp(timedelta(days=4)).staleness_level == StalenessLevel.STALE

    def test_exactly_14_days_is_critical(self):
        stamp = _stamp(timedelta(days=14))

        assert stamp.staleness_level == StalenessLevel.CRITICAL
        assert stamp.freshness_label == "STALE: Last verified 14 days ago"
        assert stamp.is_stale is True

    def test_just_under_14_days_is_stale(self):
        assert _stamp(timedelta(days=13, hours=23)).staleness_level == StalenessLevel.STALE


class TestStampInputs:
    """Timestamp and method parsing."""

    def test_future_timestamp_is_just_now(self):
        stamp = _stamp(-timedelta(hours=2))
        assert stamp.freshness_label == "Verified against WY G&F: just now"

    def test_iso_string(self):
        stamp = compute_freshness_stamp(
            "CO", "license_fees.app_fee", "2026-03-15T10:00:00Z", "https://cpw.state.co.us", now=NOW,
        )
        assert stamp.last_verified_at == datetime(2026, 3, 15, 10, 0, 0)
        assert stamp.freshness_label == "Verified against CO G&F: 2 hours ago"

    def test_aware_now(self):
        aware_now = NOW.replace(tzinfo=timezone.utc)
        stamp = compute_freshness_stamp("WY", "f", NOW - timedelta(days=2), "u", now=aware_now)
        assert stamp.staleness_level == StalenessLevel.AGING

    def test_method_string(self):
        stamp = _stamp(timedelta(hours=1), verification_method="lkg_fallback")
        assert stamp.verification_method == VerificationMethod.LKG_FALLBACK

    def test_unknown_method_raises(self):
        with pytest.raises(ValueError):
            _stamp(timedelta(hours=1), verification_method="carrier_pigeon")

    def test_bad_timestamp_raises(self):
        with pytest.raises(ValidationError):
            compute_freshness_stamp("WY", "f", "yesterday-ish", "u", now=NOW)

    def test_to_dict(self):
        data = _stamp(timedelta(days=30)).to_dict()

        assert data["staleness_level"] == "critical"
        assert data["verification_method"] == "crawl"
        assert data["last_verified_at"] == "2026-02-13T12:00:00"
