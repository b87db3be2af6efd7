"""
Airlock Configuration - Tolerances, kill switches and sweep limits

Tolerances are read from backend/config/airlock_tolerances.yaml (if present)
and then overridden per key by environment variables. The result is cached
for the lifetime of the process.

Environment Variables:
    AIRLOCK_AUTO_PROMOTE_ENABLED: 'true' or 'false' (default: 'true')
        Kill switch. When false, a clean (pass) verdict is still recorded
        but the batch is quarantined for manual review.

    AIRLOCK_SANITY_CHECKS_ENABLED: 'true' or 'false' (default: 'true')
        Hard min/max bounds on fees, applied on top of the diff.

    AIRLOCK_ANOMALY_CHECKS_ENABLED: 'true' or 'false' (default: 'true')
        z-score check of fees against their approved history.

    AIRLOCK_ANOMALY_THRESHOLD_SIGMA: float (default: 3.0)

    AIRLOCK_SWEEP_BATCH_LIMIT: int (default: 200)
        Max staging batches evaluated per reconciliation sweep.

    AIRLOCK_TOLERANCES_PATH: path to an alternative YAML file

    AIRLOCK_FEE_INCREASE_MAX_PCT, AIRLOCK_FEE_DECREASE_MAX_PCT,
    AIRLOCK_DEADLINE_SHIFT_MAX_DAYS, AIRLOCK_QUOTA_DROP_MAX_PCT,
    AIRLOCK_BLOCK_ON_RULE_MUTATION, AIRLOCK_BLOCK_ON_SPECIES_REMOVAL,
    AIRLOCK_WARN_ON_SPECIES_ADDED:
        Per-threshold overrides.
"""

import os
import logging
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from scrapers.airlock.anomaly import DEFAULT_THRESHOLD_SIGMA
from scrapers.airlock.tolerances import AirlockTolerances, DEFAULT_TOLERANCES
from utils.normalize import ValidationError, to_bool, to_float, to_int

logger = logging.getLogger(__name__)

_DISABLED_VALUES = ('false', '0', 'no', 'off', 'disabled')

DEFAULT_SWEEP_BATCH_LIMIT = 200
DIGEST_WINDOW_DAYS = 7


# =============================================================================
# Kill Switches
# =============================================================================

def is_auto_promote_enabled() -> bool:
    """
    Check if clean batches may be promoted without review.

    Environment:
        AIRLOCK_AUTO_PROMOTE_ENABLED: 'true' (default) or 'false'
    """
    enabled = os.environ.get('AIRLOCK_AUTO_PROMOTE_ENABLED', 'true').lower()
    if enabled in _DISABLED_VALUES:
        logger.warning("Airlock auto-promotion is DISABLED via AIRLOCK_AUTO_PROMOTE_ENABLED")
        return False
    return True


def is_sanity_checks_enabled() -> bool:
    """
    Check if fee sanity bounds are enforced during evaluation.

    Environment:
        AIRLOCK_SANITY_CHECKS_ENABLED: 'true' (default) or 'false'
    """
    enabled = os.environ.get('AIRLOCK_SANITY_CHECKS_ENABLED', 'true').lower()
    if enabled in _DISABLED_VALUES:
        logger.warning("Airlock sanity checks are DISABLED via AIRLOCK_SANITY_CHECKS_ENABLED")
        return False
    return True


def is_anomaly_checks_enabled() -> bool:
    """
    Check if scraped fees are compared with their approved history.

    Environment:
        AIRLOCK_ANOMALY_CHECKS_ENABLED: 'true' (default) or 'false'
    """
    enabled = os.environ.get('AIRLOCK_ANOMALY_CHECKS_ENABLED', 'true').lower()
    if enabled in _DISABLED_VALUES:
        logger.warning("Airlock anomaly checks are DISABLED via AIRLOCK_ANOMALY_CHECKS_ENABLED")
        return False
    return True


def get_anomaly_threshold_sigma() -> float:
    """
    z-score above which a fee is flagged against its history.

    Environment:
        AIRLOCK_ANOMALY_THRESHOLD_SIGMA: default 3.0
    """
    raw = os.environ.get('AIRLOCK_ANOMALY_THRESHOLD_SIGMA')
    try:
        threshold = to_float(raw, default=DEFAULT_THRESHOLD_SIGMA, field='AIRLOCK_ANOMALY_THRESHOLD_SIGMA')
    except ValidationError as e:
        logger.warning(f"{e}, defaulting to {DEFAULT_THRESHOLD_SIGMA}")
        return DEFAULT_THRESHOLD_SIGMA
    if threshold <= 0:
        logger.warning(
            f"Invalid AIRLOCK_ANOMALY_THRESHOLD_SIGMA {threshold}, "
            f"defaulting to {DEFAULT_THRESHOLD_SIGMA}"
        )
        return DEFAULT_THRESHOLD_SIGMA
    return threshold


def get_sweep_batch_limit() -> int:
    """
    Max staging batches evaluated per sweep.

    Environment:
        AIRLOCK_SWEEP_BATCH_LIMIT: default 200
    """
    try:
        limit = int(os.environ.get('AIRLOCK_SWEEP_BATCH_LIMIT', str(DEFAULT_SWEEP_BATCH_LIMIT)))
    except ValueError:
        return DEFAULT_SWEEP_BATCH_LIMIT
    if limit <= 0:
        logger.warning(
            f"Invalid AIRLOCK_SWEEP_BATCH_LIMIT {limit}, "
            f"defaulting to {DEFAULT_SWEEP_BATCH_LIMIT}"
        )
        return DEFAULT_SWEEP_BATCH_LIMIT
    return limit


# =============================================================================
# Tolerances
# =============================================================================

_ENV_OVERRIDES = {
    'fee_increase_max_pct': ('AIRLOCK_FEE_INCREASE_MAX_PCT', to_float),
    'fee_decrease_max_pct': ('AIRLOCK_FEE_DECREASE_MAX_PCT', to_float),
    'deadline_shift_max_days': ('AIRLOCK_DEADLINE_SHIFT_MAX_DAYS', to_int),
    'quota_drop_max_pct': ('AIRLOCK_QUOTA_DROP_MAX_PCT', to_float),
    'block_on_rule_mutation': ('AIRLOCK_BLOCK_ON_RULE_MUTATION', to_bool),
    'block_on_species_removal': ('AIRLOCK_BLOCK_ON_SPECIES_REMOVAL', to_bool),
    'warn_on_species_added': ('AIRLOCK_WARN_ON_SPECIES_ADDED', to_bool),
}


def default_tolerances_path() -> str:
    """Get default tolerances path."""
    return os.environ.get('AIRLOCK_TOLERANCES_PATH') or str(
        Path(__file__).parent.parent / "config" / "airlock_tolerances.yaml"
    )


def _load_yaml(path: str) -> Dict[str, Any]:
    """Load tolerance overrides from YAML; empty dict if missing."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Airlock tolerances not found at {path}, using defaults")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Airlock tolerances at {path} is not a mapping, using defaults")
        return {}
    logger.info(f"Loaded airlock tolerances from {path}")
    return data


def _apply_value(values: Dict[str, Any], key: str, raw: Any, converter, source: str):
    """Convert and validate one threshold; keep the previous value on failure."""
    try:
        value = converter(raw, field=key)
        if value is None:
            return
        candidate = dict(values)
        candidate[key] = value
        AirlockTolerances(**candidate)
    except (ValidationError, ValueError, TypeError) as e:
        logger.warning(f"Invalid {source} value {raw!r} for {key}: {e}. Keeping {values[key]!r}")
        return
    values[key] = value


def load_tolerances(path: Optional[str] = None) -> AirlockTolerances:
    """
    Build tolerances from defaults, the YAML file and env overrides (in that order).

    Args:
        path: YAML file path. Defaults to backend/config/airlock_tolerances.yaml

    Returns:
        AirlockTolerances
    """
    values = DEFAULT_TOLERANCES.to_dict()
    known = {f.name for f in fields(AirlockTolerances)}

    file_values = _load_yaml(path or default_tolerances_path())
    for key, raw in file_values.items():
        if key not in known:
            logger.warning(f"Unknown airlock tolerance key '{key}' ignored")
            continue
        _apply_value(values, key, raw, _ENV_OVERRIDES[key][1], "YAML")

    for key, (env_name, converter) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        _apply_value(values, key, raw, converter, env_name)

    return AirlockTolerances(**values)


# Process-wide cache (lazy init)
_tolerances = None


def get_tolerances() -> AirlockTolerances:
    """Get the process-wide tolerances, loading them on first use."""
    global _tolerances
    if _tolerances is None:
        _tolerances = load_tolerances()
    return _tolerances


def reset_tolerances_cache():
    """Drop the cached tolerances. Tests only."""
    global _tolerances
    _tolerances = None
