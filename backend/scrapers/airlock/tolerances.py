"""
Airlock tolerance thresholds.

Loaded once at process start (see services.airlock_config.get_tolerances)
and read-only afterwards.
"""
from dataclasses import dataclass, fields
from typing import Any, Mapping


@dataclass(frozen=True)
class AirlockTolerances:
    """Thresholds that decide pass/warn/block for each kind of change."""

    fee_increase_max_pct: float = 8.0
    fee_decrease_max_pct: float = 1.0
    deadline_shift_max_days: int = 3
    # Reserved for quota diffing; quotas are not scraped yet.
    quota_drop_max_pct: float = 20.0
    block_on_rule_mutation: bool = True
    block_on_species_removal: bool = True
    warn_on_species_added: bool = True

    def __post_init__(self):
        for name in ("fee_increase_max_pct", "fee_decrease_max_pct", "quota_drop_max_pct"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.deadline_shift_max_days < 0:
            raise ValueError(
                f"deadline_shift_max_days must be >= 0, got {self.deadline_shift_max_days}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AirlockTolerances":
        """Build from a mapping, ignoring unknown keys and keeping defaults for missing ones."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_TOLERANCES = AirlockTolerances()
