"""
Base Pydantic model for all airlock API param schemas.

Key features:
- frozen=True: Immutable after normalization (prevents downstream mutation)
- populate_by_name=True: Accept both alias and field name
- extra='ignore': Ignore undeclared fields (safe)
- state_id normalized to the 2-letter upper-case code at the boundary
"""

from pydantic import BaseModel, ConfigDict, field_validator


class BaseParamsModel(BaseModel):
    """
    Base model for all API param schemas.

    All param models inherit from this to ensure consistent behavior:
    - Frozen after creation (immutable)
    - Whitespace stripped from strings
    - Both alias and field name accepted
    - Unknown fields ignored
    - state_id upper-cased ('wy' -> 'WY'); blank means "not given"
    """
    model_config = ConfigDict(
        frozen=True,  # Immutable after normalization
        str_strip_whitespace=True,  # Strip whitespace from strings
        populate_by_name=True,  # Accept both alias and field name
        extra='ignore',  # Ignore undeclared fields
    )

    @field_validator('state_id', mode='before', check_fields=False)
    @classmethod
    def normalize_state_id(cls, v):
        """Normalize state_id at the validation boundary."""
        if v is None:
            return None
        if isinstance(v, str):
            key = v.strip()
            if key == '':
                return None
            return key.upper()
        return v
