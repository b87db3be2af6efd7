"""
Pydantic models for API param validation.

Usage:
    from api.contracts.pydantic_models import EvaluateBatchParams

    params = EvaluateBatchParams.model_validate(request.get_json() or {})
"""

from .base import BaseParamsModel
from .airlock import (
    DigestParams,
    EvaluateBatchParams,
    QueueListParams,
    ResolveParams,
    ScheduleParams,
    SweepParams,
)

__all__ = [
    'BaseParamsModel',
    'DigestParams',
    'EvaluateBatchParams',
    'QueueListParams',
    'ResolveParams',
    'ScheduleParams',
    'SweepParams',
]
