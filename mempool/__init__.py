from .batch_resolver import BatchResolver, ResolutionResult, resolve_in_order
from .fee_priority import resolve_by_fee
from .maximal_sets import (
    SetCandidate,
    check_set_consistency,
    enumerate_maximal_sets,
    search_maximal_sets,
    select_set,
)

__all__ = [
    "BatchResolver",
    "ResolutionResult",
    "SetCandidate",
    "check_set_consistency",
    "enumerate_maximal_sets",
    "resolve_by_fee",
    "resolve_in_order",
    "search_maximal_sets",
    "select_set",
]
