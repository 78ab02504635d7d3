"""
Gate evaluation contract.

The host application decides whether a resource is gated, whether the
current requester has unlocked it, and whether the requester is an
operator. This package describes that contract and ships an adapter for
hosts that forward those facts as trusted request headers.
"""

from .evaluator import (
    GateEvaluator,
    GateSnapshot,
    PathResourceResolver,
    RequestContext,
    ResourceResolver,
    TrustedHeaderGateEvaluator,
)

__all__ = [
    "GateEvaluator",
    "GateSnapshot",
    "PathResourceResolver",
    "RequestContext",
    "ResourceResolver",
    "TrustedHeaderGateEvaluator",
]
