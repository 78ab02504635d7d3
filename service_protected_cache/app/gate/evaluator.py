"""
Request context and gate evaluator protocol.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from starlette.requests import Request


@dataclass
class RequestContext:
    """Per-request state handed to the gate and carried through the coordinator."""

    request: Any
    resource_id: Optional[str] = None
    trail: List[str] = field(default_factory=list)
    gate_answers: Dict[str, bool] = field(default_factory=dict)
    head_only: bool = False


@runtime_checkable
class GateEvaluator(Protocol):
    """
    Host-provided view of the password gate.

    Implementations must be side-effect free and return the same answer
    when called repeatedly within one request.
    """

    async def is_gated_resource(self, ctx: RequestContext) -> bool:
        """True if the request targets a resource with an access secret."""
        ...

    async def is_locked(self, ctx: RequestContext) -> bool:
        """True if the requester has not satisfied the secret."""
        ...

    async def is_privileged_bypass(self, ctx: RequestContext) -> bool:
        """True if the requester is an operator who must never get cached output."""
        ...


class GateSnapshot:
    """Memoizes gate answers on the request context so each is asked at most once."""

    def __init__(self, gate: GateEvaluator, ctx: RequestContext):
        self.gate = gate
        self.ctx = ctx

    async def _ask(self, name: str) -> bool:
        if name not in self.ctx.gate_answers:
            self.ctx.gate_answers[name] = bool(await getattr(self.gate, name)(self.ctx))
        return self.ctx.gate_answers[name]

    async def is_gated(self) -> bool:
        return await self._ask("is_gated_resource")

    async def is_locked(self) -> bool:
        return await self._ask("is_locked")

    async def is_privileged(self) -> bool:
        return await self._ask("is_privileged_bypass")


ResourceResolver = Callable[[Request], Optional[str]]


class PathResourceResolver:
    """
    Treats GET and HEAD requests whose path matches a pattern as
    single-resource views.
    """

    def __init__(self, pattern: str, methods: tuple = ("GET", "HEAD")):
        self.pattern = re.compile(pattern)
        self.methods = methods

    def __call__(self, request: Request) -> Optional[str]:
        if request.method not in self.methods:
            return None
        match = self.pattern.match(request.url.path)
        if not match:
            return None
        return match.group("resource_id")


class TrustedHeaderGateEvaluator:
    """
    Reads gate facts from headers set by a trusted upstream host.

    For deployments where the host application sits in front of this
    service and annotates each request after checking the password cookie
    and the operator session. The headers must be stripped from client
    traffic by that host.
    """

    def __init__(
        self,
        gated_header: str = "X-PPSC-Gated",
        unlocked_header: str = "X-PPSC-Unlocked",
        privileged_header: str = "X-PPSC-Privileged",
    ):
        self.gated_header = gated_header
        self.unlocked_header = unlocked_header
        self.privileged_header = privileged_header

    @staticmethod
    def _flag(ctx: RequestContext, header: str) -> bool:
        value = ctx.request.headers.get(header, "")
        return value.strip().lower() in ("1", "true", "yes", "on")

    async def is_gated_resource(self, ctx: RequestContext) -> bool:
        return self._flag(ctx, self.gated_header)

    async def is_locked(self, ctx: RequestContext) -> bool:
        return not self._flag(ctx, self.unlocked_header)

    async def is_privileged_bypass(self, ctx: RequestContext) -> bool:
        return self._flag(ctx, self.privileged_header)
