"""
Administrative operations on the static cache.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, TYPE_CHECKING

from pydantic import BaseModel

from shared.logging import get_logger
from shared.errors import CacheDeleteError, InvalidResourceIdError, ValidationError

from ..audit.log import AuditLog
from ..store.cache_store import CacheStore
from .catalog import ResourceCatalog
from .preloader import Preloader

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CacheAction = Literal["clear_all", "clear_one", "preload_all"]


class CoverageRow(BaseModel):
    """Cache status of one gated resource."""
    resource_id: str
    title: str = ""
    kind: str = ""
    status: str = ""
    cached: bool = False
    cache_path: Optional[str] = None
    modified_at: Optional[datetime] = None


class ActionResult(BaseModel):
    """Outcome of an admin action, shown on the admin page."""
    action: str
    status: str
    message: str
    count: int = 0
    details: Dict[str, Any] = {}


class AdminOperations:
    """Clear, preload, and coverage reporting for operators."""

    def __init__(
        self,
        store: CacheStore,
        audit_log: AuditLog,
        catalog: ResourceCatalog,
        preloader: Preloader,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.audit_log = audit_log
        self.catalog = catalog
        self.preloader = preloader
        self.metrics = metrics
        self.logger = get_logger("protected_cache.admin")

    def _count(self, action: str) -> None:
        if self.metrics:
            self.metrics.record_admin_action(action)

    async def dispatch(self, action: str, resource_id: Any = None) -> ActionResult:
        """Run a named action as posted by the admin page."""
        if action == "clear_all":
            return self.clear_all()
        if action == "clear_one":
            if resource_id is None or str(resource_id) == "":
                raise ValidationError("clear_one requires a resource id")
            return self.clear_one(resource_id)
        if action == "preload_all":
            return await self.preload_all()
        raise ValidationError(f"Unknown cache action: {action}", details={"action": action})

    def clear_all(self) -> ActionResult:
        removed = self.store.delete_all()
        message = f"All cache cleared by admin ({removed} files removed)."
        self.audit_log.append(message)
        self._count("clear_all")
        return ActionResult(action="clear_all", status="ok", message=message, count=removed)

    def clear_one(self, resource_id: Any) -> ActionResult:
        self._count("clear_one")
        try:
            resource_id = self.store.normalize_id(resource_id)
        except InvalidResourceIdError as exc:
            message = f"Cache file not removed: {exc.message}."
            self.audit_log.append(message)
            return ActionResult(action="clear_one", status="error", message=message,
                                details={"resource_id": str(resource_id)})

        try:
            removed = self.store.delete(resource_id)
        except CacheDeleteError as exc:
            message = f"Failed to remove cache file for resource {resource_id}: {exc.details.get('error', exc.message)}"
            self.audit_log.append(message)
            return ActionResult(action="clear_one", status="error", message=message,
                                details={"resource_id": resource_id})

        if removed:
            message = f"Cache file removed for resource {resource_id}."
            status = "removed"
        else:
            message = f"Cache file not found for resource {resource_id}."
            status = "not_found"
        self.audit_log.append(message)
        return ActionResult(action="clear_one", status=status, message=message,
                            count=int(removed), details={"resource_id": resource_id})

    async def preload_all(self) -> ActionResult:
        self._count("preload_all")
        try:
            resources = await self.catalog.list_gated_resources()
        except Exception as e:
            self.logger.error("Failed to list gated resources for preload", error=str(e))
            message = f"Preload failed: could not list gated resources ({e})."
            self.audit_log.append(message)
            return ActionResult(action="preload_all", status="error", message=message)

        report = await self.preloader.preload(resources)
        message = "Preload all triggered by admin."
        self.audit_log.append(message)
        self.logger.info(
            "Preload completed",
            requested=report.requested,
            failed=report.failed
        )
        return ActionResult(
            action="preload_all",
            status="ok",
            message=message,
            count=report.requested,
            details={"failed": report.failed},
        )

    async def list_coverage(self) -> List[CoverageRow]:
        """Report, for every gated resource, whether and when it was cached."""
        resources = await self.catalog.list_gated_resources()
        entries = self.store.list_all()

        rows: List[CoverageRow] = []
        for resource in resources:
            path = entries.get(resource.resource_id)
            info = self.store.entry_info(resource.resource_id, path) if path is not None else None
            rows.append(CoverageRow(
                resource_id=resource.resource_id,
                title=resource.title,
                kind=resource.kind,
                status=resource.status,
                cached=info is not None,
                cache_path=str(info.path) if info else None,
                modified_at=info.modified_at if info else None,
            ))
        return rows

    def read_log(self) -> List[str]:
        return self.audit_log.read_all_newest_first()
