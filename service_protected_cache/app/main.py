"""
Protected static cache service.
"""

from typing import Any, Dict, List, Optional, Union

from fastapi import Request
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.config import DEFAULT_NONCE_SECRET, ServiceConfig, get_config
from shared.errors import AuthorizationError, CacheStoreError

from .admin.catalog import FileResourceCatalog, ResourceCatalog
from .admin.nonce import CACHE_ACTION, NonceManager
from .admin.operations import AdminOperations, CacheAction
from .admin.preloader import Preloader
from .audit.log import AuditLog
from .coordinator.classifier import LockMarkerClassifier, PageClassifier
from .coordinator.coordinator import CacheCoordinator
from .coordinator.middleware import install_static_cache
from .gate.evaluator import (
    GateEvaluator,
    PathResourceResolver,
    RequestContext,
    ResourceResolver,
    TrustedHeaderGateEvaluator,
)
from .store.cache_store import CacheStore


class CacheActionRequest(BaseModel):
    """Mutating admin action posted from the admin page."""
    action: CacheAction
    resource_id: Optional[Union[str, int]] = None
    nonce: str


class ProtectedCacheService(BaseService):
    """Static cache for password-gated pages, plus its admin surface."""
    
    def __init__(
        self,
        gate: Optional[GateEvaluator] = None,
        catalog: Optional[ResourceCatalog] = None,
        *,
        config: Optional[ServiceConfig] = None,
        resolver: Optional[ResourceResolver] = None,
        classifier: Optional[PageClassifier] = None,
        preloader: Optional[Preloader] = None,
    ):
        config = config or get_config()
        self.gate = gate or TrustedHeaderGateEvaluator()
        self._catalog = catalog
        self._resolver = resolver
        self._classifier = classifier
        self._preloader = preloader
        super().__init__(config.service_name, config.port, config)

        self._setup_admin_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.cache_service = self

    def _setup_middleware(self):
        """Build the cache components and install the cache middleware inside request timing."""
        config = self.config
        self.store = CacheStore(config.cache_dir, config.access_deny_filename)
        self.audit_log = AuditLog(config.log_path, recent_size=config.audit_recent_size)
        self.catalog = self._catalog or FileResourceCatalog(config.resources_file)
        self.resolver = self._resolver or PathResourceResolver(config.resource_path_pattern)
        self.coordinator = CacheCoordinator(
            self.store,
            self.gate,
            self.audit_log,
            classifier=self._classifier or LockMarkerClassifier(config.lock_markers),
            system_name=config.system_name,
            single_flight=config.single_flight,
            metrics=self.metrics,
        )
        self.preloader = self._preloader or Preloader(
            config.public_base_url,
            config.resource_path_template,
            timeout=config.preload_timeout_seconds,
            cookie=config.preload_cookie,
        )
        self.admin = AdminOperations(
            self.store,
            self.audit_log,
            self.catalog,
            self.preloader,
            metrics=self.metrics,
        )
        self.nonces = NonceManager(config.nonce_secret, config.nonce_ttl_seconds)

        install_static_cache(self.app, self.coordinator, self.resolver)
        super()._setup_middleware()

    async def _on_startup(self) -> None:
        """Create the cache directory, access-denial file and log file."""
        if self.config.nonce_secret == DEFAULT_NONCE_SECRET and self.config.env != "local":
            self.logger.warning(
                "Default anti-forgery secret in use; set PPSC_NONCE_SECRET",
                env=self.config.env
            )
        self.activate()

    def activate(self) -> bool:
        try:
            self.store.ensure_directory()
            self.audit_log.init_file()
        except (CacheStoreError, OSError) as e:
            self.logger.error("Cache activation failed", error=str(e))
            self.audit_log.append(f"Activation failed: {e}")
            return False
        self.logger.info("Cache directory ready", path=str(self.store.cache_dir))
        return True

    async def _require_operator(self, request: Request) -> RequestContext:
        ctx = RequestContext(request=request)
        if not await self.gate.is_privileged_bypass(ctx):
            raise AuthorizationError("Operator privileges required")
        return ctx

    async def _coverage(self) -> List[Dict[str, Any]]:
        rows = await self.admin.list_coverage()
        return [row.model_dump(mode="json") for row in rows]

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"cache_dir": "ok" if self.store.cache_dir.is_dir() else "missing"}

    def _setup_admin_routes(self):
        """Set up admin routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": self.service_name,
                "message": "Protected Static Cache",
                "version": "1.0.0"
            }

        @self.app.get("/admin/cache")
        async def admin_page(request: Request):
            """Coverage, newest-first log, and a fresh anti-forgery token."""
            await self._require_operator(request)
            return {
                "log_file": str(self.audit_log.path),
                "coverage": await self._coverage(),
                "logs": self.admin.read_log(),
                "nonce": self.nonces.issue(CACHE_ACTION),
            }

        @self.app.post("/admin/cache/actions")
        async def admin_action(request: Request, body: CacheActionRequest):
            """Run clear_all, clear_one or preload_all."""
            await self._require_operator(request)
            self.nonces.verify(body.nonce, CACHE_ACTION)

            result = await self.admin.dispatch(body.action, body.resource_id)
            return {
                "result": result.model_dump(mode="json"),
                "coverage": await self._coverage(),
            }


def create_app(
    gate: Optional[GateEvaluator] = None,
    catalog: Optional[ResourceCatalog] = None,
    config: Optional[ServiceConfig] = None,
):
    """Create FastAPI application."""
    service = ProtectedCacheService(gate, catalog, config=config)
    return service.app


if __name__ == "__main__":
    service = ProtectedCacheService()
    service.run()
