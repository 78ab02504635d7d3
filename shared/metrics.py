"""
Shared metrics configuration for the protected static cache service.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for the service."""
    
    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()
    
    def _setup_metrics(self):
        """Set up common metrics for the service."""
        
        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })
        
        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )
        
        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )
        
        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )
        
        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_cache_metrics()
    
    def _setup_cache_metrics(self):
        """Set up static cache metrics."""
        self._metrics["cache_decisions_total"] = Counter(
            "cache_decisions_total",
            "Request path decisions taken by the cache coordinator",
            ["decision"],
            registry=self.registry
        )
        
        self._metrics["cache_writes_total"] = Counter(
            "cache_writes_total",
            "Cache entry write attempts",
            ["status"],
            registry=self.registry
        )
        
        self._metrics["cache_admin_actions_total"] = Counter(
            "cache_admin_actions_total",
            "Administrative cache actions",
            ["action"],
            registry=self.registry
        )

        self._metrics["cache_render_duration_seconds"] = Histogram(
            "cache_render_duration_seconds",
            "Time spent rendering pages on the capture path",
            registry=self.registry
        )
    
    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)
    
    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        
        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)
    
    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()
    
    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_cache_decision(self, decision: str):
        """Record which state the coordinator ended a request in."""
        self._metrics["cache_decisions_total"].labels(decision=decision).inc()

    def record_cache_write(self, status: str):
        """Record a cache write attempt outcome."""
        self._metrics["cache_writes_total"].labels(status=status).inc()

    def record_admin_action(self, action: str):
        """Record an administrative action."""
        self._metrics["cache_admin_actions_total"].labels(action=action).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
