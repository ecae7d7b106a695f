"""
FastAPI skeleton shared by the Props entitlement services.

Subclasses register their own routes and override ``start``, ``stop`` and
``_check_dependencies``. The base wires request ids into the log context,
exposes ``/health`` and ``/metrics`` and renders ``EntitlementsError``
subclasses with their own status codes.
"""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import time
import os

from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from .config import ServiceConfig, get_config
from .logging import configure_logging, get_logger, set_request_id, clear_context
from .metrics import get_metrics_collector
from .errors import EntitlementsError

SERVICE_VERSION = "1.0.0"
REQUEST_ID_HEADER = "x-request-id"


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        configure_logging(service_name, self.config.log_level)

        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self.start()
            try:
                yield
            finally:
                await self.stop()

        # API docs are only served for local development
        local = self.config.env == "local"
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Props - {self.service_name.title()} Service",
            version=SERVICE_VERSION,
            docs_url="/docs" if local else None,
            redoc_url="/redoc" if local else None,
            lifespan=lifespan,
        )

    def _setup_middleware(self):
        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            started = time.time()
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
            try:
                response = await call_next(request)
                self._record_request(request, response.status_code, time.time() - started)
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                clear_context()

    def _record_request(self, request: Request, status_code: int, duration: float):
        # Route template keeps user and show ids out of metric labels
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        self.metrics.record_http_request(request.method, endpoint, status_code, duration)
        self.logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round(duration * 1000, 2)
        )

    def _health_payload(self, status: str, **extra: Any) -> Dict[str, Any]:
        return {
            "service": self.service_name,
            "status": status,
            "uptime_seconds": time.time() - self._start_time,
            "version": SERVICE_VERSION,
            "commit": os.getenv("GIT_COMMIT", "unknown"),
            **extra
        }

    def _setup_routes(self):
        @self.app.get("/health")
        async def health_check():
            """Health check; any dependency reporting "error" marks the service degraded."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(status_code=503, content=self._health_payload("error", error=str(e)))

            status = "degraded" if "error" in dependencies.values() else "ok"
            self.metrics.record_health_check(status)
            return self._health_payload(status, dependencies=dependencies)

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(self.metrics.registry),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(EntitlementsError)
        async def entitlements_error_handler(request: Request, exc: EntitlementsError):
            log = self.logger.warning if exc.status_code < 500 else self.logger.error
            log(
                "Request failed",
                path=request.url.path,
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())

        @self.app.exception_handler(Exception)
        async def unhandled_error_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Map of dependency name to "ok", "error" or an informational state."""
        return {}

    async def start(self):
        """Start service components. Override in subclasses."""

    async def stop(self):
        """Stop service components. Override in subclasses."""

    def run(self):
        """Run the service under uvicorn."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
