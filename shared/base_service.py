"""
Base service class for Trade Operations Workspace Layer services.
"""

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from typing import Dict, Optional
import time
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_operation_id, clear_context
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.errors import WorkspaceLayerException

# HTTP status per layer error code
STATUS_BY_CODE: Dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "NOT_FOUND": 404,
    "PARTIAL_BATCH_FAILURE": 502,
    "REMOTE_UNAVAILABLE": 503,
}


class BaseService:
    """Base service class with common functionality."""

    def __init__(
        self,
        service_name: str,
        port: int,
        config: Optional[ServiceConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = metrics or get_metrics_collector(service_name)
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Trade Operations Workspace Layer - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
        )

    def _setup_middleware(self):
        """Set up middleware."""

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            start_time = time.time()
            set_operation_id(request.headers.get("X-Operation-ID"))

            try:
                response = await call_next(request)
            finally:
                clear_context()

            duration = time.time() - start_time
            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )
            return response

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            try:
                dependencies = await self._check_dependencies()
                self.metrics.record_health_check("ok")
                return {
                    "service": self.service_name,
                    "status": "ok",
                    "uptime_seconds": self._get_uptime(),
                    "dependencies": dependencies,
                    "version": "1.0.0",
                    "commit": os.getenv("GIT_COMMIT", "unknown")
                }
            except WorkspaceLayerException as e:
                self.logger.error("Health check failed", error=e.message)
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={
                        "service": self.service_name,
                        "status": "error",
                        "error": e.message
                    }
                )

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=self.metrics.export(), media_type=CONTENT_TYPE_LATEST)

        @self.app.exception_handler(WorkspaceLayerException)
        async def workspace_exception_handler(request: Request, exc: WorkspaceLayerException):
            """Handle WorkspaceLayerException."""
            self.logger.error(
                "Workspace layer error",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            return JSONResponse(
                status_code=STATUS_BY_CODE.get(exc.code, 400),
                content=exc.to_response(request.headers.get("X-Operation-ID")).model_dump(mode="json")
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
