"""Metrics endpoint and landing page using FastAPI."""
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
import html
import logging

from smartthings_exporter import __version__

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>SmartThings Exporter</title></head>
<body>
<h1>SmartThings Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>"""


class ExporterWebApp:
    """FastAPI app serving the registry in exposition format."""

    def __init__(self, registry: CollectorRegistry, telemetry_path: str = "/metrics"):
        """
        Initialize the web app.

        Args:
            registry: Registry holding the SmartThings collector
            telemetry_path: Path under which metrics are exposed
        """
        self.registry = registry
        self.telemetry_path = telemetry_path
        self.app = FastAPI(title="SmartThings Exporter", version=__version__)
        self._setup_routes()

    def _setup_routes(self):
        """Setup HTTP routes."""

        # Sync handler: FastAPI runs it in the threadpool.
        @self.app.get(self.telemetry_path)
        def metrics():
            return Response(generate_latest(self.registry), media_type=CONTENT_TYPE_LATEST)

        @self.app.get("/", response_class=HTMLResponse)
        def landing():
            return LANDING_PAGE.format(metrics_path=html.escape(self.telemetry_path, quote=True))

        @self.app.get("/healthz")
        def healthz():
            return {"status": "healthy"}

    def run(self, host: str = "0.0.0.0", port: int = 9499):
        """Run the HTTP server (blocking)."""
        import uvicorn
        logger.info(f"Listening on {host}:{port}, metrics at {self.telemetry_path}")
        # log_config=None keeps the handlers and levels set by setup_logging
        uvicorn.run(self.app, host=host, port=port, log_config=None)
