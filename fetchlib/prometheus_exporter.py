import logging
import threading

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, start_http_server

from .metrics import Metrics


logger = logging.getLogger(__name__)


class PrometheusExporter:
    def __init__(self, metrics: Metrics, port: int = 8000, registry: CollectorRegistry | None = None) -> None:
        self.metrics = metrics
        self.port = port
        self.registry = registry or REGISTRY
        self._server_thread: threading.Thread | None = None
        self._stop_event = threading.Event()

        self.requests_total = Counter(
            'fetchlib_requests_total', 'Total number of fetch calls', registry=self.registry
        )
        self.bytes_total = Counter(
            'fetchlib_response_bytes_total', 'Total number of response bytes received', registry=self.registry
        )
        self.errors_total = Counter(
            'fetchlib_errors_total', 'Total number of failed fetch calls', ['kind'], registry=self.registry
        )
        self.avg_fetch_duration_seconds = Gauge(
            'fetchlib_avg_fetch_duration_seconds', 'Average fetch duration in seconds', registry=self.registry
        )

        self._last_requests = 0
        self._last_bytes = 0
        self._last_errors: dict[str, int] = {}

    def start(self) -> None:
        start_http_server(self.port, registry=self.registry)
        logger.info("Prometheus metrics server started on port %d", self.port)

        self._server_thread = threading.Thread(
            target=self._update_metrics_loop,
            name="prometheus-updater",
            daemon=True
        )
        self._server_thread.start()

    def _update_metrics_loop(self) -> None:
        while not self._stop_event.is_set():
            self._update_metrics()
            self._stop_event.wait(5.0)

    def _update_metrics(self) -> None:
        totals, _ = self.metrics.snapshot()

        requests_delta = totals.requests - self._last_requests
        bytes_delta = totals.bytes - self._last_bytes
        if requests_delta > 0:
            self.requests_total.inc(requests_delta)
        if bytes_delta > 0:
            self.bytes_total.inc(bytes_delta)
        for kind, count in totals.errors_by_kind.items():
            delta = count - self._last_errors.get(kind, 0)
            if delta > 0:
                self.errors_total.labels(kind=kind).inc(delta)

        if totals.requests > 0:
            avg_fetch_ms = totals.fetch_ms_sum / totals.requests
            self.avg_fetch_duration_seconds.set(avg_fetch_ms / 1000.0)

        self._last_requests = totals.requests
        self._last_bytes = totals.bytes
        self._last_errors = dict(totals.errors_by_kind)

    def stop(self) -> None:
        self._stop_event.set()
        if self._server_thread:
            self._server_thread.join(timeout=2.0)
