"""Prometheus metrics for the fault-simulation layer.

Counts injected faults by kind so a demo dashboard can tell timeouts, dropped
connections and pool exhaustion apart:
- Fault metrics: faults_injected_total, injected_delay_seconds
- Retry metrics: storage_attempts_total, retry_backoff_seconds, storage_unavailable_total
- Gateway metrics: gateway_timeouts_total
"""

import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Metric Classes (every metric here is labelled by operation)
# =============================================================================


class _LabelledMetric:
    """Shared label handling; values are keyed by a tuple of label values."""

    def __init__(self, name: str, description: str, labels: list[str]):
        if not labels:
            raise ValueError(f"{name} needs at least one label")
        self.name = name
        self.description = description
        self._label_names = list(labels)
        self._lock = threading.Lock()

    def _key(self, labels: dict) -> tuple:
        if set(labels) != set(self._label_names):
            raise ValueError(f"{self.name} expects labels {self._label_names}, got {sorted(labels)}")
        return tuple(str(labels[n]) for n in self._label_names)

    def _format_labels(self, key: tuple) -> str:
        return ",".join(f'{n}="{v}"' for n, v in zip(self._label_names, key))


class Counter(_LabelledMetric):
    """A counter metric that can only increase."""

    def __init__(self, name: str, description: str, labels: list[str]):
        super().__init__(name, description, labels)
        self._values: dict[tuple, float] = {}

    def labels(self, **kwargs) -> "CounterWithLabels":
        """Return a counter with specific labels."""
        return CounterWithLabels(self, self._key(kwargs))

    def _inc(self, key: tuple, value: float) -> None:
        if value < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def get(self, **kwargs) -> float:
        """Get the current value for a label combination."""
        key = self._key(kwargs)
        with self._lock:
            return self._values.get(key, 0)

    def get_all(self) -> dict[tuple, float]:
        with self._lock:
            return self._values.copy()

    def reset(self) -> None:
        with self._lock:
            self._values.clear()

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} counter"]
        with self._lock:
            for key, value in self._values.items():
                lines.append(f"{self.name}{{{self._format_labels(key)}}} {value}")
        return "\n".join(lines)


class CounterWithLabels:
    """Counter with specific label values."""

    def __init__(self, parent: Counter, key: tuple):
        self._parent = parent
        self._key = key

    def inc(self, value: float = 1.0) -> None:
        """Increment the counter."""
        self._parent._inc(self._key, value)


class Histogram(_LabelledMetric):
    """A histogram metric for tracking distributions."""

    def __init__(self, name: str, description: str, labels: list[str], buckets: tuple):
        super().__init__(name, description, labels)
        self.buckets = tuple(sorted(buckets))
        self._observations: dict[tuple, list[float]] = {}

    def labels(self, **kwargs) -> "HistogramWithLabels":
        """Return a histogram with specific labels."""
        return HistogramWithLabels(self, self._key(kwargs))

    def _observe(self, key: tuple, value: float) -> None:
        with self._lock:
            self._observations.setdefault(key, []).append(value)

    def get_all(self) -> dict[tuple, list[float]]:
        """Get all observations, keyed by label values."""
        with self._lock:
            return {k: v.copy() for k, v in self._observations.items()}

    def reset(self) -> None:
        with self._lock:
            self._observations.clear()

    def to_prometheus(self) -> str:
        """Format as Prometheus text (cumulative buckets, sum and count)."""
        lines = [
            f"# HELP {self.name} {self.description}",
            f"# TYPE {self.name} histogram",
        ]
        with self._lock:
            for key, observations in self._observations.items():
                prefix = self._format_labels(key)
                for bucket in self.buckets:
                    bucket_count = sum(1 for o in observations if o <= bucket)
                    lines.append(f'{self.name}_bucket{{{prefix},le="{bucket}"}} {bucket_count}')
                lines.append(f'{self.name}_bucket{{{prefix},le="+Inf"}} {len(observations)}')
                lines.append(f"{self.name}_sum{{{prefix}}} {sum(observations)}")
                lines.append(f"{self.name}_count{{{prefix}}} {len(observations)}")
        return "\n".join(lines)


class HistogramWithLabels:
    """Histogram with specific label values."""

    def __init__(self, parent: Histogram, key: tuple):
        self._parent = parent
        self._key = key

    def observe(self, value: float) -> None:
        """Record an observation."""
        self._parent._observe(self._key, value)


# =============================================================================
# Fault Injection Metrics
# =============================================================================

faults_injected_total = Counter(
    name="faultsim_faults_injected_total",
    description="Synthetic faults injected, by kind",
    labels=["operation", "kind"],
)

injected_delay_seconds = Histogram(
    name="faultsim_injected_delay_seconds",
    description="Artificial latency added to operations",
    labels=["operation"],
    buckets=(0.5, 1.0, 1.5, 2.0, 3.0, 4.0, 6.0, 8.0, 10.0),
)


# =============================================================================
# Retry Metrics
# =============================================================================

storage_attempts_total = Counter(
    name="faultsim_storage_attempts_total",
    description="Storage operation attempts, by outcome",
    labels=["operation", "outcome"],
)

retry_backoff_seconds = Histogram(
    name="faultsim_retry_backoff_seconds",
    description="Backoff waited before a retry",
    labels=["operation"],
    buckets=(0.05, 0.1, 0.2, 0.4, 0.8, 1.6, 3.2, 6.4),
)

storage_unavailable_total = Counter(
    name="faultsim_storage_unavailable_total",
    description="Storage operations that failed after all retries",
    labels=["operation"],
)


# =============================================================================
# Gateway Metrics
# =============================================================================

gateway_timeouts_total = Counter(
    name="faultsim_gateway_timeouts_total",
    description="Single-shot calls failed with a gateway timeout",
    labels=["operation"],
)


# =============================================================================
# Metrics Registry
# =============================================================================

_ALL_METRICS = [
    faults_injected_total,
    injected_delay_seconds,
    storage_attempts_total,
    retry_backoff_seconds,
    storage_unavailable_total,
    gateway_timeouts_total,
]


def generate_metrics() -> str:
    """Generate all metrics in Prometheus text format."""
    output = []
    for metric in _ALL_METRICS:
        prometheus_text = metric.to_prometheus()
        if prometheus_text.strip():
            output.append(prometheus_text)
    return "\n\n".join(output)


def reset_metrics() -> None:
    """Clear every registered metric."""
    for metric in _ALL_METRICS:
        metric.reset()


# =============================================================================
# Metrics HTTP Server
# =============================================================================


class MetricsHandler(BaseHTTPRequestHandler):
    """HTTP handler for metrics endpoint."""

    def do_GET(self):
        """Handle GET requests."""
        if self.path == "/metrics":
            content = generate_metrics()
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.end_headers()
            self.wfile.write(content.encode("utf-8"))
        elif self.path == "/health":
            self.send_response(200)
            self.send_header("Content-Type", "text/plain")
            self.end_headers()
            self.wfile.write(b"OK")
        else:
            self.send_response(404)
            self.end_headers()

    def log_message(self, format, *args):
        """Route access logs through the module logger."""
        logger.debug(format % args)


class MetricsServer:
    """HTTP server for Prometheus metrics."""

    def __init__(self, host: str = "0.0.0.0", port: int = 8000):
        """Initialize metrics server.

        Args:
            host: Host to bind to
            port: Port to listen on (0 picks a free port)
        """
        self.host = host
        self.port = port
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the metrics server in a background thread."""
        if self._server is not None:
            logger.warning("Metrics server already running")
            return

        self._server = HTTPServer((self.host, self.port), MetricsHandler)
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Metrics server started on http://{self.host}:{self.port}/metrics")

    def stop(self) -> None:
        """Stop the metrics server."""
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            self._thread = None
            logger.info("Metrics server stopped")

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._server is not None
