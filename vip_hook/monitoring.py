# vip_hook/monitoring.py
import time
import socket
import threading
import logging
from prometheus_client import Counter, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app
from wsgiref.simple_server import make_server, WSGIServer
from socketserver import ThreadingMixIn

logger = logging.getLogger(__name__)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """A WSGI server that runs in a separate thread to not block the hook."""
    allow_reuse_address = True
    daemon_threads = True


class HookMonitor:
    def __init__(self, host="127.0.0.1", port=9090):
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Isolated registry so several hooks can live in one process
        self.registry = CollectorRegistry()

        self.attestations = Counter('vip_attestations_total', 'Attestation applications', ['status'], registry=self.registry)
        self.discount_updates = Counter('vip_discount_updates_total', 'Discount records written', registry=self.registry)
        self.swaps = Counter('vip_swaps_total', 'Swaps processed', ['direction'], registry=self.registry)
        self.protocol_fees = Counter('vip_protocol_fee_total', 'Protocol fee extracted (raw token units)', registry=self.registry)
        self.notification_failures = Counter('vip_notification_failures_total', 'Best-effort notification failures', ['target'], registry=self.registry)
        self.applied_fee = Histogram(
            'vip_applied_fee_ppm', 'Fee applied to swaps in ppm',
            buckets=(0, 100, 500, 1000, 3000, 5000, 10000, 30000, 100000, 1000000),
            registry=self.registry,
        )

    def start_server(self):
        """Serve metrics over HTTP from a daemon thread, retrying a busy port."""
        app = make_wsgi_app(self.registry)

        max_retries = 5
        retry_delay = 2

        for attempt in range(max_retries):
            try:
                self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)
                self.server.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

                self.thread = threading.Thread(target=self.server.serve_forever)
                self.thread.daemon = True
                self.thread.start()
                logger.info(f"Prometheus server started on http://{self.host}:{self.port}")
                return
            except OSError as e:
                if e.errno == 98 and attempt < max_retries - 1:  # Address already in use
                    logger.warning(f"Port {self.port} in use, retrying in {retry_delay}s (attempt {attempt+1}/{max_retries})...")
                    time.sleep(retry_delay)
                else:
                    logger.error(f"Failed to bind to port {self.port}: {e}")
                    raise

    def stop_server(self):
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            logger.info("Prometheus server stopped")

    def record_attestation(self, status: str, updates: int = 0):
        self.attestations.labels(status=status).inc()
        if updates:
            self.discount_updates.inc(updates)

    def record_swap(self, exact_input: bool, fee: int, cut: int = 0):
        self.swaps.labels(direction='exact_input' if exact_input else 'exact_output').inc()
        self.applied_fee.observe(fee)
        if cut:
            self.protocol_fees.inc(cut)

    def record_notification_failure(self, target: str):
        self.notification_failures.labels(target=target).inc()

    def get_sample(self, name: str, labels: dict = None) -> float:
        """Current value of a metric sample, 0 if absent."""
        value = self.registry.get_sample_value(name, labels or {})
        return value or 0.0
