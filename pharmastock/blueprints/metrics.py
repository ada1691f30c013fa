"""
Prometheus metrics blueprint.

Exposes /metrics with HTTP request metrics and the stock ledgers' domain
counters. Restrict it to the monitoring network in production.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share metrics through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

# Multiprocess collectors write to files, not to a registry
METRIC_REGISTRY = None if MULTIPROCESS_MODE else registry

# HTTP
http_requests_total = Counter(
    'http_requests_total', 'Total HTTP requests',
    ['method', 'endpoint', 'http_status'], registry=METRIC_REGISTRY
)
http_request_duration_seconds = Histogram(
    'http_request_duration_seconds', 'HTTP request latency in seconds',
    ['method', 'endpoint'], registry=METRIC_REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)
http_requests_in_flight = Gauge(
    'http_requests_in_flight', 'Number of HTTP requests currently being processed',
    registry=METRIC_REGISTRY
)

# Sale terminal
sales_checkout_total = Counter(
    'sales_checkout_total', 'Confirmed checkouts', ['mode'], registry=METRIC_REGISTRY
)
cart_rejections_total = Counter(
    'cart_rejections_total', 'Cart actions rejected by stock or quantity validation',
    ['reason'], registry=METRIC_REGISTRY
)

# Acquisition ledger
purchase_writes_total = Counter(
    'purchase_writes_total', 'Vendor bill writes that touched the stock counter',
    ['operation'], registry=METRIC_REGISTRY
)


def setup_metrics_instrumentation(app):
    """Time every request and count it by endpoint and status."""

    @app.before_request
    def start_request_timer():
        g._request_started_at = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def record_request(response):
        started_at = g.pop('_request_started_at', None)
        if started_at is None:
            return response
        try:
            endpoint = request.endpoint or 'unknown'
            http_request_duration_seconds.labels(method=request.method, endpoint=endpoint) \
                .observe(time.time() - started_at)
            http_requests_total.labels(method=request.method, endpoint=endpoint,
                                       http_status=response.status_code).inc()
            http_requests_in_flight.dec()
        except Exception as e:
            app.logger.warning(f"Failed to record metrics: {e}")
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus text exposition (unauthenticated)."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
