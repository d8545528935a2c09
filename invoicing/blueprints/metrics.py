"""
Prometheus metrics blueprint.

/metrics is unauthenticated; restrict it at the network layer.
"""
import os
import time

from flask import Blueprint, Response, g, request
from prometheus_client import (
    CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, generate_latest, multiprocess,
)

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share samples through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

http_requests_total = Counter(
    'invoicing_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status'],
)

http_request_duration_seconds = Histogram(
    'invoicing_http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_requests_in_flight = Gauge(
    'invoicing_http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    multiprocess_mode='livesum',
)

invoice_events_total = Counter(
    'invoicing_invoice_events_total',
    'Invoice lifecycle events handled by the API',
    ['event'],
)

paystack_webhooks_total = Counter(
    'invoicing_paystack_webhooks_total',
    'Paystack webhook deliveries by outcome',
    ['result'],
)


def setup_metrics_instrumentation(app):
    """Register request hooks that feed the HTTP metrics."""

    @app.before_request
    def before_request_metrics():
        g._metrics_start_time = time.perf_counter()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        start = g.pop('_metrics_start_time', None)
        if start is None:
            return response

        endpoint = request.endpoint or 'unknown'
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint) \
            .observe(time.perf_counter() - start)
        http_requests_total.labels(
            method=request.method, endpoint=endpoint, http_status=response.status_code
        ).inc()
        http_requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus-formatted metrics in text/plain."""
    if MULTIPROCESS_MODE:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        data = generate_latest(registry)
    else:
        data = generate_latest(REGISTRY)

    return Response(data, mimetype=CONTENT_TYPE_LATEST)
