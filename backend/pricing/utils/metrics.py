"""
Métricas Prometheus del motor de precios.

Registry propio: la aplicación que consume la librería decide si lo
expone junto a sus métricas.
"""

from prometheus_client import Counter, Histogram, CollectorRegistry

REGISTRY = CollectorRegistry()

RATE_LOOKUPS_COUNTER = Counter(
    'pricing_rate_lookups_total',
    'Total number of exchange rate lookups',
    ['source', 'result'],
    registry=REGISTRY
)

REFERENCE_REFRESH_COUNTER = Counter(
    'pricing_reference_refresh_total',
    'Total number of REF totals refreshes by outcome',
    ['outcome'],
    registry=REGISTRY
)

REFERENCE_REFRESH_HISTOGRAM = Histogram(
    'pricing_reference_refresh_seconds',
    'Duration of REF totals refreshes in seconds',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY
)


class MetricsCollector:
    """Colector de métricas de precios"""

    def record_rate_lookup(self, source: str, result: str):
        """result: hit | fetched | error"""
        RATE_LOOKUPS_COUNTER.labels(source=source, result=result).inc()

    def record_reference_refresh(self, outcome: str, duration: float = None):
        """outcome: applied | discarded | fallback"""
        REFERENCE_REFRESH_COUNTER.labels(outcome=outcome).inc()
        if duration is not None:
            REFERENCE_REFRESH_HISTOGRAM.observe(duration)


# Instancia global
metrics_collector = MetricsCollector()
