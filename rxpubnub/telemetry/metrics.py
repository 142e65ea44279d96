"""OTel instruments recorded by the request dispatcher."""

from opentelemetry.metrics import Counter, Histogram, Meter, MeterProvider


class DispatchMetrics:
    """Counters and histograms for one context's request traffic.

    All instruments carry an ``operation`` attribute; outcome instruments also
    carry ``result``.

    Args:
        meter_provider: The :class:`MeterProvider` to obtain a meter from.
        instrumentation_name: Identifies the instrumentation library.
    """

    def __init__(self, meter_provider: MeterProvider, instrumentation_name: str = "rxpubnub"):
        self._meter: Meter = meter_provider.get_meter(instrumentation_name)
        self.requests: Counter = self._meter.create_counter(
            "pubnub.requests", description="Network exchanges issued", unit="1"
        )
        self.retries: Counter = self._meter.create_counter(
            "pubnub.retries", description="Exchanges re-issued by the retry policy", unit="1"
        )
        self.completions: Counter = self._meter.create_counter(
            "pubnub.completions", description="Operations delivered to the caller", unit="1"
        )
        self.latency: Histogram = self._meter.create_histogram(
            "pubnub.exchange.duration",
            description="Duration of a single network exchange",
            unit="ms",
        )

    def exchange(self, operation: str, duration_ms: float) -> None:
        attrs = {"operation": operation}
        self.requests.add(1, attrs)
        self.latency.record(duration_ms, attrs)

    def retry(self, operation: str, result: str) -> None:
        self.retries.add(1, {"operation": operation, "result": result})

    def completion(self, operation: str, result: str) -> None:
        self.completions.add(1, {"operation": operation, "result": result})
