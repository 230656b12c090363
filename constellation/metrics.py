"""Prometheus-style metrics for the northbound API."""

from __future__ import annotations

import math
import threading
import time
from bisect import bisect_left
from enum import IntEnum
from typing import Any, Callable, Iterable

DEFAULT_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10)
CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

_UNKNOWN = "unknown"


class StatusCode(IntEnum):
    """RPC status codes, labelled by their canonical names."""

    OK = 0
    CANCELED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @property
    def label(self) -> str:
        """The code's name in CamelCase, e.g. ``InvalidArgument``."""
        if self is StatusCode.OK:
            return "OK"
        return "".join(part.capitalize() for part in self.name.split("_"))

    @classmethod
    def of(cls, error: BaseException | None) -> StatusCode:
        """The status carried by an error: OK for none, UNKNOWN for foreign errors."""
        if error is None:
            return cls.OK
        if isinstance(error, RpcError):
            return error.code
        return cls.UNKNOWN


class RpcError(Exception):
    """An RPC failure with a status code."""

    def __init__(self, code: StatusCode, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(f"rpc error: code = {code.label} desc = {message}")


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _label_text(pairs: Iterable[tuple[str, str]]) -> str:
    items = sorted(pairs)
    if not items:
        return ""
    return "{" + ",".join(f'{name}="{_escape_label(value)}"' for name, value in items) + "}"


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, help: str = "") -> None:
        if not name:
            raise ValueError("metric name is required")
        self.name = name
        self.help = help
        self._lock = threading.Lock()

    def _samples(self) -> list[str]:
        raise NotImplementedError

    def render(self) -> str:
        samples = self._samples()
        if not samples:
            return ""
        header = [f"# HELP {self.name} {_escape_help(self.help)}", f"# TYPE {self.name} {self.kind}"]
        return "\n".join(header + samples) + "\n"


class Counter(_Metric):
    """A monotonically increasing value."""

    kind = "counter"

    def __init__(self, name: str, help: str = "", labels: tuple[tuple[str, str], ...] = ()) -> None:
        super().__init__(name, help)
        self._labels = labels
        self._value = 0.0

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def _samples(self) -> list[str]:
        return [f"{self.name}{_label_text(self._labels)} {_format_value(self.value)}"]


class Gauge(_Metric):
    """A value that can be set arbitrarily."""

    kind = "gauge"

    def __init__(self, name: str, help: str = "") -> None:
        super().__init__(name, help)
        self._value = 0.0

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def _samples(self) -> list[str]:
        return [f"{self.name} {_format_value(self.value)}"]


class Histogram(_Metric):
    """Counts observations into cumulative buckets."""

    kind = "histogram"

    def __init__(
        self,
        name: str,
        help: str = "",
        buckets: Iterable[float] = DEFAULT_DURATION_BUCKETS,
        labels: tuple[tuple[str, str], ...] = (),
    ) -> None:
        super().__init__(name, help)
        bounds = sorted(float(b) for b in buckets if not math.isinf(b))
        if len(set(bounds)) != len(bounds):
            raise ValueError("histogram buckets must be unique")
        self.buckets = tuple(bounds)
        self._labels = labels
        self._counts = [0] * len(self.buckets)
        self._sum = 0.0
        self._count = 0

    def observe(self, value: float) -> None:
        index = bisect_left(self.buckets, value)
        with self._lock:
            if index < len(self._counts):
                self._counts[index] += 1
            self._sum += value
            self._count += 1

    @property
    def sample_count(self) -> int:
        with self._lock:
            return self._count

    @property
    def sum(self) -> float:
        with self._lock:
            return self._sum

    def cumulative_counts(self) -> list[tuple[float, int]]:
        """Bucket upper bounds with cumulative counts, ending with +Inf."""
        with self._lock:
            counts = list(self._counts)
            total = self._count
        result = []
        running = 0
        for bound, count in zip(self.buckets, counts):
            running += count
            result.append((bound, running))
        result.append((math.inf, total))
        return result

    def _samples(self) -> list[str]:
        lines = [
            f"{self.name}_bucket{_label_text(self._labels + (('le', _format_value(bound)),))} {count}"
            for bound, count in self.cumulative_counts()
        ]
        lines.append(f"{self.name}_sum{_label_text(self._labels)} {_format_value(self.sum)}")
        lines.append(f"{self.name}_count{_label_text(self._labels)} {self.sample_count}")
        return lines


class _Vec(_Metric):
    def __init__(self, name: str, help: str, label_names: Iterable[str]) -> None:
        super().__init__(name, help)
        self.label_names = tuple(label_names)
        self._children: dict[tuple[str, ...], Any] = {}

    def _key(self, values: tuple[str, ...]) -> tuple[str, ...]:
        if len(values) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(values)}"
            )
        return tuple(str(v) for v in values)

    def _make_child(self, pairs: tuple[tuple[str, str], ...]) -> Any:
        raise NotImplementedError

    def labels(self, *args: str) -> Any:
        key = self._key(args)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = self._make_child(tuple(zip(self.label_names, key)))
                self._children[key] = child
            return child

    def _existing(self, args: tuple[str, ...]) -> Any:
        key = self._key(args)
        with self._lock:
            return self._children.get(key)

    def _samples(self) -> list[str]:
        with self._lock:
            children = sorted(self._children.items())
        return [line for _, child in children for line in child._samples()]


class CounterVec(_Vec):
    """A family of counters keyed by label values."""

    kind = "counter"

    def _make_child(self, pairs: tuple[tuple[str, str], ...]) -> Counter:
        return Counter(self.name, self.help, pairs)

    def labels(self, *args: str) -> Counter:
        return super().labels(*args)

    def value(self, *args: str) -> float:
        """The counter's value for these labels; 0 if never touched."""
        child = self._existing(args)
        return 0.0 if child is None else child.value


class HistogramVec(_Vec):
    """A family of histograms keyed by label values."""

    kind = "histogram"

    def __init__(
        self,
        name: str,
        help: str,
        label_names: Iterable[str],
        buckets: Iterable[float] = DEFAULT_DURATION_BUCKETS,
    ) -> None:
        super().__init__(name, help, label_names)
        self.buckets = tuple(buckets)

    def _make_child(self, pairs: tuple[tuple[str, str], ...]) -> Histogram:
        return Histogram(self.name, self.help, self.buckets, pairs)

    def labels(self, *args: str) -> Histogram:
        return super().labels(*args)

    def sample_count(self, *args: str) -> int:
        """Number of observations for these labels; 0 if never touched."""
        child = self._existing(args)
        return 0 if child is None else child.sample_count


class MetricsRegistry:
    """Holds metrics by name and renders them in the text exposition format."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: dict[str, _Metric] = {}

    def register(self, metric: _Metric) -> _Metric:
        """Register a metric and return the one now held under its name.

        If a metric of the same kind already has the name, that one is returned.
        """
        with self._lock:
            existing = self._metrics.get(metric.name)
            if existing is None:
                self._metrics[metric.name] = metric
                return metric
            if type(existing) is type(metric):
                return existing
            raise ValueError(f"collector {metric.name} already registered with incompatible type")

    def get(self, name: str) -> _Metric | None:
        with self._lock:
            return self._metrics.get(name)

    def render(self) -> str:
        with self._lock:
            metrics = [self._metrics[name] for name in sorted(self._metrics)]
        return "".join(metric.render() for metric in metrics)


DEFAULT_REGISTRY = MetricsRegistry()

Interceptor = Callable[[Any, str, Callable[[Any], Any]], Any]


class NBICollector:
    """RPC and scenario metrics for the northbound API."""

    def __init__(self, registry: MetricsRegistry | None = None) -> None:
        self.registry = registry if registry is not None else DEFAULT_REGISTRY
        reg = self.registry.register
        self.rpc_requests: CounterVec = reg(
            CounterVec(
                "nbi_requests_total",
                "Total number of handled NBI RPCs, labeled by service, method, and gRPC status code.",
                ("service", "method", "code"),
            )
        )
        self.rpc_durations: HistogramVec = reg(
            HistogramVec(
                "nbi_request_duration_seconds",
                "NBI RPC latency in seconds.",
                ("service", "method"),
                DEFAULT_DURATION_BUCKETS,
            )
        )
        self.scenario_platforms: Gauge = reg(
            Gauge("scenario_platforms", "Current number of platforms in ScenarioState.")
        )
        self.scenario_nodes: Gauge = reg(
            Gauge("scenario_nodes", "Current number of network nodes in ScenarioState.")
        )
        self.scenario_links: Gauge = reg(
            Gauge("scenario_links", "Current number of network links in ScenarioState.")
        )
        self.scenario_service_requests: Gauge = reg(
            Gauge(
                "scenario_service_requests",
                "Current number of active service requests in ScenarioState.",
            )
        )

    def unary_server_interceptor(self) -> Interceptor:
        """Return ``intercept(request, full_method, handler)`` recording count and latency.

        The handler's result is returned and its exceptions re-raised unchanged.
        """

        def intercept(request: Any, full_method: str, handler: Callable[[Any], Any]) -> Any:
            start = time.perf_counter()
            error: BaseException | None = None
            try:
                return handler(request)
            except Exception as exc:
                error = exc
                raise
            finally:
                service, method = split_method(full_method or "")
                code = StatusCode.of(error).label
                self.rpc_requests.labels(service, method, code).inc()
                self.rpc_durations.labels(service, method).observe(time.perf_counter() - start)

        return intercept

    def set_scenario_counts(
        self, platforms: int, nodes: int, links: int, service_requests: int
    ) -> None:
        self.scenario_platforms.set(platforms)
        self.scenario_nodes.set(nodes)
        self.scenario_links.set(links)
        self.scenario_service_requests.set(service_requests)

    def render(self) -> str:
        return self.registry.render()

    def wsgi_app(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> list[bytes]:
        """WSGI application serving the registry's metrics."""
        body = self.render().encode("utf-8")
        start_response(
            "200 OK",
            [("Content-Type", CONTENT_TYPE), ("Content-Length", str(len(body)))],
        )
        if environ.get("REQUEST_METHOD", "GET").upper() == "HEAD":
            return [b""]
        return [body]


def split_method(full_method: str) -> tuple[str, str]:
    """Split ``/pkg.Service/Method`` into ``("Service", "Method")``.

    Unparseable parts come back as ``"unknown"``.
    """
    if not full_method:
        return _UNKNOWN, _UNKNOWN
    parts = full_method.removeprefix("/").split("/")
    if len(parts) < 2:
        return _UNKNOWN, _UNKNOWN
    service, method = parts[-2], parts[-1]
    dot = service.rfind(".")
    if dot >= 0 and dot + 1 < len(service):
        service = service[dot + 1 :]
    return service or _UNKNOWN, method or _UNKNOWN