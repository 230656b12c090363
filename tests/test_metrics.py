import time

import pytest

from constellation.metrics import (
    Counter,
    CounterVec,
    Gauge,
    Histogram,
    HistogramVec,
    MetricsRegistry,
    NBICollector,
    RpcError,
    StatusCode,
    split_method,
)


@pytest.fixture
def collector():
    return NBICollector(MetricsRegistry())


def test_unary_interceptor_records_metrics(collector):
    intercept = collector.unary_server_interceptor()

    def handler(request):
        time.sleep(0.01)
        return "ok"

    result = intercept(
        object(), "/aalyria.spacetime.api.nbi.v1alpha.PlatformService/CreatePlatform", handler
    )
    assert result == "ok"
    assert collector.rpc_requests.value("PlatformService", "CreatePlatform", "OK") == 1
    assert collector.rpc_durations.sample_count("PlatformService", "CreatePlatform") == 1
    assert collector.rpc_durations.labels("PlatformService", "CreatePlatform").sum >= 0.009


def test_unary_interceptor_records_error_code(collector):
    intercept = collector.unary_server_interceptor()

    def handler(request):
        raise RpcError(StatusCode.INVALID_ARGUMENT, "boom")

    with pytest.raises(RpcError) as info:
        intercept(
            object(), "/aalyria.spacetime.api.nbi.v1alpha.NetworkNodeService/CreateNode", handler
        )
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert (
        collector.rpc_requests.value("NetworkNodeService", "CreateNode", "InvalidArgument") == 1
    )
    assert collector.rpc_requests.value("NetworkNodeService", "CreateNode", "OK") == 0


def test_unary_interceptor_foreign_error_is_unknown(collector):
    intercept = collector.unary_server_interceptor()

    def handler(request):
        raise KeyError("x")

    with pytest.raises(KeyError):
        intercept(None, "/svc.Svc/Do", handler)
    assert collector.rpc_requests.value("Svc", "Do", "Unknown") == 1


def test_metrics_handler_exposes_scenario_gauges(collector):
    collector.set_scenario_counts(3, 4, 5, 6)
    collector.rpc_requests.labels("svc", "method", "OK").inc()
    collector.rpc_durations.labels("svc", "method").observe(0.01)

    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    body = b"".join(
        collector.wsgi_app({"REQUEST_METHOD": "GET", "PATH_INFO": "/metrics"}, start_response)
    ).decode()

    assert captured["status"] == "200 OK"
    assert captured["headers"]["Content-Type"].startswith("text/plain")
    for name in (
        "nbi_requests_total",
        "nbi_request_duration_seconds",
        "scenario_platforms",
        "scenario_nodes",
        "scenario_links",
        "scenario_service_requests",
    ):
        assert name in body
    assert "scenario_platforms 3\n" in body
    assert "scenario_nodes 4\n" in body
    assert "scenario_links 5\n" in body
    assert "scenario_service_requests 6\n" in body
    assert 'nbi_requests_total{code="OK",method="method",service="svc"} 1' in body


def test_histogram_render_buckets():
    registry = MetricsRegistry()
    hist = registry.register(Histogram("lat", "latency", buckets=(0.005, 0.01, 0.1)))
    hist.observe(0.01)
    text = registry.render()
    assert 'lat_bucket{le="0.005"} 0' in text
    assert 'lat_bucket{le="0.01"} 1' in text
    assert 'lat_bucket{le="+Inf"} 1' in text
    assert "lat_count 1" in text
    assert "# TYPE lat histogram" in text


@pytest.mark.parametrize(
    "full_method, expected",
    [
        ("", ("unknown", "unknown")),
        ("/", ("unknown", "unknown")),
        ("noslash", ("unknown", "unknown")),
        ("/a.b.Svc/Method", ("Svc", "Method")),
        ("Svc/Method", ("Svc", "Method")),
        ("/Svc/", ("Svc", "unknown")),
        ("//Method", ("unknown", "Method")),
        ("a/b/c", ("b", "c")),
        ("/pkg./M", ("pkg.", "M")),
    ],
)
def test_split_method(full_method, expected):
    assert split_method(full_method) == expected


def test_registry_returns_existing_for_same_kind():
    registry = MetricsRegistry()
    first = registry.register(CounterVec("c", "help", ("a",)))
    second = registry.register(CounterVec("c", "help", ("a",)))
    assert second is first
    assert registry.get("c") is first
    assert registry.get("missing") is None


def test_registry_rejects_incompatible_kind():
    registry = MetricsRegistry()
    registry.register(Gauge("g", "help"))
    with pytest.raises(ValueError, match="incompatible type"):
        registry.register(Counter("g", "help"))


def test_collectors_share_registry_metrics():
    registry = MetricsRegistry()
    first = NBICollector(registry)
    second = NBICollector(registry)
    first.rpc_requests.labels("s", "m", "OK").inc()
    assert second.rpc_requests.value("s", "m", "OK") == 1
    assert second.scenario_nodes is first.scenario_nodes


def test_counter_vec_label_count_checked():
    vec = CounterVec("c", "help", ("a", "b"))
    with pytest.raises(ValueError):
        vec.labels("only-one")


def test_counter_rejects_negative_increment():
    counter = Counter("c", "help")
    counter.inc(2)
    with pytest.raises(ValueError):
        counter.inc(-1)
    assert counter.value == 2


def test_histogram_vec_counts_per_label():
    vec = HistogramVec("h", "help", ("x",), buckets=(1, 2))
    vec.labels("a").observe(0.5)
    vec.labels("a").observe(1.5)
    vec.labels("b").observe(3)
    assert vec.sample_count("a") == 2
    assert vec.sample_count("b") == 1
    assert vec.sample_count("c") == 0


def test_status_code_labels():
    assert StatusCode.OK.label == "OK"
    assert StatusCode.FAILED_PRECONDITION.label == "FailedPrecondition"
    assert StatusCode.of(None) is StatusCode.OK
    assert StatusCode.of(RuntimeError()) is StatusCode.UNKNOWN
    assert StatusCode.of(RpcError(StatusCode.NOT_FOUND)) is StatusCode.NOT_FOUND