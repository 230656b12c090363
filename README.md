# constellation

Building blocks for a satellite constellation network simulator. Everything is
held in memory, and the stores can be used from several threads.

## Modules

- `constellation.model`: the scenario entities as dataclasses.
  `PlatformDefinition` has a position (`Motion`, ECEF metres) and a
  `MotionSource`. The others are `NetworkNode`, `ServiceRequest` and
  `FlowRequirement`.
- `constellation.errors`: the exceptions the stores raise. All of them derive
  from `SimulatorError`, for example `PlatformNotFoundError`,
  `NodeInUseError` and `InterfaceInvalidError`.
- `constellation.kb`: `KnowledgeBase`, a store of platforms and network
  nodes. `update_platform_position` moves a platform and hands each
  subscriber an `Event` (`EventType.PLATFORM_UPDATED`) that carries a copy of
  the platform. `subscribe` returns a function that removes the subscription.
- `constellation.timectrl`: `TimeController` steps simulation time by a fixed
  `tick` on a background thread and calls each listener with the new time.
  `start(duration)` returns a `threading.Event`, which is set when the run
  ends. A duration that is not positive runs without end.
- `constellation.validation`: structural checks on northbound API messages,
  which are plain dataclasses such as `PlatformProto`, `NetworkNodeProto`,
  `BidirectionalLinkProto` and `ServiceRequestProto`. The checks are
  `validate_platform`, `validate_interface`, `validate_node` (returns the
  node's platform ID), `validate_link` (returns both normalized
  `node/interface` references) and `validate_service_request`. Each raises a
  `ValidationError` subclass on failure. Helpers: `split_interface_ref`,
  `normalize_interface_ref`, `platform_id_from_interfaces`.
- `constellation.metrics`: Prometheus-style `Counter`, `Gauge`, `Histogram`,
  `CounterVec` and `HistogramVec`, kept in a `MetricsRegistry` that renders
  the text exposition format. `NBICollector` registers RPC request counts,
  RPC latency histograms and scenario gauges. Its `unary_server_interceptor()`
  returns `intercept(request, full_method, handler)`, which records the
  call's status code from `StatusCode` (taken from an `RpcError`, or
  `Unknown` for any other exception). `set_scenario_counts` updates the
  gauges. `wsgi_app` serves the rendered metrics. `split_method` turns
  `/pkg.Service/Method` into `("Service", "Method")`.
- `constellation.tracing`: `TracingConfig` and `tracing_config_from_env`,
  which read `NBI_TRACING_ENABLED`, `NBI_TRACING_EXPORTER`,
  `NBI_TRACING_SERVICE_NAME`, `NBI_TRACING_SAMPLE_RATIO` and
  `NBI_OTLP_ENDPOINT`. `shutdown_with_timeout(shutdown, logger, timeout)`
  calls a shutdown function and logs any failure instead of raising it.
- `constellation.state`:
  - `NetworkStore` holds transceiver models, interfaces and links, and keeps
    each interface's `link_ids` up to date.
  - `ScenarioState` ties a `KnowledgeBase`, a `NetworkStore` and the service
    requests together. It offers create, get, list, update and delete for
    platforms, nodes (with their interfaces), interfaces, links and service
    requests. It refuses to delete anything still in use, and it rolls back
    node and batch-link creation when part of it fails.
  - `snapshot()` returns a consistent `ScenarioSnapshot`.
  - `clear_scenario()` wipes the scenario and calls `reset()` on the attached
    motion and connectivity objects.
  - `run_sim_tick` runs one step under the scenario lock.
  - A `MetricsRecorder`, such as `NBICollector`, receives entity counts after
    every change.

## Installation

```
pip install .
```

## Example

```python
from constellation.kb import KnowledgeBase
from constellation.metrics import MetricsRegistry, NBICollector
from constellation.model import NetworkNode, PlatformDefinition
from constellation.state import Medium, NetworkInterface, NetworkStore, ScenarioState

collector = NBICollector(MetricsRegistry())
state = ScenarioState(KnowledgeBase(), NetworkStore(), metrics=collector)

state.create_platform(PlatformDefinition(id="p1", name="Platform-1"))
state.create_node(
    NetworkNode(id="n1", platform_id="p1"),
    [NetworkInterface(id="n1/if0", medium=Medium.WIRED)],
)

snapshot = state.snapshot()
print(len(snapshot.platforms), len(snapshot.nodes), len(snapshot.interfaces))
print(collector.render())
```

## What it does not do

The package has no command-line program and no gRPC server for the
northbound API. It has no orbit propagation and no connectivity computation:
`ScenarioState` calls whatever motion and connectivity objects it is given.
It does not export traces; `constellation.tracing` only reads settings.
Nothing is written to disk.

## Tests

```
pip install .[test]
pytest
```