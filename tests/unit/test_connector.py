"""
ToolConnector: lazy init state machine, invoke, shutdown.
"""

import asyncio

import pytest

from conftest import TransportFactory, failing_check, make_connector
from core.errors import InvocationError, NotReady
from core.models import ConnectorState
from toolhub.connector import build_server_command, parse_catalog
from toolhub.transports import TransportError, TransportTimeout


# ═══════════════════════════════════════════════════════════
# ensure_ready
# ═══════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_starts_uninitialized_without_io(transport_factory):
    connector = make_connector(transport_factory)
    assert connector.state is ConnectorState.UNINITIALIZED
    assert connector.list_tools() == ()
    assert transport_factory.created == []


@pytest.mark.asyncio
async def test_success_stores_catalog(transport_factory):
    connector = make_connector(transport_factory)

    assert await connector.ensure_ready() is True
    assert connector.state is ConnectorState.READY
    assert connector.tool_names() == ["list_alerts"]
    assert connector.list_tools() is connector.list_tools()


@pytest.mark.asyncio
async def test_ready_is_a_no_op(transport_factory):
    connector = make_connector(transport_factory)
    await connector.ensure_ready()
    await connector.ensure_ready()
    await connector.ensure_ready()

    assert connector.attempts == 1
    assert len(transport_factory.created) == 1


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_attempt():
    factory = TransportFactory(start_delay=0.05)
    connector = make_connector(factory)

    results = await asyncio.gather(*(connector.ensure_ready() for _ in range(10)))

    assert results == [True] * 10
    assert connector.attempts == 1
    assert len(factory.created) == 1


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_failure():
    factory = TransportFactory(start_delay=0.05, start_error=TransportError("spawn failed"))
    connector = make_connector(factory)

    results = await asyncio.gather(*(connector.ensure_ready() for _ in range(5)))

    assert results == [False] * 5
    assert connector.attempts == 1
    assert len(factory.created) == 1


@pytest.mark.asyncio
async def test_state_is_initializing_while_in_flight():
    factory = TransportFactory(start_delay=0.05)
    connector = make_connector(factory)

    task = asyncio.create_task(connector.ensure_ready())
    await asyncio.sleep(0.01)
    assert connector.state is ConnectorState.INITIALIZING

    assert await task is True
    assert connector.state is ConnectorState.READY


@pytest.mark.asyncio
async def test_missing_credentials_skips_launch(transport_factory):
    connector = make_connector(transport_factory, credentials=failing_check("ConfigIncomplete", "missing key"))

    assert await connector.ensure_ready() is False
    snapshot = connector.snapshot()
    assert snapshot.state is ConnectorState.UNAVAILABLE
    assert snapshot.reason_kind == "ConfigIncomplete"
    assert transport_factory.created == []


@pytest.mark.asyncio
async def test_tool_host_down_skips_launch(transport_factory):
    connector = make_connector(transport_factory, host=failing_check("ToolHostUnavailable", "no socket"))

    assert await connector.ensure_ready() is False
    assert connector.snapshot().reason_kind == "ToolHostUnavailable"
    assert transport_factory.created == []


@pytest.mark.asyncio
@pytest.mark.parametrize("factory_kwargs", [
    {"start_error": TransportError("docker: image not found")},
    {"start_error": TransportTimeout("initialize timed out after 60s")},
    {"list_error": TransportError("tools/list failed")},
    {"tools": {"not": "a list"}},
    {"tools": [{"description": "no name"}]},
    {"tools": [{"name": "a"}, {"name": "a"}]},
])
async def test_failed_attempt_releases_transport(factory_kwargs):
    factory = TransportFactory(**factory_kwargs)
    connector = make_connector(factory)

    assert await connector.ensure_ready() is False

    snapshot = connector.snapshot()
    assert snapshot.state is ConnectorState.UNAVAILABLE
    assert snapshot.reason_kind == "ConnectorInitFailed"
    assert connector.transport is None
    assert connector.list_tools() == ()
    assert all(t.closed for t in factory.created)


@pytest.mark.asyncio
async def test_unavailable_retries_from_scratch():
    factory = TransportFactory(start_error=TransportError("first try fails"))
    connector = make_connector(factory)
    assert await connector.ensure_ready() is False

    factory.transport_kwargs = {}
    assert await connector.ensure_ready() is True
    assert connector.attempts == 2
    assert len(factory.created) == 2
    assert factory.created[0].closed
    assert not factory.created[1].closed


@pytest.mark.asyncio
async def test_cooldown_suppresses_immediate_retry():
    factory = TransportFactory(start_error=TransportError("nope"))
    connector = make_connector(factory, retry_cooldown=60)

    assert await connector.ensure_ready() is False
    assert await connector.ensure_ready() is False
    assert connector.attempts == 1


# ═══════════════════════════════════════════════════════════
# invoke
# ═══════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_invoke_requires_ready(transport_factory):
    connector = make_connector(transport_factory)
    with pytest.raises(NotReady):
        await connector.invoke("list_alerts", {})


@pytest.mark.asyncio
async def test_invoke_normalizes_text_content():
    factory = TransportFactory(call_results={
        "list_alerts": {"content": [{"type": "text", "text": "3 open alerts"}]},
    })
    connector = make_connector(factory)
    await connector.ensure_ready()

    result = await connector.invoke("list_alerts", {"severity": "high"})

    assert result.tool_name == "list_alerts"
    assert result.content_parts == ["3 open alerts"]
    assert factory.created[0].calls == [("list_alerts", {"severity": "high"})]


@pytest.mark.asyncio
async def test_invoke_timeout_keeps_connector_ready():
    factory = TransportFactory(call_results={"list_alerts": TransportTimeout("tools/call timed out")})
    connector = make_connector(factory, call_timeout=2)
    await connector.ensure_ready()

    with pytest.raises(InvocationError) as exc:
        await connector.invoke("list_alerts", {})

    assert exc.value.tool_name == "list_alerts"
    assert "timed out" in exc.value.reason
    assert connector.state is ConnectorState.READY


@pytest.mark.asyncio
async def test_invoke_retries_when_configured():
    factory = TransportFactory(call_results={"list_alerts": TransportError("flaky")})
    connector = make_connector(factory, call_retries=2)
    await connector.ensure_ready()

    with pytest.raises(InvocationError):
        await connector.invoke("list_alerts", {})

    assert len(factory.created[0].calls) == 3


@pytest.mark.asyncio
async def test_dead_process_demotes_to_unavailable():
    factory = TransportFactory(call_results={"list_alerts": TransportError("tool process closed its output")})
    connector = make_connector(factory, call_retries=3)
    await connector.ensure_ready()
    factory.created[0].running_override = False

    with pytest.raises(InvocationError):
        await connector.invoke("list_alerts", {})

    assert len(factory.created[0].calls) == 1
    assert connector.state is ConnectorState.UNAVAILABLE
    assert connector.transport is None
    assert factory.created[0].closed

    factory.transport_kwargs = {}
    assert await connector.ensure_ready() is True


# ═══════════════════════════════════════════════════════════
# shutdown
# ═══════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_shutdown_releases_once(transport_factory):
    connector = make_connector(transport_factory)
    await connector.ensure_ready()
    transport = transport_factory.created[0]

    await connector.shutdown()
    await connector.shutdown()

    assert transport.closed
    assert connector.transport is None
    assert connector.state is ConnectorState.UNAVAILABLE
    assert await connector.ensure_ready() is False
    assert len(transport_factory.created) == 1


@pytest.mark.asyncio
async def test_shutdown_waits_for_in_flight_attempt():
    factory = TransportFactory(start_delay=0.05)
    connector = make_connector(factory)

    pending = asyncio.create_task(connector.ensure_ready())
    await asyncio.sleep(0.01)
    await connector.shutdown()

    assert await pending is False
    assert len(factory.created) == 1
    assert factory.created[0].started
    assert factory.created[0].closed
    assert connector.transport is None


@pytest.mark.asyncio
async def test_shutdown_cancels_hung_attempt():
    factory = TransportFactory(start_delay=10)
    connector = make_connector(factory, shutdown_wait=0.05)

    pending = asyncio.create_task(connector.ensure_ready())
    await asyncio.sleep(0.01)
    await connector.shutdown()

    assert await pending is False
    assert factory.created[0].closed
    assert connector.state is ConnectorState.UNAVAILABLE


@pytest.mark.asyncio
async def test_caller_cancellation_still_propagates():
    factory = TransportFactory(start_delay=10)
    connector = make_connector(factory, shutdown_wait=0.05)

    pending = asyncio.create_task(connector.ensure_ready())
    await asyncio.sleep(0.01)
    pending.cancel()

    with pytest.raises(asyncio.CancelledError):
        await pending
    # Versuch läuft weiter, nur der Aufrufer ist weg
    assert connector.state is ConnectorState.INITIALIZING

    await connector.shutdown()
    assert factory.created[0].closed


@pytest.mark.asyncio
async def test_shutdown_without_connection_is_safe(transport_factory):
    connector = make_connector(transport_factory)
    await connector.shutdown()
    assert transport_factory.created == []


# ═══════════════════════════════════════════════════════════
# helpers
# ═══════════════════════════════════════════════════════════

def test_server_command_is_read_only():
    cmd = build_server_command(region="eu", image="img:latest", docker_bin="docker")
    assert cmd == [
        "docker", "run", "-i", "--rm",
        "-e", "TREND_VISION_ONE_API_KEY",
        "img:latest",
        "-region", "eu",
        "-readonly=true",
    ]


def test_parse_catalog_keeps_order_and_schema():
    catalog = parse_catalog([
        {"name": "b", "inputSchema": {"type": "object"}},
        {"name": "a", "description": "first", "extra": 1},
    ])
    assert [t.name for t in catalog] == ["b", "a"]
    assert catalog[0].input_schema == {"type": "object"}
    assert catalog[1].description == "first"
