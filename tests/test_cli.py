import json

import pytest
from typer.testing import CliRunner

from sieve import cli
from sieve.compression import compress
from sieve.server import ShutdownTimeout
from sieve.wire import encode_varint_field

from .conftest import FakeSink, series

runner = CliRunner()

PAYLOAD = json.dumps({"series": [
    {"metric": "metric.one"},
    {"metric": "some.metric.load"},
]}).encode()
FILTERED = b'{"series":[{"metric":"metric.one"}]}\n'


def test_filter_json():
    result = runner.invoke(cli.app, ["filter", "--prefix", "some.metric"], input=PAYLOAD)

    assert result.exit_code == 0
    assert result.stdout_bytes.startswith(FILTERED)


def test_filter_gzip_json():
    result = runner.invoke(
        cli.app,
        ["filter", "--prefix", "some.metric", "--encoding", "gzip"],
        input=compress(PAYLOAD, "gzip"),
    )

    assert result.exit_code == 0
    assert result.stdout_bytes.startswith(compress(FILTERED, "gzip"))


def test_filter_protobuf():
    payload = series("keep.a") + series("dropme.b") + encode_varint_field(3, 1)
    result = runner.invoke(
        cli.app, ["filter", "--format", "protobuf", "--prefix", "dropme"], input=payload
    )

    assert result.exit_code == 0
    assert result.stdout_bytes.startswith(series("keep.a") + encode_varint_field(3, 1))


def test_filter_malformed_payload():
    result = runner.invoke(cli.app, ["filter", "--prefix", "x"], input=b"{oops")
    assert result.exit_code == 1


@pytest.fixture
def quiet_serve(monkeypatch):
    """serve() with telemetry and the real server stubbed out."""
    calls = {}
    monkeypatch.setattr(cli.telemetry, "init", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli.telemetry, "instrument", lambda app: None)
    monkeypatch.setattr(cli, "DogStatsdSink", lambda address: FakeSink())

    def fake_run_server(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(cli, "run_server", fake_run_server)
    return calls


def test_serve_wires_options(quiet_serve):
    result = runner.invoke(
        cli.app,
        ["serve", "--backend-url", "http://backend:9000/", "--prefix", "some.metric",
         "--tag", "team:obs", "--env", "prod", "--port", "9999", "--no-protobuf-route"],
    )

    assert result.exit_code == 0, result.output
    ctx = quiet_serve["app"].state.sieve
    assert ctx.config.backend_url == "http://backend:9000"
    assert ctx.config.name_prefix == "some.metric"
    assert ctx.config.tags == ("team:obs", "env:prod")
    assert [route.path for route in ctx.router.routes] == ["/api/v1/series"]
    assert quiet_serve["port"] == 9999
    assert quiet_serve["shutdown_timeout"] == 10.0


def test_serve_reads_environment(quiet_serve):
    result = runner.invoke(
        cli.app, ["serve"], env={"SIEVE_BACKEND_URL": "http://env-backend", "SIEVE_PREFIX": "env."}
    )

    assert result.exit_code == 0, result.output
    ctx = quiet_serve["app"].state.sieve
    assert ctx.config.backend_url == "http://env-backend"
    assert ctx.config.name_prefix == "env."


def test_serve_bad_statsd_address_exits_before_serving(monkeypatch):
    monkeypatch.setattr(cli.telemetry, "init", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli, "run_server", lambda *args, **kwargs: pytest.fail("server started"))

    result = runner.invoke(cli.app, ["serve", "--statsd-addr", "nonsense"])

    assert result.exit_code == 1


def test_serve_shutdown_timeout_exits_2(quiet_serve, monkeypatch):
    def abandon(app, **kwargs):
        raise ShutdownTimeout(3, 10.0)

    monkeypatch.setattr(cli, "run_server", abandon)
    result = runner.invoke(cli.app, ["serve"])

    assert result.exit_code == 2
