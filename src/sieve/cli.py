"""sieve: run the filtering proxy, or filter a single payload offline.

Usage:
    sieve serve --backend-url http://127.0.0.1:8080 --prefix some.metric
    gzip -c payload.json | sieve filter --prefix some.metric --encoding gzip | gunzip
    sieve filter --format protobuf --prefix dropme < payload.bin > filtered.bin
"""

from enum import Enum

import typer

from . import telemetry
from .app import create_app
from .compression import compress, decompress, normalize_encoding
from .config import DEFAULT_BACKEND_URL, DEFAULT_STATSD_ADDRESS, FilterConfig, ServerConfig
from .errors import SieveError
from .filtering import filter_json_series, filter_protobuf_series
from .server import ShutdownTimeout, run_server
from .sink import DogStatsdSink

app = typer.Typer(help="Reverse proxy that drops metric series by name prefix.")


class PayloadFormat(str, Enum):
    json = "json"
    protobuf = "protobuf"


@app.command()
def serve(
    backend_url: str = typer.Option(DEFAULT_BACKEND_URL, "--backend-url", envvar="SIEVE_BACKEND_URL", help="Backend base URL"),
    prefix: str = typer.Option("", "--prefix", envvar="SIEVE_PREFIX", help="Drop series whose metric name starts with this (empty disables filtering)"),
    tags: list[str] = typer.Option([], "--tag", envvar="SIEVE_TAGS", help="Tag attached to emitted counts (repeatable)"),
    env: str = typer.Option("dev", "--env", envvar="SIEVE_ENV", help="Environment, sent as an env:<value> tag"),
    host: str = typer.Option("0.0.0.0", "--host", envvar="SIEVE_HOST", help="Listen host"),
    port: int = typer.Option(8081, "--port", envvar="SIEVE_PORT", help="Listen port"),
    statsd_addr: str = typer.Option(DEFAULT_STATSD_ADDRESS, "--statsd-addr", envvar="SIEVE_STATSD_ADDR", help="DogStatsD address, host:port or unix:///path"),
    json_route: bool = typer.Option(True, "--json-route/--no-json-route", help="Filter POST /api/v1/series"),
    protobuf_route: bool = typer.Option(True, "--protobuf-route/--no-protobuf-route", help="Filter POST /api/v2/series"),
    shutdown_timeout: float = typer.Option(10.0, "--shutdown-timeout", help="Seconds to wait for in-flight requests on shutdown"),
    request_timeout: float = typer.Option(60.0, "--request-timeout", help="End-to-end backend request timeout in seconds"),
    log_level: str = typer.Option("INFO", "--log-level", envvar="SIEVE_LOG_LEVEL", help="Log level"),
):
    """Run the proxy."""
    server_config = ServerConfig(
        host=host,
        port=port,
        statsd_address=statsd_addr,
        json_route=json_route,
        protobuf_route=protobuf_route,
        shutdown_timeout=shutdown_timeout,
        request_timeout=request_timeout,
        log_level=log_level,
    )
    config = FilterConfig(
        backend_url=backend_url,
        name_prefix=prefix,
        tags=(*tags, f"env:{env}"),
    )

    telemetry.init("sieve", server_config.log_level)

    try:
        sink = DogStatsdSink(server_config.statsd_address)
    except (ValueError, OSError) as e:
        typer.echo(f"Error: could not create statsd sink: {e}", err=True)
        raise typer.Exit(1)

    application = create_app(
        config,
        sink,
        json_route=server_config.json_route,
        protobuf_route=server_config.protobuf_route,
        request_timeout=server_config.request_timeout,
    )
    telemetry.instrument(application)

    try:
        run_server(
            application,
            host=server_config.host,
            port=server_config.port,
            shutdown_timeout=server_config.shutdown_timeout,
            log_level=server_config.log_level,
        )
    except ShutdownTimeout as e:
        typer.echo(f"Error: shutdown: {e}", err=True)
        raise typer.Exit(2)


@app.command("filter")
def filter_payload(
    payload_format: PayloadFormat = typer.Option(PayloadFormat.json, "--format", "-f", help="Payload format"),
    prefix: str = typer.Option(..., "--prefix", "-p", help="Drop series whose metric name starts with this"),
    encoding: str = typer.Option("identity", "--encoding", "-e", help="Content-Encoding of stdin (gzip, deflate, identity)"),
):
    """Filter a payload from stdin and write the result to stdout. No network."""
    stdin = typer.get_binary_stream("stdin")
    stdout = typer.get_binary_stream("stdout")

    encoding = normalize_encoding(encoding)
    filter_fn = filter_json_series if payload_format is PayloadFormat.json else filter_protobuf_series

    try:
        result = filter_fn(decompress(stdin.read(), encoding), prefix)
        output = compress(result.body, encoding)
    except SieveError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    stdout.write(output)
    stdout.flush()
    typer.echo(f"dropped {result.dropped} of {result.total} series", err=True)


def main():
    app()
