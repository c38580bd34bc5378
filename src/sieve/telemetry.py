"""Logging and tracing setup."""

import logging

import logfire
from fastapi import FastAPI


def init(service_name: str = "sieve", log_level: str = "INFO") -> None:
    """Configure logfire and route stdlib logging through it."""
    # Suppress harmless OTel context warnings
    logging.getLogger("opentelemetry.context").setLevel(logging.CRITICAL)

    # Scrubbing disabled - it redacts metric names and tags we need to see
    logfire.configure(
        service_name=service_name,
        send_to_logfire="if-token-present",
        distributed_tracing=True,
        scrubbing=False,
    )
    logging.basicConfig(
        level=log_level.upper(),
        handlers=[logfire.LogfireLoggingHandler()],
        force=True,
    )


def instrument(app: FastAPI) -> None:
    """Spans for inbound requests. Outbound requests are left uninstrumented
    so nothing is added to the headers the backend receives."""
    logfire.instrument_fastapi(app)
