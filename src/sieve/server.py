"""uvicorn server with a bounded, reported graceful shutdown."""

import asyncio
import logging

import uvicorn

logger = logging.getLogger(__name__)


class ShutdownTimeout(Exception):
    """In-flight requests were still running when the grace period ran out."""

    def __init__(self, abandoned: int, timeout: float):
        super().__init__(
            f"{abandoned} request(s) abandoned after {timeout:g}s graceful shutdown"
        )
        self.abandoned = abandoned
        self.timeout = timeout


def _abandoned(task: asyncio.Task) -> bool:
    # uvicorn's request cycle swallows the CancelledError, so the task itself
    # may still finish normally
    return not task.done() or task.cancelled() or task.cancelling() > 0


class GracefulServer(uvicorn.Server):
    """Counts the requests uvicorn had to cancel on shutdown.

    The exit signal counts as handled once shutdown completes: uvicorn does
    not re-raise it, so ``run()`` returns normally after a clean drain and
    raises ShutdownTimeout when requests were cut off.
    """

    abandoned = 0

    async def shutdown(self, sockets=None) -> None:
        pending: set[asyncio.Task] = {t for t in self.server_state.tasks if not t.done()}
        if pending:
            logger.info(f"Waiting for {len(pending)} in-flight request(s)")

        await super().shutdown(sockets=sockets)

        self._captured_signals.clear()
        self.abandoned = sum(1 for t in pending if _abandoned(t))
        if self.abandoned:
            raise ShutdownTimeout(self.abandoned, self.config.timeout_graceful_shutdown)


def run_server(app, host: str, port: int, shutdown_timeout: float, log_level: str = "info") -> None:
    """Serve until signalled. Raises ShutdownTimeout if requests were cut off."""
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level.lower(),
        timeout_graceful_shutdown=shutdown_timeout,
    )
    GracefulServer(config).run()
