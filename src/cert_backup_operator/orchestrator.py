"""Reconciliation engine: snapshot bootstrap, watch consumption and shutdown."""

from __future__ import annotations

import logging
import signal
import threading
import time
from typing import Any, Callable, Iterable

from . import health, metrics
from .constants import CONTROLLER_NAME, KIND_CERTIFICATE
from .logging import log_controller_event, log_resource_event
from .models import CertificateRecord, EventKind, WatchEvent
from .readiness import is_ready
from .services.base import CertificateSource, SecretResolver, Subscription
from .utils.errors import DiscoveryError, ResolveError, WriteError, sanitize_exception
from .writer import BackupResult, BackupWriter

logger = logging.getLogger(__name__)


class ShutdownContext:
    """Cancellation token shared by the main thread and the watch worker.

    Either a shutdown request (signal) or a fatal error ends the session;
    whichever comes first is recorded.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.reason: str | None = None
        self.error: BaseException | None = None

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def request(self, reason: str) -> None:
        """Ask for an orderly shutdown."""
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()

    def abort(self, error: BaseException) -> None:
        """Stop because of a fatal error."""
        with self._lock:
            if self._event.is_set():
                return
            self.reason = "fatal error"
            self.error = error
            self._event.set()

    def wait(self, poll_interval: float = 0.5) -> None:
        """Block until shutdown is requested or a fatal error is reported."""
        # Short waits keep the main thread responsive to signal handlers
        while not self._event.wait(poll_interval):
            pass

    def install_signal_handlers(
        self,
        signals: Iterable[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        """Route process signals to ``request``. Must run in the main thread."""

        def _handler(signum: int, frame: Any) -> None:
            self.request(signal.Signals(signum).name)

        for sig in signals:
            signal.signal(sig, _handler)


class ReconciliationSession:
    """Worker thread draining a subscription until shutdown."""

    def __init__(
        self,
        subscription: Subscription,
        shutdown: ShutdownContext,
        handler: Callable[[WatchEvent], Any],
    ) -> None:
        self.subscription = subscription
        self.shutdown = shutdown
        self.handler = handler
        self._thread = threading.Thread(target=self._consume, name="certificate-watch", daemon=True)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def _consume(self) -> None:
        events = iter(self.subscription)
        try:
            while not self.shutdown.requested:
                try:
                    event = next(events)
                except StopIteration:
                    if not self.shutdown.requested:
                        self.shutdown.abort(DiscoveryError("certificate watch stream terminated"))
                    return
                if self.shutdown.requested:
                    # Delivered after shutdown, leave it unprocessed
                    return
                self.handler(event)
        except Exception as e:
            if self.shutdown.requested:
                logger.debug(f"Watch worker stopped after shutdown: {sanitize_exception(e)}")
                return
            self.shutdown.abort(e)

    def stop(self) -> None:
        """Release the subscription and wait for the worker to finish.

        Closing the subscription unblocks a worker waiting for the next event;
        an item already being processed runs to completion first.
        """
        self.subscription.close()
        if self._thread.ident is not None:
            self._thread.join()


class ReconciliationOrchestrator:
    """Backs up ready certificates from a snapshot, then from the watch stream."""

    def __init__(
        self,
        source: CertificateSource,
        resolver: SecretResolver,
        writer: BackupWriter,
        shutdown: ShutdownContext,
    ) -> None:
        self.source = source
        self.resolver = resolver
        self.writer = writer
        self.shutdown = shutdown
        self.session: ReconciliationSession | None = None

    def run(self) -> None:
        """Bootstrap from the snapshot, then watch until shutdown.

        Raises:
            DiscoveryError: If the watch cannot be opened or ends before shutdown
            Exception: Any unexpected error raised while handling an event
        """
        self.bootstrap()
        if self.shutdown.requested:
            log_controller_event(
                logger,
                CONTROLLER_NAME,
                event="terminated",
                message=f"Exiting program due to '{self.shutdown.reason}' signal before watching",
            )
            return
        session = self.start_watching()
        try:
            self.shutdown.wait()
        finally:
            health.mark_not_ready()
            session.stop()

        error = self.shutdown.error
        if error is not None:
            log_controller_event(
                logger,
                CONTROLLER_NAME,
                event="terminated",
                message=f"Certificate watch failed: {sanitize_exception(error)}",
                level=logging.ERROR,
                error_type=type(error).__name__,
            )
            raise error
        log_controller_event(
            logger,
            CONTROLLER_NAME,
            event="terminated",
            message=f"Exiting program due to '{self.shutdown.reason}' signal",
        )

    def bootstrap(self) -> int:
        """Back up every ready certificate of the initial snapshot.

        A failed listing is logged and treated as an empty snapshot; the watch
        replays existing certificates anyway.

        Returns:
            Number of certificates in the snapshot
        """
        log_controller_event(logger, CONTROLLER_NAME, event="bootstrap", message="Listing certificates")
        try:
            records = self.source.snapshot()
        except DiscoveryError as e:
            metrics.error_total.labels(stage="list", error_type=type(e).__name__).inc()
            log_controller_event(
                logger,
                CONTROLLER_NAME,
                event="bootstrap",
                message=f"Unable to list certificates, continuing without snapshot: {sanitize_exception(e)}",
                level=logging.WARNING,
            )
            records = []

        for record in records:
            if self.shutdown.requested:
                break
            self.process(record, origin="snapshot")
        return len(records)

    def start_watching(self) -> ReconciliationSession:
        """Subscribe to the certificate stream and start the worker.

        The operator reports ready only once the watch connection is open.

        Raises:
            DiscoveryError: If the subscription cannot be opened
        """
        log_controller_event(logger, CONTROLLER_NAME, event="watch", message="Start watching certificates")
        subscription = self.source.subscribe()
        self.session = ReconciliationSession(subscription, self.shutdown, self.handle_event)
        health.mark_ready()
        self.session.start()
        return self.session

    def handle_event(self, event: WatchEvent) -> BackupResult | None:
        """Run the backup pipeline for Added and Modified events."""
        if event.kind is EventKind.OTHER or event.record is None:
            logger.debug(f"Ignoring {event.raw_type} event")
            return None
        return self.process(event.record, origin="watch")

    def process(self, record: CertificateRecord, origin: str) -> BackupResult | None:
        """Gate, resolve and write one certificate.

        Resolve and write failures are logged and the certificate is dropped
        for this observation.

        Returns:
            The write outcome, or None if nothing was written
        """
        start_time = time.time()
        try:
            return self._process(record, origin)
        finally:
            metrics.process_duration_seconds.labels(origin=origin).observe(time.time() - start_time)

    def _process(self, record: CertificateRecord, origin: str) -> BackupResult | None:
        if not record.conditions:
            metrics.certificates_observed_total.labels(origin=origin, result="not_ready").inc()
            self._log(record, "skipped", "NoConditions", "Certificate doesn't have conditions. Ignoring")
            return None
        if not is_ready(record):
            metrics.certificates_observed_total.labels(origin=origin, result="not_ready").inc()
            self._log(
                record,
                "skipped",
                "NotReady",
                "Certificate is not ready",
                level=logging.DEBUG,
                condition=record.conditions[0].type,
            )
            return None
        metrics.certificates_observed_total.labels(origin=origin, result="ready").inc()

        try:
            material = self.resolver.resolve(record.namespace, record.secret_name)
        except ResolveError as e:
            metrics.error_total.labels(stage="resolve", error_type=type(e).__name__).inc()
            self._log(
                record,
                "error",
                "ResolveFailed",
                f"Unable to get certificate content: {sanitize_exception(e)}",
                level=logging.ERROR,
                secret=record.secret_name,
            )
            return None

        if not material.is_complete:
            metrics.error_total.labels(stage="resolve", error_type="IncompleteSecret").inc()
            self._log(
                record,
                "error",
                "IncompleteSecret",
                f"Secret {record.secret_name} is missing {', '.join(material.missing)}",
                level=logging.WARNING,
                secret=record.secret_name,
            )
            return None

        try:
            return self.writer.write(record, material.certificate, material.private_key)
        except WriteError as e:
            metrics.error_total.labels(stage="write", error_type=type(e).__name__).inc()
            self._log(
                record,
                "error",
                "BackupFailed",
                "Error while backing up certificate",
                level=logging.ERROR,
                error=sanitize_exception(e),
                files={
                    str(outcome.path): outcome.status.value for outcome in e.result.outcomes
                },
            )
            return None

    def _log(
        self,
        record: CertificateRecord,
        event: str,
        reason: str,
        message: str,
        level: int = logging.INFO,
        **kwargs: Any,
    ) -> None:
        log_resource_event(
            logger,
            controller=CONTROLLER_NAME,
            resource_kind=KIND_CERTIFICATE,
            resource_name=record.name,
            namespace=record.namespace,
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )
