"""Certificate discovery via the cert-manager custom resource API."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Iterator

from kubernetes import client, watch
from kubernetes.watch.watch import iter_resp_lines
from urllib3.response import HTTPResponse

from ... import metrics
from ...constants import (
    CERT_MANAGER_GROUP,
    CERT_MANAGER_VERSION,
    CERTIFICATE_PLURAL,
    WATCH_ADDED,
    WATCH_ERROR,
    WATCH_MODIFIED,
)
from ...models import CertificateRecord, WatchEvent
from ...utils.errors import DiscoveryError, sanitize_exception

logger = logging.getLogger(__name__)


class CertificateSubscription:
    """Open watch on Certificate resources.

    Wraps the streaming HTTP response of a single watch request. Iterating
    yields typed events in delivery order and may happen only once. ``close``
    shuts the socket down for reading, which also unblocks an iteration
    waiting on an idle watch.
    """

    def __init__(self, response: HTTPResponse, decoder: watch.Watch | None = None) -> None:
        self._response = response
        self._decoder = decoder or watch.Watch()
        self._lock = threading.Lock()
        self._closed = False
        self._started = False
        self._released = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[WatchEvent]:
        with self._lock:
            if self._closed:
                self._release()
                return
            self._started = True
        try:
            for line in iter_resp_lines(self._response):
                raw_event = self._decoder.unmarshal_event(line, None)
                if raw_event is None:
                    continue
                yield to_watch_event(raw_event)
        except DiscoveryError:
            raise
        except Exception as e:
            if self._closed:
                return
            metrics.api_call_total.labels(
                api_type="k8s", operation="watch_certificates", result="error"
            ).inc()
            raise DiscoveryError(f"certificate watch failed: {sanitize_exception(e)}") from e
        finally:
            with self._lock:
                self._release()

    def close(self) -> None:
        """Stop the watch. Safe to call more than once and from another thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._released:
                return
            if not self._started:
                self._release()
                return
            try:
                self._response.shutdown()
            except (ValueError, RuntimeError) as e:
                # No socket left to shut down; the reader is already done with it
                logger.debug(f"Watch response already released: {e}")

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self._response.close()
        self._response.release_conn()


def to_watch_event(raw_event: dict[str, Any]) -> WatchEvent:
    """Convert a raw watch event into a typed WatchEvent.

    Args:
        raw_event: Event dict as decoded by ``kubernetes.watch.Watch.unmarshal_event``

    Returns:
        Added/Modified event with its record, or an Other event

    Raises:
        DiscoveryError: If the API server reported an error on the stream
    """
    event_type = raw_event.get("type")
    metrics.watch_events_total.labels(event_type=str(event_type)).inc()

    if event_type == WATCH_ERROR:
        obj = raw_event.get("raw_object") or raw_event.get("object") or {}
        message = obj.get("message", "unknown error") if isinstance(obj, dict) else str(obj)
        raise DiscoveryError(f"certificate watch returned an error: {message}")

    if event_type not in (WATCH_ADDED, WATCH_MODIFIED):
        return WatchEvent.other(event_type)

    obj = raw_event.get("object")
    if not isinstance(obj, dict):
        obj = raw_event.get("raw_object")
    try:
        record = CertificateRecord.from_resource(obj or {})
    except ValueError as e:
        logger.warning(f"Ignoring {event_type} event with unusable certificate object: {e}")
        return WatchEvent.other(event_type)

    if event_type == WATCH_ADDED:
        return WatchEvent.added(record)
    return WatchEvent.modified(record)


class KubernetesCertificateSource:
    """Lists and watches cert-manager Certificates."""

    def __init__(self, api: client.CustomObjectsApi, namespace: str | None = None) -> None:
        """Initialize the source.

        Args:
            api: Kubernetes CustomObjectsApi instance
            namespace: Namespace to restrict discovery to, or None for all
        """
        self.api = api
        self.namespace = namespace

    def _list_call(self) -> tuple[Any, dict[str, Any]]:
        kwargs: dict[str, Any] = {
            "group": CERT_MANAGER_GROUP,
            "version": CERT_MANAGER_VERSION,
            "plural": CERTIFICATE_PLURAL,
        }
        if self.namespace:
            kwargs["namespace"] = self.namespace
            return self.api.list_namespaced_custom_object, kwargs
        return self.api.list_cluster_custom_object, kwargs

    def snapshot(self) -> list[CertificateRecord]:
        """List all certificates currently known to the API server.

        Items that cannot be interpreted are logged and skipped.

        Raises:
            DiscoveryError: If the list call fails
        """
        func, kwargs = self._list_call()
        start_time = time.time()
        try:
            response = func(**kwargs)
            metrics.api_call_total.labels(
                api_type="k8s", operation="list_certificates", result="success"
            ).inc()
        except Exception as e:
            metrics.api_call_total.labels(
                api_type="k8s", operation="list_certificates", result="error"
            ).inc()
            raise DiscoveryError(f"unable to list certificates: {sanitize_exception(e)}") from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(
                api_type="k8s", operation="list_certificates"
            ).observe(duration)

        records = []
        for item in response.get("items") or []:
            try:
                records.append(CertificateRecord.from_resource(item))
            except ValueError as e:
                logger.warning(f"Skipping unusable certificate object: {e}")
        return records

    def subscribe(self) -> CertificateSubscription:
        """Open the certificate watch.

        A single watch request is made and its connection is established
        before returning. Without a resource version the API server first
        replays every existing certificate as an ADDED event, then streams
        changes. The request is never resumed: when the API server closes it
        (its request timeout, or an expired resource version) the
        subscription ends and the caller treats that as fatal.

        Raises:
            DiscoveryError: If the watch cannot be opened
        """
        func, kwargs = self._list_call()
        start_time = time.time()
        try:
            response = func(watch=True, _preload_content=False, **kwargs)
            metrics.api_call_total.labels(
                api_type="k8s", operation="watch_certificates", result="started"
            ).inc()
        except Exception as e:
            metrics.api_call_total.labels(
                api_type="k8s", operation="watch_certificates", result="error"
            ).inc()
            raise DiscoveryError(f"unable to watch certificates: {sanitize_exception(e)}") from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(
                api_type="k8s", operation="watch_certificates"
            ).observe(duration)
        return CertificateSubscription(response)
