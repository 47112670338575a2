"""Watch cluster events during an install and surface the ones worth reading."""

from __future__ import annotations

import enum
import logging
import queue
import threading
from datetime import datetime, timezone
from typing import Any

from rich.console import Console
from rich.markup import escape

from dpctl.core.log_scanner import LogScanner
from dpctl.models.events import ClusterEvent, DiagnosticResult, Severity

logger = logging.getLogger(__name__)

# Warnings seen more often than this are shown to the user
ESCALATION_THRESHOLD = 5
# A docker hub rate limit slows the install to a crawl, always surface it
RATE_LIMIT_MARKERS = ("Failed to pull image", "429 Too Many Requests")
LOG_TAIL_RETRY_DELAY = 5.0
POLL_INTERVAL = 0.5

_CLOSED = object()


class MonitorState(enum.Enum):
    IDLE = "idle"
    WATCHING = "watching"
    STOPPED = "stopped"


class EventMonitor:
    """Consume the namespace event stream on a background thread.

    The monitor never raises into the install: watch failures and log fetch
    failures degrade to debug output.
    """

    def __init__(
        self,
        k8s: Any,
        namespace: str,
        bootstrap_pod: str,
        console: Console | None = None,
        now: datetime | None = None,
    ):
        self.k8s = k8s
        self.namespace = namespace
        self.bootstrap_pod = bootstrap_pod
        self.console = console or Console(stderr=True)
        # The watch replays history on connect, anything older than this is stale
        self.cutoff = now or datetime.now(timezone.utc)
        self.state = MonitorState.IDLE
        self.events_seen = 0
        self.events_discarded = 0

        self._stop = threading.Event()
        self._queue: queue.Queue = queue.Queue()
        self._watch: Any = None
        self._thread: threading.Thread | None = None
        self._tail_thread: threading.Thread | None = None
        self._log_stream: Any = None

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        if self.state != MonitorState.IDLE:
            return
        self.state = MonitorState.WATCHING
        self._thread = threading.Thread(target=self._run, name="event-monitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._watch is not None:
            self._watch.stop()
        if self._log_stream is not None:
            try:
                self._log_stream.close()
            except Exception:
                logger.debug("Failed to close log stream", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        for t in (self._thread, self._tail_thread):
            if t is not None:
                t.join(timeout)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _run(self) -> None:
        logger.debug("Event watcher started")
        try:
            self._watch, stream = self.k8s.watch_events(self.namespace)
        except Exception as e:
            self.console.print(f"[yellow]Unable to watch {self.namespace} events[/yellow]\n  {e}")
            self.state = MonitorState.STOPPED
            return
        if self._stop.is_set():
            self._watch.stop()

        producer = threading.Thread(target=self._produce, args=(stream,), name="event-watch", daemon=True)
        producer.start()
        try:
            self._consume()
        finally:
            self.state = MonitorState.STOPPED
            logger.debug("Event watcher completed after %d events", self.events_seen)

    def _produce(self, stream: Any) -> None:
        try:
            for item in stream:
                self._queue.put(item)
                if self._stop.is_set():
                    break
        except Exception:
            if not self._stop.is_set():
                logger.debug("Event stream failed", exc_info=True)
        finally:
            self._queue.put(_CLOSED)

    def _consume(self) -> None:
        while not self._stop.is_set():
            try:
                item = self._queue.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            if item is _CLOSED:
                return
            self.events_seen += 1
            obj = item.get("object") if isinstance(item, dict) else None
            if obj is None:
                logger.debug("Received unexpected watch item: %r", type(item))
                continue
            result = self.handle_event(ClusterEvent.from_k8s(obj))
            if result is not None:
                self.report(result)

    # -- classification ---------------------------------------------------

    def handle_event(self, event: ClusterEvent) -> DiagnosticResult | None:
        """Classify a single event. Returns None for stale events."""
        if event.last_timestamp is None or event.last_timestamp < self.cutoff:
            self.events_discarded += 1
            return None

        kind = event.type.lower()
        if kind == "normal":
            return self._handle_normal(event)
        if kind == "warning":
            return self._handle_warning(event)
        return DiagnosticResult(
            severity=Severity.DEBUG,
            message=f"Received an unsupported event type: {event.type}",
            reason=event.reason,
        )

    def _handle_normal(self, event: ClusterEvent) -> DiagnosticResult:
        if event.reason.lower() == "backoff":
            return DiagnosticResult(
                severity=Severity.WARNING,
                message=event.note,
                reason=event.reason,
                pod_name=event.regarding_name,
                namespace=event.regarding_namespace,
            )
        if event.reason == "Started" and event.regarding_name == self.bootstrap_pod:
            self._start_log_tail()
        return DiagnosticResult(severity=Severity.DEBUG, message=event.note, reason=event.reason)

    def _handle_warning(self, event: ClusterEvent) -> DiagnosticResult:
        severity = Severity.DEBUG
        if event.count > ESCALATION_THRESHOLD:
            severity = Severity.WARNING

        logs = ""
        if event.reason.lower() == "backoff":
            logs = self._fetch_logs(event)
        elif all(marker in event.note for marker in RATE_LIMIT_MARKERS):
            severity = Severity.WARNING

        message = (
            "Encountered an issue deploying the platform:\n"
            f"  Pod: {event.name}\n"
            f"  Reason: {event.reason}\n"
            f"  Message: {event.note}\n"
            f"  Count: {event.count}"
        )
        if logs:
            message += f"\n  Logs: {logs.strip()}"
        return DiagnosticResult(
            severity=severity,
            message=message,
            reason=event.reason,
            pod_name=event.regarding_name,
            namespace=event.regarding_namespace,
        )

    def _fetch_logs(self, event: ClusterEvent) -> str:
        try:
            return self.k8s.logs_get(event.regarding_namespace, event.regarding_name)
        except Exception as e:
            return f"Unable to retrieve logs for {event.regarding_namespace}:{event.regarding_name}\n  {e}"

    def report(self, result: DiagnosticResult) -> None:
        if result.severity == Severity.ERROR:
            self.console.print(f"[red bold]ERROR[/red bold] {escape(result.message)}", highlight=False)
        elif result.severity == Severity.WARNING:
            self.console.print(f"[yellow]WARNING[/yellow] {escape(result.message)}", highlight=False)
        else:
            logger.debug(result.message)

    # -- bootstrap log tail -----------------------------------------------

    def _start_log_tail(self) -> None:
        if self._tail_thread is not None and self._tail_thread.is_alive():
            return
        self._tail_thread = threading.Thread(target=self._tail_bootstrap_logs, name="bootstrap-logs", daemon=True)
        self._tail_thread.start()

    def _tail_bootstrap_logs(self) -> None:
        logger.debug("Start streaming %s logs", self.bootstrap_pod)
        since = datetime.now(timezone.utc)

        # Give the container a moment to start before each attach attempt
        while not self._stop.wait(LOG_TAIL_RETRY_DELAY):
            try:
                self._log_stream = self.k8s.stream_pod_logs(self.namespace, self.bootstrap_pod, since)
            except Exception as e:
                logger.debug("Error streaming %s logs, will retry: %s", self.bootstrap_pod, e)
                continue

            try:
                for line in LogScanner(self._log_stream):
                    if self._stop.is_set():
                        break
                    severity = Severity.ERROR if line.level == "ERROR" else Severity.DEBUG
                    self.report(DiagnosticResult(
                        severity=severity,
                        message=f"{self.bootstrap_pod}: {line.message}",
                        pod_name=self.bootstrap_pod,
                        namespace=self.namespace,
                    ))
            except Exception as e:
                logger.debug("Stopped streaming %s logs: %s", self.bootstrap_pod, e)
            break

        self._log_stream = None
        logger.debug("Done streaming %s logs", self.bootstrap_pod)
