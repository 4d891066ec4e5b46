"""
Process-wide notification plumbing: the shared sender and a bounded worker
pool that runs deliveries outside the request/response cycle.

Lifecycle code calls dispatch_quote_event() from transaction.on_commit, so a
task only ever sees committed quotes. A task that blows up, or that cannot be
queued, is written back to the quote as email_status=failed.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from functools import partial

from django.conf import settings
from django.core.signals import setting_changed
from django.db import close_old_connections
from django.dispatch import receiver

from quotes.choices import EmailStatus
from quotes.models import Quote

from .orchestrator import NotificationOrchestrator
from .sender import NotificationSender

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_sender = None
_dispatcher = None


class NotificationDispatcher:
    def __init__(self, orchestrator, workers=4, queue_size=None, run_inline=False):
        self.orchestrator = orchestrator
        self.run_inline = run_inline
        self.workers = max(1, int(workers))
        queue_size = queue_size or self.workers * 25
        self._slots = threading.BoundedSemaphore(queue_size)
        self._executor = None
        self._executor_lock = threading.Lock()

    def _get_executor(self):
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers, thread_name_prefix="quote-notify"
                )
            return self._executor

    def submit(self, event, snapshot, admin_notes=""):
        """Run inline or hand to the pool. Returns a Future, or None when inline or rejected."""
        if self.run_inline:
            self.run(event, snapshot, admin_notes)
            return None
        if not self._slots.acquire(blocking=False):
            logger.error("Notification queue full; dropping %s for quote %s", event, snapshot.id)
            self._record_failure(snapshot, "Notification queue full.")
            return None
        future = self._get_executor().submit(self._run_in_worker, event, snapshot, admin_notes)
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def _run_in_worker(self, event, snapshot, admin_notes):
        close_old_connections()
        try:
            return self.run(event, snapshot, admin_notes)
        finally:
            close_old_connections()

    def run(self, event, snapshot, admin_notes=""):
        try:
            return self.orchestrator.handle(event, snapshot, admin_notes)
        except Exception as exc:
            logger.exception("Notification task for quote %s (%s) crashed", snapshot.id, event)
            self._record_failure(snapshot, f"{type(exc).__name__}: {exc}")
            return EmailStatus.FAILED

    def _record_failure(self, snapshot, error):
        # Runs after the quote has committed; a failed write-back is logged only.
        try:
            Quote.objects.record_email_outcome(snapshot.id, EmailStatus.FAILED, error)
        except Exception:
            logger.exception("Could not record email failure for quote %s", snapshot.id)

    def shutdown(self, wait=True):
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None


def get_sender():
    global _sender
    with _lock:
        if _sender is None:
            _sender = NotificationSender.from_settings()
        return _sender


def get_dispatcher():
    global _dispatcher
    sender = get_sender()
    with _lock:
        if _dispatcher is None:
            options = settings.QUOTES_NOTIFICATIONS
            _dispatcher = NotificationDispatcher(
                NotificationOrchestrator(sender),
                workers=options.get("WORKERS", 4),
                queue_size=options.get("QUEUE_SIZE"),
                run_inline=options.get("RUN_INLINE", False),
            )
        return _dispatcher


def dispatch_quote_event(event, snapshot, admin_notes=""):
    return get_dispatcher().submit(event, snapshot, admin_notes)


def on_commit_dispatch(event, snapshot, admin_notes=""):
    """Callable for transaction.on_commit."""
    return partial(dispatch_quote_event, event, snapshot, admin_notes)


def warm_up():
    """Build the sender at process start and verify the transport in the background."""
    sender = get_sender()
    if not settings.QUOTES_NOTIFICATIONS.get("VERIFY_ON_STARTUP", True):
        return
    if settings.QUOTES_NOTIFICATIONS.get("RUN_INLINE", False):
        sender.verify()
    else:
        threading.Thread(target=sender.verify, name="quote-notify-verify", daemon=True).start()


def reset():
    """Drop the cached sender and pool so the next use rebuilds them from settings."""
    global _sender, _dispatcher
    with _lock:
        if _dispatcher is not None:
            _dispatcher.shutdown(wait=False)
        _sender = None
        _dispatcher = None


@receiver(setting_changed)
def _reset_on_setting_change(setting, **kwargs):
    if setting in ("QUOTES_NOTIFICATIONS", "EMAIL_BACKEND", "EMAIL_HOST", "DEFAULT_FROM_EMAIL"):
        reset()
