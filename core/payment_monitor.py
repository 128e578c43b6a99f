"""
Online checkout follow-up

After a customer is sent to the payment gateway, the checkout id is stored
locally and polled until it is paid or the polling window runs out. AutoSync
periodically asks the backend to pull in gateway payments it missed.
"""
import json
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from config.settings import (
    AUTO_SYNC_INTERVAL, CHECKOUT_POLL_INITIAL_DELAY, CHECKOUT_POLL_INTERVAL,
    CHECKOUT_POLL_WINDOW, PENDING_CHECKOUTS_FILE,
)
from data_manager.api_client import DashboardError
from utils.formatters import to_number

logger = logging.getLogger(__name__)

PAID_MESSAGE = "Payment completed successfully! Updating records..."
TIMEOUT_MESSAGE = "Payment monitoring timed out. Please refresh the page to check your payment status."
ERROR_MESSAGE = "Error checking payment status. Please refresh the page to check your payment status."

Notify = Callable[[str, str], None]


def _noop_notify(level: str, message: str):
    pass


class PendingCheckoutStore:
    """Checkouts awaiting confirmation, kept as [{checkoutId, lotId}] in a JSON file"""

    def __init__(self, path: Path = PENDING_CHECKOUTS_FILE):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> List[dict]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to read pending checkouts: %s", e)
            return []
        return [e for e in data if isinstance(e, dict) and e.get("checkoutId")] if isinstance(data, list) else []

    def _save(self, entries: List[dict]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(entries, indent=2), encoding="utf-8")

    def add(self, checkout_id: str, lot_id=None):
        with self._lock:
            entries = [e for e in self.load() if e["checkoutId"] != checkout_id]
            entries.append({"checkoutId": checkout_id, "lotId": lot_id})
            self._save(entries)

    def remove(self, checkout_id: str):
        with self._lock:
            self._save([e for e in self.load() if e["checkoutId"] != checkout_id])


def store_for_user(user_id) -> PendingCheckoutStore:
    """Pending checkouts are kept per signed-in user"""
    base = Path(PENDING_CHECKOUTS_FILE)
    return PendingCheckoutStore(base.with_name(f"{base.stem}_{user_id}{base.suffix}"))


class CheckoutMonitor:
    """Poll checkout ids until paid or until the polling window closes

    Polling runs on timer threads (``start(schedule=True)``) or is driven from
    outside with ``poll_due()``, which only checks the checkouts whose next
    poll time has come. The window is measured on ``clock`` from ``start``.
    """

    def __init__(
        self,
        api,
        store: Optional[PendingCheckoutStore] = None,
        on_refresh: Optional[Callable[[], None]] = None,
        notify: Notify = _noop_notify,
        initial_delay: float = CHECKOUT_POLL_INITIAL_DELAY,
        interval: float = CHECKOUT_POLL_INTERVAL,
        window: float = CHECKOUT_POLL_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api
        self.store = store or PendingCheckoutStore()
        self.on_refresh = on_refresh
        self.notify = notify
        self.initial_delay = initial_delay
        self.interval = interval
        self.window = window
        self.clock = clock
        self._active = set()
        self._started: Dict[str, float] = {}
        self._last_poll: Dict[str, float] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def is_monitoring(self, checkout_id: str) -> bool:
        with self._lock:
            return checkout_id in self._active

    def active_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._active)

    def start(self, checkout_id: str, lot_id=None, schedule: bool = True) -> bool:
        """Begin polling; a checkout already being watched is ignored"""
        if not checkout_id:
            return False
        with self._lock:
            if checkout_id in self._active:
                return False
            self._active.add(checkout_id)
            self._started[checkout_id] = self.clock()
        self.store.add(checkout_id, lot_id)
        logger.info("Monitoring checkout %s", checkout_id)
        if schedule:
            self._schedule(checkout_id, self.initial_delay)
        return True

    def resume_pending(self, schedule: bool = True) -> List[str]:
        started = []
        for entry in self.store.load():
            if self.start(entry["checkoutId"], entry.get("lotId"), schedule=schedule):
                started.append(entry["checkoutId"])
        return started

    def is_due(self, checkout_id: str) -> bool:
        """First check after the initial delay, then one per interval"""
        now = self.clock()
        with self._lock:
            if checkout_id not in self._active:
                return False
            last = self._last_poll.get(checkout_id)
            if last is None:
                return now - self._started[checkout_id] >= self.initial_delay
            return now - last >= self.interval

    def poll_due(self) -> Dict[str, str]:
        """Poll every watched checkout whose turn has come"""
        return {cid: self.poll_once(cid) for cid in self.active_ids() if self.is_due(cid)}

    def _schedule(self, checkout_id: str, delay: float):
        with self._lock:
            if checkout_id not in self._active:
                return
            timer = threading.Timer(delay, self._run, args=(checkout_id,))
            timer.daemon = True
            self._timers[checkout_id] = timer
        timer.start()

    def _run(self, checkout_id: str):
        if self.poll_once(checkout_id) == "pending":
            self._schedule(checkout_id, self.interval)

    def _finish(self, checkout_id: str):
        self.store.remove(checkout_id)
        with self._lock:
            self._active.discard(checkout_id)
            self._started.pop(checkout_id, None)
            self._last_poll.pop(checkout_id, None)
            timer = self._timers.pop(checkout_id, None)
        if timer is not None:
            timer.cancel()

    def poll_once(self, checkout_id: str) -> str:
        """One status check; returns "paid", "pending", "timeout" or "error" """
        now = self.clock()
        with self._lock:
            if checkout_id not in self._active:
                return "stopped"
            self._last_poll[checkout_id] = now
            elapsed = now - self._started[checkout_id]
        expired = elapsed >= self.window

        try:
            status = self.api.check_payment_status(checkout_id)
        except DashboardError as e:
            logger.debug("Status check for %s failed after %.0fs: %s", checkout_id, elapsed, e)
            if not expired:
                return "pending"
            self._finish(checkout_id)
            self.notify("error", ERROR_MESSAGE)
            return "error"

        if status.get("is_paid"):
            self._on_paid(checkout_id)
            return "paid"

        logger.debug("Checkout %s not paid yet (%.0fs)", checkout_id, elapsed)
        if not expired:
            return "pending"
        logger.info("Stopped monitoring checkout %s after %.0fs", checkout_id, elapsed)
        self._finish(checkout_id)
        self.notify("error", TIMEOUT_MESSAGE)
        return "timeout"

    def _on_paid(self, checkout_id: str):
        self.notify("success", PAID_MESSAGE)
        self.store.remove(checkout_id)
        try:
            self.api.process_pending_payments(checkout_id)
        except DashboardError as e:
            logger.warning("Processing paid checkout %s failed: %s", checkout_id, e)
        try:
            self.api.email_receipt(checkout_id)
        except DashboardError as e:
            logger.warning("Receipt email for %s failed: %s", checkout_id, e)
        if self.on_refresh is not None:
            self.on_refresh()
        self._finish(checkout_id)

    def cancel_all(self):
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._active.clear()
            self._started.clear()
            self._last_poll.clear()
        for t in timers:
            t.cancel()


def new_payments_message(new_payments: List[dict]) -> str:
    listed = ", ".join(f"{p.get('owner_name')}: ₱{to_number(p.get('amount')):.2f}" for p in new_payments)
    return f"New payments detected: {listed}"


class AutoSync:
    """Ask the backend to sync gateway payments on a fixed interval"""

    def __init__(self, api, on_refresh: Optional[Callable[[], None]] = None,
                 notify: Notify = _noop_notify, interval: float = AUTO_SYNC_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self.api = api
        self.on_refresh = on_refresh
        self.notify = notify
        self.interval = interval
        self.clock = clock
        self.last_sync = None
        self._last_attempt: Optional[float] = None
        self._timer: Optional[threading.Timer] = None
        self._running = False
        self._lock = threading.Lock()

    def is_due(self) -> bool:
        return self._last_attempt is None or self.clock() - self._last_attempt >= self.interval

    def sync_if_due(self) -> Optional[int]:
        """Sync unless the last attempt was less than one interval ago"""
        if not self.is_due():
            return None
        return self.sync_once()

    def sync_once(self) -> int:
        self._last_attempt = self.clock()
        try:
            data = self.api.auto_sync_payments()
        except DashboardError as e:
            logger.error("Auto-sync failed: %s", e)
            return 0
        self.last_sync = datetime.now()
        synced = int(to_number(data.get("synced_count")))
        if synced > 0:
            logger.info("Auto-synced %d new payments", synced)
            if self.on_refresh is not None:
                self.on_refresh()
            if data.get("new_payments"):
                self.notify("success", new_payments_message(data["new_payments"]))
        return synced

    def start(self):
        with self._lock:
            self._running = True
        self._schedule()

    def _schedule(self):
        with self._lock:
            if not self._running:
                return
            self._timer = threading.Timer(self.interval, self._tick)
            self._timer.daemon = True
            self._timer.start()

    def _tick(self):
        self.sync_once()
        self._schedule()

    def stop(self):
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
