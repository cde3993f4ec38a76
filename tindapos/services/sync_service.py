"""
Sync Service
Tracks connectivity to the remote store and replays the offline queue
"""

import logging
import threading
import requests
from apscheduler.schedulers.background import BackgroundScheduler
from tindapos.services.document_store import RemoteStoreError
from tindapos.utils.cache import cached_connectivity, remember_connectivity

logger = logging.getLogger(__name__)


class SyncService:
    """Service for keeping the remote store in step with the offline queue"""

    def __init__(self, app, store, queue, mirror=None):
        self.app = app
        self.store = store
        self.queue = queue
        self.mirror = mirror
        self.scheduler = None
        self._online = None
        self._lock = threading.Lock()
        self.last_drain = None

    def check_internet_connection(self):
        """Check if the remote store can be reached"""
        url = self.app.config.get('CONNECTIVITY_CHECK_URL')
        if not url:
            return self.store.ping()
        try:
            response = requests.get(url, timeout=self.app.config.get('CONNECTIVITY_TIMEOUT', 5))
            return response.status_code < 500
        except requests.RequestException as e:
            logger.debug(f"No internet connection: {e}")
            return False

    def is_online(self):
        """Cached reachability flag; re-checked once the cached value expires"""
        online = cached_connectivity(self.app)
        if online is None:
            online = self.refresh_connectivity()
        return online

    def refresh_connectivity(self):
        """
        Check connectivity now. When the store comes back after being
        unreachable, the offline queue is drained immediately.
        """
        online = self.check_internet_connection()
        with self._lock:
            regained = online and self._online is False
            self._online = online
        remember_connectivity(self.app, online, self.app.config.get('CONNECTIVITY_CACHE_SECONDS', 10))

        if regained:
            logger.info("Connectivity regained, replaying offline queue")
            self.process_sync_queue(check=False)
        return online

    def process_sync_queue(self, check=True):
        """Replay pending writes if the store is reachable"""
        if check and not self.refresh_connectivity():
            logger.info("No connection to remote store, skipping sync")
            return None

        report = self.queue.drain(self.store)
        self.last_drain = report
        if self.mirror is not None and not report['skipped'] and report['remaining'] == 0:
            self.refresh_mirror()
        return report

    def refresh_mirror(self):
        """Reload the local mirror; only safe once nothing is left in the queue"""
        try:
            self.mirror.refresh(self.store)
        except RemoteStoreError as e:
            logger.warning(f"Local mirror not refreshed: {e}")

    def sync_all(self):
        """Manually trigger a full replay"""
        logger.info("Starting manual sync...")
        return self.process_sync_queue()

    def start_scheduler(self):
        """Start background scheduler for automatic sync"""
        if self.scheduler:
            logger.warning("Sync scheduler already running")
            return

        self.scheduler = BackgroundScheduler()
        interval = self.app.config.get('SYNC_INTERVAL_SECONDS', 30)

        self.scheduler.add_job(
            func=self.refresh_connectivity,
            trigger='interval',
            seconds=interval,
            id='connectivity_check'
        )
        self.scheduler.add_job(
            func=self.process_sync_queue,
            trigger='interval',
            seconds=interval * 10,
            id='sync_queue'
        )

        self.scheduler.start()
        logger.info(f"Sync scheduler started. Checking connectivity every {interval} seconds")

    def stop_scheduler(self):
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown()
            self.scheduler = None
            logger.info("Sync scheduler stopped")

    def get_sync_status(self):
        """Get current sync status"""
        return {
            'pending': self.queue.count(),
            'last_error': self.queue.last_error(),
            'online': self.is_online(),
            'last_drain': self.last_drain,
            'mirrored': self.mirror.count() if self.mirror is not None else 0,
            'scheduler_running': self.scheduler is not None,
        }
