import time
import threading

class YahooRateLimiter:
    """
    Yahoo Finance unofficial rate limits:
    - ~2000 requests/hour recommended
    - Keep a minimum interval between requests, shared across threads
    """

    def __init__(self, min_interval: float = 0.25):
        self.min_interval = min_interval
        self.last_request = 0.0
        self._lock = threading.Lock()

    def wait_if_needed(self):
        """Block until min_interval has passed since the previous request."""
        with self._lock:
            elapsed = time.time() - self.last_request
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self.last_request = time.time()
