"""HTTP client for the Quicket events API."""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class QuicketClient:
    """Paginated client for the Quicket public events listing."""

    BASE_URL = "https://api.quicket.co.za/api/events"
    MAX_RETRIES = 3
    RETRY_DELAYS = (2, 5, 10)  # seconds
    DEFAULT_RETRY_AFTER = 5  # seconds
    MAX_PAGES = 30
    PAGE_DELAY = 0.5  # seconds
    MIN_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 200

    def __init__(
        self,
        api_key: str,
        page_size: int = 100,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the Quicket client.

        Args:
            api_key: Quicket API key
            page_size: Results per page, clamped to 20-200 (default: 100)
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse
            sleep: Function used for backoff and pacing delays
        """
        self.api_key = api_key
        self.page_size = min(max(page_size, self.MIN_PAGE_SIZE), self.MAX_PAGE_SIZE)
        self.timeout = timeout
        self.session = session or requests.Session()
        self._sleep = sleep

    def fetch_all_events(self) -> List[Dict[str, Any]]:
        """
        Fetch every page of events, up to the page cap.

        Returns:
            Raw result dicts from all pages, in page order

        Raises:
            requests.RequestException: If a page fails after all retries
        """
        logger.info("Fetching all events from Quicket")
        all_events: List[Dict[str, Any]] = []
        current_page = 1
        total_pages = 1

        while current_page <= total_pages:
            response = self.fetch_page(current_page)
            if not isinstance(response, dict):
                logger.warning(
                    f"Unexpected response body on page {current_page}: "
                    f"{type(response).__name__}. Treating as empty."
                )
                response = {}

            events = response.get('results') or []
            if not isinstance(events, list):
                logger.warning(f"Ignoring non-list results on page {current_page}")
                events = []
            all_events.extend(events)

            total_pages = self._page_count(response.get('pages'))

            logger.info(
                f"Page {current_page}/{total_pages}: {len(events)} events "
                f"({len(all_events)} total)"
            )

            current_page += 1

            if current_page > self.MAX_PAGES:
                if total_pages > self.MAX_PAGES:
                    logger.warning(
                        f"Reached page cap ({self.MAX_PAGES}). Stopping pagination."
                    )
                break

            if current_page <= total_pages:
                self._sleep(self.PAGE_DELAY)

        logger.info(f"Fetched {len(all_events)} total events from Quicket")
        return all_events

    def fetch_page(self, page: int) -> Dict[str, Any]:
        """
        Fetch a single page with retry and rate-limit handling.

        A 429 response is waited out using its Retry-After hint and the
        same page is requested again without using up an attempt.

        Args:
            page: 1-based page number

        Returns:
            Decoded JSON response

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        params = {
            'api_key': self.api_key,
            'pageSize': self.page_size,
            'page': page
        }

        attempt = 0
        while True:
            try:
                response = self.session.get(
                    self.BASE_URL,
                    params=params,
                    timeout=self.timeout
                )

                if response.status_code == 429:
                    retry_after = self._retry_after_seconds(response)
                    logger.warning(
                        f"Rate-limited by Quicket on page {page}. "
                        f"Waiting {retry_after}s..."
                    )
                    self._sleep(retry_after)
                    continue

                response.raise_for_status()
                return response.json()

            except requests.RequestException as e:
                attempt += 1
                if attempt < self.MAX_RETRIES:
                    delay = self.RETRY_DELAYS[min(attempt - 1, len(self.RETRY_DELAYS) - 1)]
                    logger.warning(
                        f"Fetch attempt {attempt}/{self.MAX_RETRIES} failed "
                        f"(page {page}): {e}. Retrying in {delay} seconds..."
                    )
                    self._sleep(delay)
                else:
                    logger.error(
                        f"All {self.MAX_RETRIES} attempts failed for page {page}. "
                        f"Last error: {e}"
                    )
                    raise

    @staticmethod
    def _page_count(value: Any) -> int:
        if value is None:
            return 1
        try:
            pages = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid page count {value!r}. Assuming 1 page.")
            return 1
        return pages if pages >= 1 else 1

    def _retry_after_seconds(self, response: requests.Response) -> int:
        value = response.headers.get('Retry-After')
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            return self.DEFAULT_RETRY_AFTER
        return seconds if seconds >= 0 else self.DEFAULT_RETRY_AFTER
