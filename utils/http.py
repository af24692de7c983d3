"""HTTP helpers for fetching catalog documents.

A catalog repository serves every document as a raw file, so the only calls
made are plain GETs.  Sessions retry throttling and gateway errors with
exponential backoff, and downloads land in a ``.part`` file that is renamed
into place once complete; the loader never sees a truncated catalog.
"""

import logging
from pathlib import Path
from typing import Optional, List
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry as URLRetry

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"


class RetryStrategy:
    """Backoff policy for catalog GETs.

    Retries connection failures and the statuses in *status_forcelist*
    (429 and the 5xx gateway family by default).  A ``Retry-After`` header
    from a rate-limited raw-file host is honoured.
    """

    def __init__(self, max_retries: int = 3, backoff_factor: float = 2.0,
                 status_forcelist: Optional[List[int]] = None):
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.status_forcelist = status_forcelist or [429, 500, 502, 503, 504]

    def get_retry_object(self) -> URLRetry:
        """urllib3 ``Retry`` carrying this policy, for mounting on an adapter."""
        return URLRetry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.status_forcelist,
            allowed_methods=["GET", "HEAD"],
            respect_retry_after_header=True,
            raise_on_status=False,
        )


class SessionManager:
    """Lazily built ``requests.Session`` shared by one download run.

    Usable as a context manager; the session is closed on exit and rebuilt on
    next access.
    """

    def __init__(self, retry_strategy: Optional[RetryStrategy] = None,
                 pool_connections: int = 4, pool_maxsize: int = 8,
                 user_agent: Optional[str] = None):
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.pool_connections = pool_connections
        self.pool_maxsize = pool_maxsize
        self.user_agent = user_agent
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            session = requests.Session()
            adapter = HTTPAdapter(
                max_retries=self.retry_strategy.get_retry_object(),
                pool_connections=self.pool_connections,
                pool_maxsize=self.pool_maxsize,
            )
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            if self.user_agent:
                session.headers["User-Agent"] = self.user_agent
            self._session = session
        return self._session

    def close(self) -> None:
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def download_file(url: str, dest_path: Path, session: Optional[requests.Session] = None,
                  timeout: int = 30, chunk_size: int = 65536) -> bool:
    """Stream *url* into *dest_path*.

    The body is written to ``<dest_path>.part`` and renamed over *dest_path*
    only after the last chunk arrives.  On any request or write failure the
    partial file is removed, *dest_path* is left as it was, and False is
    returned; the caller decides whether that is fatal.
    """
    if session is None:
        session = requests.Session()

    part_path = dest_path.with_name(dest_path.name + PART_SUFFIX)
    try:
        resp = session.get(url, timeout=timeout, stream=True)
        resp.raise_for_status()

        dest_path.parent.mkdir(parents=True, exist_ok=True)
        with open(part_path, "wb") as f:
            for chunk in resp.iter_content(chunk_size=chunk_size):
                if chunk:
                    f.write(chunk)
        part_path.replace(dest_path)
        return True

    except (requests.RequestException, OSError) as e:
        logger.warning("Download failed for %s: %s", url, e)
        part_path.unlink(missing_ok=True)
        return False
