"""
Fetch catalog documents that are missing from the data directory.

Documents are served as raw files under a base URL (the community data
repository by default).  Files already on disk are never re-downloaded;
delete them to refresh.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import quote

from utils.config import DownloadConfig
from utils.http import RetryStrategy, SessionManager, download_file

logger = logging.getLogger(__name__)


def document_url(base_url: str, file_name: str) -> str:
    """URL of *file_name* under *base_url*, path-escaped ("T'au Empire.cat")."""
    return f"{base_url.rstrip('/')}/{quote(file_name)}"


def fetch_missing(
    file_names: Iterable[str],
    data_dir: Path,
    base_url: str,
    config: DownloadConfig | None = None,
    session_manager: SessionManager | None = None,
) -> dict[str, list[str]]:
    """Download every file in *file_names* that is not in *data_dir* yet.

    Returns:
        ``{"downloaded": [...], "present": [...], "failed": [...]}``
    """
    config = config or DownloadConfig()
    result: dict[str, list[str]] = {"downloaded": [], "present": [], "failed": []}

    missing = []
    for name in file_names:
        if (data_dir / name).exists():
            result["present"].append(name)
        else:
            missing.append(name)
    if not missing:
        return result

    manager = session_manager or SessionManager(
        RetryStrategy(config.max_retries, config.backoff_factor),
        pool_connections=config.pool_connections,
        pool_maxsize=config.pool_maxsize,
        user_agent=config.user_agent,
    )
    with manager:
        for name in missing:
            url = document_url(base_url, name)
            logger.info("  Downloading %s", name)
            if download_file(url, data_dir / name, session=manager.session,
                             timeout=config.timeout_seconds):
                result["downloaded"].append(name)
            else:
                result["failed"].append(name)

    return result
