# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Archive fetcher.

Downloads the tag archive GitHub generates for `v<version>`:

    <base_url>/<owner>/<repo>/archive/v<version>.tar.gz

into a fresh scratch directory (`snpm-XXXXXXXX` under the temp root). The
body is streamed to disk in chunks, and the cancellation token is checked
between chunks so a stalled or abandoned download doesn't hold the run.

If anything goes wrong the scratch directory is removed before FetchError is
raised. On success the caller owns it.
"""

import logging
import tempfile
from pathlib import Path
from typing import Optional

import httpx

from snpm.logging.logger import get_logger
from snpm.publish.cancellation import CancellationToken
from snpm.publish.errors import FetchError, PipelineCancelledError
from snpm.publish.models import ArchiveHandle, RepositoryReference
from snpm.utils.filesystem import remove_tree
from snpm.utils.paths import ensure_directory

logger: logging.Logger = get_logger(__name__)

DEFAULT_ARCHIVE_BASE_URL = "https://github.com"
SCRATCH_PREFIX = "snpm-"
CHUNK_SIZE = 65536


def archive_filename(version: str) -> str:
    """Name GitHub gives the tarball of tag v<version>."""
    return f"v{version}.tar.gz"


def build_archive_url(
    reference: RepositoryReference,
    version: str,
    base_url: str = DEFAULT_ARCHIVE_BASE_URL,
) -> str:
    """Canonical tag archive URL for a repository and version."""
    return (
        f"{base_url.rstrip('/')}/{reference.owner}/{reference.repo}"
        f"/archive/{archive_filename(version)}"
    )


class ArchiveFetcher:
    """
    Streams tag archives from GitHub onto local disk.

    One fetcher is shared by the whole server; each `fetch` call gets its own
    scratch directory. Pass `transport` to swap the network out in tests.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_ARCHIVE_BASE_URL,
        timeout_seconds: float = 60.0,
        temp_root: Optional[Path] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.temp_root = temp_root
        self._transport = transport

    def _client(self, token: CancellationToken) -> httpx.Client:
        timeout = token.remaining(self.timeout_seconds)
        return httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    def fetch(
        self,
        reference: RepositoryReference,
        version: str,
        token: Optional[CancellationToken] = None,
    ) -> ArchiveHandle:
        """
        Download the v<version> archive of `reference`.

        Returns:
            ArchiveHandle pointing at the scratch dir and the saved tarball.

        Raises:
            FetchError: Network failure, non-2xx status, or write failure.
            PipelineCancelledError: The token was cancelled mid-download.
        """
        token = token or CancellationToken()
        url = build_archive_url(reference, version, self.base_url)

        if self.temp_root is not None:
            ensure_directory(self.temp_root)
        temp_dir = Path(tempfile.mkdtemp(
            prefix=SCRATCH_PREFIX,
            dir=str(self.temp_root) if self.temp_root else None,
        ))
        archive_file = temp_dir / archive_filename(version)

        logger.debug("Downloading archive", extra={"url": url, "dest": str(archive_file)})

        try:
            with self._client(token) as client:
                with client.stream("GET", url) as response:
                    if not response.is_success:
                        logger.error(
                            "Archive request rejected",
                            extra={"url": url, "status_code": response.status_code},
                        )
                        raise FetchError()
                    with open(archive_file, "wb") as out:
                        for chunk in response.iter_bytes(CHUNK_SIZE):
                            token.check()
                            out.write(chunk)

        except (FetchError, PipelineCancelledError):
            remove_tree(temp_dir)
            raise
        except (httpx.HTTPError, OSError) as err:
            remove_tree(temp_dir)
            logger.error("Archive download failed", extra={"url": url, "error": str(err)})
            raise FetchError() from err

        logger.info(
            "Archive downloaded",
            extra={
                "url": url,
                "bytes": archive_file.stat().st_size,
                "temp_dir": str(temp_dir),
            },
        )
        return ArchiveHandle(temp_dir=temp_dir, archive_file=archive_file)
