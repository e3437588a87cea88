"""HTTP fetcher for extension artifacts"""

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urljoin, urlparse

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from extupdate.core.updates.cancellation import CancellationToken
from extupdate.core.updates.exceptions import (
    Cancelled,
    IOFailure,
    TransportFailure,
    UpdateError,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300  # 5 minutes
CHUNK_SIZE = 8192  # 8KB chunks
USER_AGENT = "extupdate-downloader/1.0"

FILENAME = "filename="
MAX_FILE_NAME_LENGTH = 255
_FORBIDDEN_NAME_CHARS = frozenset('/\\:*?"<>|')


def is_valid_file_name(name: Optional[str]) -> bool:
    """
    Check that a name can be used as a single file name on any platform

    Path separators, wildcard/reserved characters, control characters and the
    special names ``.`` and ``..`` are refused.
    """
    if not name or name in (".", ".."):
        return False
    if len(name) > MAX_FILE_NAME_LENGTH:
        return False
    for ch in name:
        if ch in _FORBIDDEN_NAME_CHARS or ord(ch) < 32:
            return False
    return True


def _last_segment(url: str) -> str:
    return url[url.rfind("/") + 1:]


def guess_file_name(
    content_disposition: Optional[str],
    resolved_url: str,
    original_url: str
) -> str:
    """
    Resolve the name a downloaded artifact should be saved under

    Resolution order:
    1. ``filename=`` directive of the Content-Disposition header (quotes stripped,
       cut at the next ``;``)
    2. last path segment of the resolved (post-redirect) URL, unless it is empty
       or carries a query string
    3. last path segment of the original request URL

    The result is not validated here.
    """
    file_name = None

    logger.debug(f"Content-Disposition header: {content_disposition}")
    if content_disposition and FILENAME in content_disposition:
        start = content_disposition.index(FILENAME)
        end = content_disposition.find(";", start)
        file_name = content_disposition[start + len(FILENAME):end if end > 0 else len(content_disposition)]
        file_name = file_name.strip()
        if len(file_name) >= 2 and file_name.startswith('"') and file_name.endswith('"'):
            file_name = file_name[1:-1]

    if file_name is None:
        file_name = _last_segment(resolved_url)
        if not file_name or "?" in file_name:
            file_name = _last_segment(original_url)

    return file_name


class ArtifactFetcher:
    """Downloads extension artifacts into a staging directory"""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT
    ):
        """
        Initialize fetcher

        Args:
            session: Session to use; a plain session is created if omitted.
                No retry adapter is mounted, failed downloads are reported once.
            timeout: Connect/read timeout in seconds
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    def _validate_url(self, url: str, force_secure: bool) -> None:
        """
        Validate URL format and scheme

        Raises:
            TransportFailure: If the URL is malformed or not allowed
        """
        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https'):
            raise TransportFailure(f"Invalid URL scheme: {parsed.scheme!r}. Only http/https allowed.")
        if not parsed.netloc:
            raise TransportFailure(f"Invalid URL: missing hostname in {url}")
        if force_secure and parsed.scheme != 'https':
            raise TransportFailure(f"Refusing insecure connection to {url}: HTTPS is required")

    @staticmethod
    def _reject_insecure_redirect(response: requests.Response, *args, **kwargs) -> requests.Response:
        if response.is_redirect:
            target = urljoin(response.url, response.headers.get("location", ""))
            if urlparse(target).scheme != "https":
                response.close()
                raise TransportFailure(f"Refusing insecure redirect from {response.url} to {target}")
        return response

    def fetch(
        self,
        url: str,
        destination_dir: Path,
        force_secure: bool = False,
        cancellation: Optional[CancellationToken] = None,
        file_name: Optional[str] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> Path:
        """
        Download an artifact into destination_dir

        The body is streamed byte-exact into a uniquely named temporary file,
        which is renamed to the resolved file name once the transfer completed.

        Args:
            url: URL to download from
            destination_dir: Staging directory (created if missing)
            force_secure: Refuse plain HTTP targets and redirects
            cancellation: Token checked before and during the transfer
            file_name: Name to use instead of the server supplied one
            progress_callback: Callback function (downloaded_bytes, total_bytes)

        Returns:
            Path of the downloaded file inside destination_dir

        Raises:
            Cancelled: If the token was cancelled; nothing is left on disk
            TransportFailure: If the request or the response stream fails
            IOFailure: If the staging directory or file cannot be written
            ValidationFailure: If the resolved file name is not a safe name
        """
        token = cancellation or CancellationToken()
        token.raise_if_cancelled()

        self._validate_url(url, force_secure)

        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(f"Cannot create temp directory {destination_dir}: {e}") from e

        try:
            fd, temp_name = tempfile.mkstemp(prefix="plugin_", suffix="_download", dir=destination_dir)
        except OSError as e:
            raise IOFailure(f"Cannot create temp file in {destination_dir}: {e}") from e
        temp_path = Path(temp_name)

        logger.info(f"Starting download from: {url}")

        response = None
        unregister = None
        try:
            with os.fdopen(fd, 'wb') as f:
                response = self.session.get(
                    url,
                    stream=True,
                    timeout=self.timeout,
                    headers={
                        'User-Agent': USER_AGENT,
                        'Accept-Encoding': 'identity',
                    },
                    hooks={'response': self._reject_insecure_redirect} if force_secure else None,
                )
                unregister = token.on_cancel(response.close)

                response.raise_for_status()
                if force_secure and urlparse(response.url).scheme != 'https':
                    raise TransportFailure(f"Refusing insecure download from {response.url}")

                content_length = response.headers.get('Content-Length')
                total_size = int(content_length) if content_length and content_length.isdigit() else 0

                downloaded_bytes = 0
                start_time = time.time()

                # raw stream: the artifact must stay byte-exact for archive parsing
                for chunk in response.raw.stream(CHUNK_SIZE, decode_content=False):
                    token.raise_if_cancelled()
                    if chunk:
                        f.write(chunk)
                        downloaded_bytes += len(chunk)
                        if progress_callback:
                            progress_callback(downloaded_bytes, total_size)

            token.raise_if_cancelled()

            elapsed_time = time.time() - start_time
            logger.info(f"Download complete: {downloaded_bytes / 1024:.2f}KB in {elapsed_time:.2f}s")

            if file_name is None:
                file_name = guess_file_name(
                    response.headers.get('Content-Disposition'),
                    response.url,
                    url,
                )

            if not is_valid_file_name(file_name):
                raise ValidationFailure(f"Invalid filename returned by a server: {file_name!r}")

            target_path = destination_dir / file_name
            try:
                os.replace(temp_path, target_path)
            except OSError as e:
                raise IOFailure(f"Cannot rename {temp_path.name} to {file_name}: {e}") from e

            logger.info(f"File saved to: {target_path}")
            return target_path

        except Exception as e:
            # closing the stream from another thread surfaces as an arbitrary read error
            if token.is_cancelled and not isinstance(e, Cancelled):
                raise Cancelled("Download was cancelled") from e
            if isinstance(e, UpdateError):
                raise
            if isinstance(e, (requests.RequestException, Urllib3HTTPError)):
                raise TransportFailure(f"Download failed: {e}") from e
            if isinstance(e, OSError):
                raise IOFailure(f"Download failed: {e}") from e
            raise

        finally:
            if unregister is not None:
                unregister()
            if response is not None:
                response.close()
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as e:
                    logger.warning(f"Failed to clean up temporary file {temp_path}: {e}")

    def close(self):
        """Close the session"""
        self.session.close()

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()
