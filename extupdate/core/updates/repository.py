"""Download URLs for extensions published in a repository"""

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from extupdate.core.updates.models import BuildNumber


def resolve_host_url(host: str, extension_url: str) -> str:
    """Return extension_url as is if absolute, else joined to the repository host"""
    if urlparse(extension_url).scheme:
        return extension_url
    return urljoin(host, extension_url)


def repository_download_url(
    download_url: str,
    extension_id: str,
    build: Optional[BuildNumber],
    installation_uid: str,
    api_build: Optional[str] = None
) -> str:
    """
    Build the repository endpoint URL for an extension download

    Adds ``action=download``, ``id``, ``build`` and ``uuid`` query parameters,
    keeping any parameters already present on download_url.

    Args:
        download_url: Repository download endpoint
        extension_id: Extension to download
        build: Host build the download must be compatible with
        installation_uid: Identifier of this installation
        api_build: Fallback build string when build is None
    """
    parsed = urlparse(download_url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    params.append(("action", "download"))
    params.append(("id", extension_id))
    build_string = build.as_string() if build is not None else api_build
    if build_string:
        params.append(("build", build_string))
    params.append(("uuid", installation_uid))
    return urlunparse(parsed._replace(query=urlencode(params)))
