"""
Archive acquisition: fetch a URI and unpack it into a directory.

The extraction behaviour is chosen from the suffix of the URI path, so
'https://dl.google.com/go/go1.22.5.windows-amd64.zip' is unpacked as a zip
and '.../go1.22.5.src.tar.gz' as a gzip-compressed tarball. Official Go
archives wrap their content in a top-level 'go/' directory; that directory
is stripped so that the archive content lands directly in the destination.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Callable, Optional, Union
from urllib.parse import unquote, urlparse

from gotoolchain.core.download import DownloadProgress, download_file
from gotoolchain.core.filesystem import (
    UnsupportedArchiveFormat,
    archive_suffix,
    extract_archive,
    install_tree,
    normalize_root_directory,
    temporary_directory,
)

logger = logging.getLogger(__name__)


def archive_name_from_uri(source_uri: str) -> str:
    """
    Return the file name part of a download URI.

    Example:
        >>> archive_name_from_uri("https://dl.google.com/go/go1.22.5.src.tar.gz?x=1")
        'go1.22.5.src.tar.gz'
    """
    path = unquote(urlparse(source_uri).path)
    return PurePosixPath(path).name


def download(
    source_uri: str,
    destination: Union[str, Path],
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: int = 60,
) -> None:
    """
    Download an archive and extract its content into destination.

    Args:
        source_uri: HTTP(S) URI of a .tar.gz/.tgz/.tar.xz/.tar.bz2/.zip archive
        destination: Directory receiving the archive content
        progress_callback: Optional download progress callback
        timeout: Network timeout in seconds

    Raises:
        UnsupportedArchiveFormat: If the URI does not name a supported archive
        DownloadError: If the transfer fails
        ArchiveExtractionError: If the archive cannot be unpacked
        FilesystemError: If the content cannot be installed into destination
    """
    destination = Path(destination)
    archive_name = archive_name_from_uri(source_uri)
    if archive_suffix(archive_name) is None:
        raise UnsupportedArchiveFormat(
            f"Cannot determine archive format of {source_uri}"
        )

    with temporary_directory(prefix="gotoolchain_download_") as work_dir:
        archive_path = work_dir / archive_name
        download_file(
            source_uri,
            archive_path,
            progress_callback=progress_callback,
            timeout=timeout,
        )

        extract_dir = work_dir / "extract"
        logger.debug(f"Extracting {archive_path.name} to {extract_dir}")
        extract_archive(archive_path, extract_dir)

        root = normalize_root_directory(extract_dir)
        logger.debug(f"Installing extracted content of {archive_name} into {destination}")
        install_tree(root, destination)


__all__ = ["archive_name_from_uri", "download"]
