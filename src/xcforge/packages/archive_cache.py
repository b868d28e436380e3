"""Source archive cache.

Release tarballs are downloaded once into build/downloads/ and reused by
later builds. An archive that fails its checksum, cannot be unpacked, or
unpacks to the wrong top-level directory is evicted from the cache, so the
next build downloads a fresh copy instead of failing the same way.
"""

import hashlib
import logging
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm

TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")


class ArchiveError(Exception):
    """Base class for source archive failures."""

    pass


class DownloadError(ArchiveError):
    """Raised when an archive cannot be fetched."""

    pass


class ChecksumError(ArchiveError):
    """Raised when an archive does not match its pinned SHA256."""

    pass


class ExtractionError(ArchiveError):
    """Raised when an archive cannot be unpacked into a source tree."""

    pass


class ArchiveCache:
    """Downloads, verifies and unpacks source archives.

    Example usage:
        cache = ArchiveCache(layout.downloads_dir)
        source_dir = cache.unpack(url, "protobuf-3.21.12", layout.source_dir(spec))
    """

    def __init__(
        self,
        cache_dir: Path,
        show_progress: bool = True,
        timeout: int = 30,
        chunk_size: int = 8192,
    ):
        """Initialize archive cache.

        Args:
            cache_dir: Directory holding downloaded archives
            show_progress: Whether to show download progress bars
            timeout: Connection timeout in seconds
            chunk_size: Size of chunks for downloading and hashing
        """
        self.cache_dir = Path(cache_dir)
        self.show_progress = show_progress
        self.timeout = timeout
        self.chunk_size = chunk_size

    def path_for(self, url: str) -> Path:
        """Cache location of the archive behind a URL."""
        return self.cache_dir / Path(urlparse(url).path).name

    def fetch(self, url: str, checksum: Optional[str] = None) -> Path:
        """Return the cached archive for url, downloading it if absent.

        Raises:
            DownloadError: If the download fails
            ChecksumError: If the archive does not match checksum; a cached
                copy is evicted first
        """
        archive = self.path_for(url)
        if not archive.exists():
            return self.download(url, checksum)

        logging.info(f"Using cached {archive.name}")
        if checksum:
            try:
                self.verify_checksum(archive, checksum)
            except ChecksumError as e:
                self.evict(archive)
                raise ChecksumError(f"{e}\nRemoved cached {archive.name}") from e
        return archive

    def download(self, url: str, checksum: Optional[str] = None) -> Path:
        """Download url into the cache.

        The archive is streamed to a .part file and only moved into place
        once complete and verified.
        """
        archive = self.path_for(url)
        archive.parent.mkdir(parents=True, exist_ok=True)
        partial = archive.with_name(archive.name + ".part")
        sha256 = hashlib.sha256()

        logging.info(f"Downloading {url}")
        try:
            with requests.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                total = int(response.headers.get("content-length", 0)) or None
                with open(partial, "wb") as f, tqdm(
                    total=total,
                    unit="B",
                    unit_scale=True,
                    unit_divisor=1024,
                    desc=f"Downloading {archive.name}",
                    disable=not self.show_progress,
                ) as progress:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            f.write(chunk)
                            sha256.update(chunk)
                            progress.update(len(chunk))
        except requests.RequestException as e:
            partial.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download {url}: {e}") from e
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        if checksum:
            try:
                _compare_digest(url, sha256.hexdigest(), checksum)
            except ChecksumError:
                partial.unlink()
                raise

        partial.replace(archive)
        return archive

    def verify_checksum(self, archive: Path, expected: str) -> bool:
        """Verify the SHA256 of an archive on disk.

        Raises:
            ChecksumError: If the checksum doesn't match
        """
        sha256 = hashlib.sha256()
        with open(archive, "rb") as f:
            for chunk in iter(lambda: f.read(self.chunk_size), b""):
                sha256.update(chunk)
        _compare_digest(str(archive), sha256.hexdigest(), expected)
        return True

    def unpack(
        self,
        url: str,
        archive_root: str,
        dest: Path,
        checksum: Optional[str] = None,
    ) -> Path:
        """Fetch url and install the archive's top-level directory at dest.

        The archive is extracted into a temporary directory next to dest, so
        dest only appears once the whole tree is in place.

        Args:
            url: Archive URL
            archive_root: Directory name the archive must extract to
            dest: Final source tree location
            checksum: Optional SHA256 of the archive

        Returns:
            dest

        Raises:
            ArchiveError: On download, checksum or extraction failure
        """
        archive = self.fetch(url, checksum)
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)

        try:
            with tempfile.TemporaryDirectory(dir=dest.parent) as temp_dir:
                temp_path = Path(temp_dir)
                self._extract(archive, temp_path)

                extracted = temp_path / archive_root
                if not extracted.is_dir():
                    found = sorted(p.name for p in temp_path.iterdir())
                    raise ExtractionError(
                        f"Archive {archive.name} did not extract to '{archive_root}' "
                        + f"(found: {', '.join(found) or 'nothing'})"
                    )
                shutil.move(str(extracted), str(dest))
        except ExtractionError as e:
            self.evict(archive)
            raise ExtractionError(f"{e}\nRemoved cached {archive.name}") from e

        return dest

    def evict(self, archive: Path) -> None:
        """Delete an unusable archive from the cache."""
        if archive.exists():
            logging.warning(f"Removing unusable cached archive {archive.name}")
            archive.unlink()

    def _extract(self, archive: Path, dest_dir: Path) -> None:
        if not archive.name.endswith(TAR_SUFFIXES):
            raise ExtractionError(f"Unsupported archive format: {archive.name}")

        logging.info(f"Extracting {archive.name}...")
        try:
            with tarfile.open(archive, "r:*") as tar:
                # Extraction filters exist from Python 3.10.12 and 3.11.4
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(dest_dir, filter="data")
                else:
                    _check_members(tar, dest_dir)
                    tar.extractall(dest_dir)
        except (tarfile.TarError, OSError, EOFError) as e:
            raise ExtractionError(f"Failed to extract {archive.name}: {e}") from e


def _compare_digest(name: str, actual: str, expected: str) -> None:
    if actual.lower() != expected.lower():
        raise ChecksumError(
            f"Checksum mismatch for {name}\n"
            + f"Expected: {expected}\n"
            + f"Got: {actual}"
        )


def _check_members(tar: tarfile.TarFile, dest_dir: Path) -> None:
    root = dest_dir.resolve()
    for member in tar.getmembers():
        target = (root / member.name).resolve()
        if not target.is_relative_to(root) or (member.issym() and Path(member.linkname).is_absolute()):
            raise ExtractionError(f"Archive member escapes destination: {member.name}")
