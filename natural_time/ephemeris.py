"""Find the SPK kernel the engine runs on, fetching the default one when absent."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import httpx

__all__ = [
    "EphemerisAcquisitionError",
    "resolve_ephemeris_source",
    "fetch_kernel",
    "DEFAULT_EPHEMERIS_URL",
    "DEFAULT_EPHEMERIS_FILENAME",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_EPHEMERIS_URL = (
    "https://naif.jpl.nasa.gov/pub/naif/generic_kernels/spk/planets/de442.bsp"
)
DEFAULT_EPHEMERIS_FILENAME = "de442.bsp"
DEFAULT_CACHE_DIR = Path.home() / ".natural_time" / "kernels"

SPK_MAGIC = b"DAF/SPK"
_CHUNK_BYTES = 1 << 20


class EphemerisAcquisitionError(RuntimeError):
    """Raised when no usable kernel can be found or fetched."""


def _kernel_url() -> str:
    return os.environ.get("DE_BSP_URL") or DEFAULT_EPHEMERIS_URL


def fetch_kernel(url: str, destination: Path) -> None:
    """Stream *url* into *destination*, refusing anything that is not an SPK file.

    The body lands in a ``.part`` sibling first so an interrupted transfer
    never leaves a truncated kernel behind.
    """

    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")
    LOGGER.info(json.dumps({"event": "ephemeris_downloading", "url": url, "path": str(destination)}))

    received = 0
    try:
        with httpx.Client(timeout=httpx.Timeout(120.0, connect=30.0), follow_redirects=True) as client:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                with partial.open("wb") as handle:
                    for chunk in response.iter_bytes(chunk_size=_CHUNK_BYTES):
                        if received == 0 and not chunk.startswith(SPK_MAGIC):
                            raise EphemerisAcquisitionError(f"{url} did not return an SPK kernel")
                        handle.write(chunk)
                        received += len(chunk)
        if received == 0:
            raise EphemerisAcquisitionError(f"{url} returned an empty body")
        partial.replace(destination)
    except (httpx.HTTPError, OSError) as exc:
        raise EphemerisAcquisitionError(f"Failed to download ephemeris from {url}: {exc}") from exc
    finally:
        partial.unlink(missing_ok=True)

    LOGGER.info(json.dumps({"event": "ephemeris_downloaded", "path": str(destination), "bytes": received}))


def _has_kernels(directory: Path) -> bool:
    return any(candidate.is_file() for candidate in directory.glob("*.bsp"))


def _resolve(path: Path) -> Path:
    """Return *path* once it names a kernel file or a directory holding kernels."""

    if path.is_file():
        if path.suffix.lower() != ".bsp":
            raise EphemerisAcquisitionError(f"Ephemeris file must have .bsp extension: {path}")
        return path
    if path.exists() and not path.is_dir():
        raise EphemerisAcquisitionError(f"Ephemeris path is not a file or directory: {path}")

    if path.suffix.lower() == ".bsp":
        fetch_kernel(_kernel_url(), path)
    elif not (path.is_dir() and _has_kernels(path)):
        fetch_kernel(_kernel_url(), path / DEFAULT_EPHEMERIS_FILENAME)
    return path


def resolve_ephemeris_source() -> Path:
    """Kernel file or directory to hand to :func:`natural_time.astro.load_ephemeris`.

    ``DE_BSP`` names a kernel file or directory explicitly. Without it the
    default kernel is kept under ``DE_BSP_CACHE_DIR``. ``DE_BSP_URL``
    overrides where a missing kernel is fetched from.
    """

    override = os.environ.get("DE_BSP")
    if override:
        return _resolve(Path(override).expanduser())

    cache_root = Path(os.environ.get("DE_BSP_CACHE_DIR") or DEFAULT_CACHE_DIR).expanduser()
    return _resolve(cache_root / DEFAULT_EPHEMERIS_FILENAME)
