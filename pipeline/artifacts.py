"""
Turn a SourceDescriptor into inline content providers can consume.

UI/UX sources resolve to image data URLs; contract sources resolve to
source text. Anything that can't be resolved is an admission error.
"""

import base64
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

from errors import ArtifactResolutionError
from models import Domain, SourceDescriptor, SourceKind

GITHUB_TIMEOUT = 30


@dataclass
class ResolvedSource:
    """Inline material for one analysis."""
    images: list[str] = field(default_factory=list)  # data URLs
    text: str = ""

    @property
    def image_count(self) -> int:
        return len(self.images)


class ArtifactStore(ABC):
    """Read side of the external blob store."""

    @abstractmethod
    def read(self, path: str) -> tuple[bytes, str]:
        """Return (bytes, mime_type) for a stored object."""
        pass


class LocalArtifactStore(ArtifactStore):
    """Blob store backed by a local directory (uploads written by the front end)."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path).resolve()

    def read(self, path: str) -> tuple[bytes, str]:
        target = (self.base_path / path).resolve()
        if self.base_path not in target.parents:
            raise ArtifactResolutionError(f"Path escapes artifact store: {path}")
        if not target.is_file():
            raise ArtifactResolutionError(f"Artifact not found: {path}")
        mime, _ = mimetypes.guess_type(target.name)
        return target.read_bytes(), mime or "application/octet-stream"


def github_raw_url(url: str) -> str:
    """
    Map a GitHub file URL to its raw.githubusercontent.com form.

    Accepts github.com/<owner>/<repo>/blob/<ref>/<path> or a raw URL.
    Repository roots are rejected; only single files can be analyzed.
    """
    parsed = urlparse(url)
    if parsed.hostname == "raw.githubusercontent.com":
        return url
    if parsed.hostname != "github.com":
        raise ArtifactResolutionError(f"Not a GitHub URL: {url}")

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) >= 5 and parts[2] == "blob":
        owner, repo, ref = parts[0], parts[1], parts[3]
        return f"https://raw.githubusercontent.com/{owner}/{repo}/{ref}/{'/'.join(parts[4:])}"

    raise ArtifactResolutionError(
        "Please provide a URL to a specific file "
        "(e.g., https://github.com/owner/repo/blob/main/contracts/Token.sol)"
    )


def fetch_github_file(url: str, session: Optional[requests.Session] = None,
                      timeout: int = GITHUB_TIMEOUT) -> str:
    """Download one file from GitHub as text."""
    raw_url = github_raw_url(url)
    getter = session or requests
    try:
        r = getter.get(raw_url, timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as e:
        raise ArtifactResolutionError(f"Failed to fetch {raw_url}: {e}") from e

    print(f"[artifacts] Fetched {len(r.text)} chars from {raw_url}")
    return r.text


def to_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class ArtifactResolver:
    """Resolves descriptors against a store and GitHub."""

    def __init__(self, store: Optional[ArtifactStore] = None,
                 session: Optional[requests.Session] = None):
        self.store = store
        self.session = session

    def resolve(self, domain: Domain, source: SourceDescriptor) -> ResolvedSource:
        if source.is_empty:
            raise ArtifactResolutionError("No content to analyze")

        domain = Domain(domain)
        if domain == Domain.UI_UX:
            return ResolvedSource(images=self._images(source))
        return ResolvedSource(text=self._text(source))

    def _read(self, path: str) -> tuple[bytes, str]:
        if self.store is None:
            raise ArtifactResolutionError("No artifact store configured for storage sources")
        try:
            return self.store.read(path)
        except OSError as e:
            raise ArtifactResolutionError(f"Failed to read {path}: {e}") from e

    def _images(self, source: SourceDescriptor) -> list[str]:
        if source.kind == SourceKind.INLINE:
            images = [c.strip() for c in source.content if c.strip()]
            for i, image in enumerate(images):
                if not image.startswith("data:"):
                    raise ArtifactResolutionError(f"Image {i + 1} is not a data URL")
            return images

        if source.kind == SourceKind.STORAGE:
            images = []
            for path in source.paths:
                data, mime = self._read(path)
                images.append(to_data_url(data, mime if mime.startswith("image/") else "image/png"))
            return images

        raise ArtifactResolutionError("UI/UX analysis needs images, not a GitHub URL")

    def _text(self, source: SourceDescriptor) -> str:
        if source.kind == SourceKind.INLINE:
            return "\n\n".join(c for c in source.content if c.strip())

        if source.kind == SourceKind.STORAGE:
            chunks = []
            for path in source.paths:
                data, _ = self._read(path)
                try:
                    chunks.append(data.decode("utf-8"))
                except UnicodeDecodeError as e:
                    raise ArtifactResolutionError(f"{path} is not UTF-8 text") from e
            return "\n\n".join(chunks)

        return fetch_github_file(source.url, session=self.session)
