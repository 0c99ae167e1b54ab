"""Asset records and the remote layout of their collections."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class CollectionId(StrEnum):
    """One of the three disjoint asset collections."""

    DESIGN = "design"
    MOTION = "motion"
    SLIDES = "slides"


COLLECTION_ORDER: tuple[CollectionId, ...] = (
    CollectionId.DESIGN,
    CollectionId.MOTION,
    CollectionId.SLIDES,
)


@dataclass(frozen=True)
class CollectionSpec:
    """Where a collection lives remotely and what it is called in the manifest."""

    id: CollectionId
    remote_dir: str
    manifest_name: str

    def remote_path(self, src: str) -> str:
        """Return the store path of an asset in this collection."""
        return remote_path(self, src)


DEFAULT_COLLECTION_SPECS: dict[CollectionId, CollectionSpec] = {
    CollectionId.DESIGN: CollectionSpec(
        CollectionId.DESIGN, "assets/img/portfolio/images/", "PhotoshopFiles"
    ),
    CollectionId.MOTION: CollectionSpec(
        CollectionId.MOTION, "assets/img/portfolio/videos/", "videoFiles"
    ),
    # Slide exports are stored as images next to the design assets.
    CollectionId.SLIDES: CollectionSpec(
        CollectionId.SLIDES, "assets/img/portfolio/images/", "PPTFiles"
    ),
}


@dataclass(frozen=True)
class ManifestEntry:
    """The persisted part of an asset record."""

    src: str
    title: str


Collections = dict[CollectionId, list[ManifestEntry]]


def empty_collections() -> Collections:
    """Return a collections value with all three collections empty."""
    return {collection: [] for collection in COLLECTION_ORDER}


class PendingContent:
    """Binary payload of a not-yet-committed upload.

    Owned by exactly one record until the upload is committed or the record
    is removed; ``release`` drops the bytes.
    """

    __slots__ = ("_data", "content_type")

    def __init__(self, data: bytes, content_type: str | None = None) -> None:
        self._data: bytes | None = data
        self.content_type = content_type

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            msg = "Pending content has already been released"
            raise RuntimeError(msg)
        return self._data

    @property
    def size(self) -> int:
        return 0 if self._data is None else len(self._data)

    def release(self) -> None:
        self._data = None

    def __repr__(self) -> str:
        state = "released" if self._data is None else f"{len(self._data)} bytes"
        return f"PendingContent({state}, content_type={self.content_type!r})"


@dataclass(eq=False)
class AssetRecord:
    """A single asset in a collection. Position in the collection is its order."""

    src: str
    title: str
    pending: PendingContent | None = None

    @property
    def is_pending(self) -> bool:
        return self.pending is not None

    def to_entry(self) -> ManifestEntry:
        return ManifestEntry(src=self.src, title=self.title)

    @classmethod
    def from_entry(cls, entry: ManifestEntry) -> AssetRecord:
        return cls(src=entry.src, title=entry.title)

    def release_pending(self) -> None:
        """Drop the pending payload, if any."""
        if self.pending is not None:
            self.pending.release()
            self.pending = None


def split_extension(filename: str) -> tuple[str, str]:
    """Split ``name.ext`` into ``("name", ".ext")``; the extension may be empty."""
    dot = filename.rfind(".")
    if dot <= 0:
        return filename, ""
    return filename[:dot], filename[dot:]


def extract_title(filename: str) -> str:
    """Derive a display title: drop the extension and capitalize the first character."""
    stem, _ = split_extension(filename)
    if not stem:
        return stem
    return stem[0].upper() + stem[1:]


def remote_path(spec: CollectionSpec, src: str) -> str:
    """Join a collection's remote directory and an asset filename."""
    directory = spec.remote_dir
    if directory and not directory.endswith("/"):
        directory += "/"
    return f"{directory}{src}"
