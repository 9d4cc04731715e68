"""
Error kinds raised by the rectification pipeline.

All of them are recoverable at the caller level: the caller shows the
message and lets the user retry with a different file, lighting or zoom.
"""

from pathlib import Path
from typing import Iterable, Union

from src.utils.constants import EXPECTED_MARKER_COUNT, EXPECTED_MARKER_IDS


class RectificationError(Exception):
    """Base class for every failure the pipeline reports."""


class ImageLoadError(RectificationError):
    """The image-decoding collaborator could not produce a pixel buffer."""

    def __init__(self, source: Union[str, Path], reason: str):
        self.source = str(source)
        self.reason = reason
        super().__init__(f"Could not load image '{self.source}': {reason}")


class MarkerCountError(RectificationError):
    """The detector returned a marker count other than exactly four."""

    def __init__(self, found: int):
        self.found = found
        super().__init__(
            f"{found} markers found instead of {EXPECTED_MARKER_COUNT}.\n"
            "The image may be too blurred (i.e. not enough contrast at markers "
            "positions) or there may be stray reflections on the markers "
            "(markers not black and white). Also check that markers "
            f"{min(EXPECTED_MARKER_IDS)} to {max(EXPECTED_MARKER_IDS)} "
            "are present on the picture."
        )


class MarkerIdentityError(RectificationError):
    """Four markers were found but their IDs are not exactly {0, 1, 2, 3}."""

    def __init__(self, found_ids: Iterable[int]):
        self.found_ids = sorted(int(i) for i in found_ids)
        expected = set(EXPECTED_MARKER_IDS)
        self.missing_ids = sorted(expected - set(self.found_ids))
        self.duplicate_ids = sorted(
            {i for i in self.found_ids if self.found_ids.count(i) > 1}
        )
        self.unexpected_ids = sorted(set(self.found_ids) - expected)

        details = []
        if self.missing_ids:
            details.append(f"missing {self.missing_ids}")
        if self.duplicate_ids:
            details.append(f"duplicated {self.duplicate_ids}")
        if self.unexpected_ids:
            details.append(f"unexpected {self.unexpected_ids}")

        super().__init__(
            f"4 markers found but their IDs {self.found_ids} are not "
            f"{sorted(expected)} ({', '.join(details)})."
        )


class DegenerateGeometryError(RectificationError):
    """The marker quadrilateral cannot produce an invertible homography."""


class NoImageLoadedError(RectificationError):
    """Rectification was requested before any source image was loaded."""

    def __init__(self, message: str = ""):
        super().__init__(
            message
            or "No image was previously loaded. Load an image before processing."
        )
