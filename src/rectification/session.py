"""
Interactive rectification session.

Holds the mutable state a front end needs between user actions: which
image is loaded, the current zoom, and the outcome of the last run. Every
run re-invokes the stateless processor, so nothing here leaks into the
pipeline itself.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from src.common.exceptions import ImageLoadError, NoImageLoadedError
from src.common.types import ImageBuffer
from src.rectification.processor import RectificationProcessor
from src.rectification.types import (
    Failed,
    ImageState,
    Loaded,
    NotLoaded,
    OutputSpec,
    RectificationResult,
)
from src.utils.io import load_image

logger = logging.getLogger(__name__)


class RectificationSession:
    """
    Current source image, output settings and last result for one user.

    Source and output are tagged states (NotLoaded | Loaded | Failed), so a
    caller rendering them has to handle every case explicitly.

    Example:
        >>> session = RectificationSession()
        >>> session.load("card.jpg")
        >>> session.zoom_in()
        >>> result = session.process()
        >>> match session.output:
        ...     case Loaded(image=img): show(img)
        ...     case Failed(error=err): show_error(str(err))
    """

    def __init__(self, processor: Optional[RectificationProcessor] = None):
        self.processor = processor or RectificationProcessor()
        output = self.processor.config.output
        self.zoom_min = output.zoom_min
        self.zoom_max = output.zoom_max
        self.zoom_step = output.zoom_step
        self.output_spec: OutputSpec = output.to_output_spec()

        self.source_path: Optional[Path] = None
        self.source: ImageState = NotLoaded()
        self.output: ImageState = NotLoaded()
        self.last_result: Optional[RectificationResult] = None

    # ------------------------------------------------------------------
    # Source image
    # ------------------------------------------------------------------

    def load(self, path: Union[str, Path]) -> ImageState:
        """
        Load ``path`` as the current source. A failed load is recorded as
        Failed(ImageLoadError) so the user can pick another file.
        """
        self.source_path = Path(path)
        try:
            image = load_image(self.source_path)
        except ImageLoadError as e:
            logger.warning(str(e))
            self.source = Failed(e)
        else:
            self.source = Loaded(image=image, source=str(self.source_path))
            logger.info(f"Loaded {self.source_path} ({image.width}x{image.height})")
        self.output = NotLoaded()
        return self.source

    def reload(self) -> ImageState:
        """Load the last selected path again."""
        if self.source_path is None:
            self.source = Failed(NoImageLoadedError("No image file has been selected."))
            return self.source
        return self.load(self.source_path)

    def set_image(self, image: ImageBuffer, source: str = "<memory>") -> ImageState:
        """Use an already decoded image as the source."""
        self.source_path = None
        self.source = Loaded(image=image, source=source)
        self.output = NotLoaded()
        return self.source

    # ------------------------------------------------------------------
    # Output settings
    # ------------------------------------------------------------------

    @property
    def zoom(self) -> float:
        return self.output_spec.zoom

    def set_zoom(self, zoom: float) -> float:
        """Set zoom, clamped to [zoom_min, zoom_max]."""
        clamped = round(min(self.zoom_max, max(self.zoom_min, zoom)), 6)
        self.output_spec = self.output_spec.with_zoom(clamped)
        return clamped

    def zoom_in(self) -> float:
        return self.set_zoom(self.zoom + self.zoom_step)

    def zoom_out(self) -> float:
        return self.set_zoom(self.zoom - self.zoom_step)

    def set_output_size(self, width: int, height: int) -> OutputSpec:
        self.output_spec = OutputSpec(width=width, height=height, zoom=self.zoom)
        return self.output_spec

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(self) -> RectificationResult:
        """Run the pipeline on the current source with the current settings."""
        image = self.source.image if isinstance(self.source, Loaded) else None
        result = self.processor.process(image, self.output_spec)
        self.last_result = result

        if result.is_success():
            self.output = Loaded(image=result.image, source=self._source_label())
        else:
            self.output = Failed(result.error)
        return result

    def _source_label(self) -> str:
        return self.source.source if isinstance(self.source, Loaded) else ""
