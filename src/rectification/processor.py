"""
Main processor for the Rectification module.

Orchestrates the complete pipeline:
1. Pre-resize to the working resolution
2. Marker detection
3. Corner resolution (marker IDs -> TL, TR, BR, BL)
4. Perspective rectification and crop

Implements fail-fast strategy: stops at the first failure and reports it
as a typed error inside the result.
"""

import logging
from pathlib import Path
from typing import Optional

from src.common.exceptions import NoImageLoadedError, RectificationError
from src.common.types import ImageBuffer
from src.rectification.config_loader import (
    RectificationConfig,
    get_default_config,
    get_interpolation_flag,
    load_config,
)
from src.rectification.corner_resolver import resolve
from src.rectification.marker_detector import ArucoMarkerDetector, MarkerDetector
from src.rectification.rectifier import rectify_with_homography
from src.rectification.resizer import compute_scale_factor, resize_if_larger
from src.rectification.types import (
    OutputSpec,
    RectificationResult,
    RectificationStatus,
)

logger = logging.getLogger(__name__)


class RectificationProcessor:
    """
    Main processor turning a photographed, marker-framed object into a
    flat rectangular image.

    The processor holds only read-only configuration and a detector, so one
    instance can serve any number of images, sequentially or from several
    threads.

    Example:
        >>> processor = RectificationProcessor()
        >>> image = load_image("card.jpg")
        >>> result = processor.process(image, OutputSpec(width=600, height=300, zoom=1.2))
        >>> if result.is_success():
        ...     save_image(result.image, "card_rectified.png")
        ... else:
        ...     print(result.get_error_message())
    """

    def __init__(
        self,
        config: Optional[RectificationConfig] = None,
        config_path: Optional[Path] = None,
        detector: Optional[MarkerDetector] = None,
    ):
        """
        Initialize the rectification processor.

        Args:
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses the bundled default.
            detector: Marker detector to use. If None, an ArUco detector is
                built from the detection section of the config.
        """
        if config is not None:
            self.config = config
            logger.info("Using provided configuration")
        else:
            self.config = load_config(config_path) if config_path else get_default_config()
            logger.info("Loaded configuration from file")

        if detector is not None:
            self.detector = detector
        else:
            self.detector = ArucoMarkerDetector(
                dictionary=self.config.detection.dictionary,
                parameters=self.config.detection.parameters,
            )

    @property
    def default_output_spec(self) -> OutputSpec:
        return self.config.output.to_output_spec()

    def process(
        self,
        image: Optional[ImageBuffer],
        output_spec: Optional[OutputSpec] = None,
    ) -> RectificationResult:
        """
        Execute the complete rectification pipeline.

        Args:
            image: Loaded source image (RGB). None means nothing is loaded.
            output_spec: Requested output frame. Defaults to the config's
                output section.

        Returns:
            RectificationResult holding either the rectified image or the
            typed error that stopped the pipeline, plus diagnostics.
        """
        spec = output_spec or self.default_output_spec
        result = RectificationResult(
            status=RectificationStatus.FAILED,
            image=None,
            error=None,
            output_spec=spec,
        )

        try:
            self._run(image, spec, result)
        except RectificationError as e:
            logger.warning(f"Pipeline FAILED: {type(e).__name__}: {e}")
            result.error = e
            return result

        result.status = RectificationStatus.SUCCESS
        logger.info("Pipeline SUCCEEDED")
        return result

    def _run(
        self,
        image: Optional[ImageBuffer],
        spec: OutputSpec,
        result: RectificationResult,
    ) -> None:
        """Run every stage, recording diagnostics into ``result`` as it goes."""
        if image is None:
            raise NoImageLoadedError()

        # Stage 1: Pre-resize
        logger.info("[Stage 1/4] Resize to working resolution")
        max_size = (
            self.config.resize.max_width or spec.width,
            self.config.resize.max_height or spec.height,
        )
        result.scale = compute_scale_factor(image.size, max_size)
        working = resize_if_larger(
            image,
            max_size,
            interpolation=get_interpolation_flag(self.config.resize.interpolation),
        )
        result.working_size = working.size

        # Stage 2: Marker Detection
        logger.info("[Stage 2/4] Marker Detection")
        markers, diagnostics = self.detector.detect(working)
        result.marker_ids = tuple(m.id for m in markers)
        logger.debug(f"Detection diagnostics: {diagnostics}")

        # Stage 3: Corner Resolution
        logger.info("[Stage 3/4] Corner Resolution")
        quad = resolve(markers, reference_point=self.config.geometry.reference_point)
        result.quad = quad

        # Stage 4: Perspective Rectification
        logger.info("[Stage 4/4] Perspective Rectification")
        geometry = self.config.geometry
        rectified, homography = rectify_with_homography(
            working,
            quad,
            spec,
            margin_anchor=geometry.margin_anchor,
            interpolation=get_interpolation_flag(geometry.warp_interpolation),
            border_value=geometry.border_value,
            min_area=geometry.min_quad_area,
        )
        result.homography = homography
        result.image = rectified

    def rectify_image(
        self,
        image: Optional[ImageBuffer],
        output_spec: Optional[OutputSpec] = None,
    ) -> ImageBuffer:
        """
        Like process(), but return the image directly.

        Raises:
            RectificationError: The typed failure that stopped the pipeline.
        """
        return self.process(image, output_spec).raise_for_error()


def process_rectification(
    image: Optional[ImageBuffer],
    output_spec: Optional[OutputSpec] = None,
    config: Optional[RectificationConfig] = None,
    detector: Optional[MarkerDetector] = None,
) -> RectificationResult:
    """
    Convenience function for one-shot rectification.

    Example:
        >>> result = process_rectification(load_image("card.jpg"))
        >>> if result.is_success():
        ...     print(result.image.size)
        (600, 300)
    """
    processor = RectificationProcessor(config=config, detector=detector)
    return processor.process(image, output_spec)
