"""
Batch Rectification Script

Rectifies one or more photographs of marker-framed objects and writes the
flattened results next to each other in an output directory.

Usage:
    # Single image with default settings (600x300, zoom 1.2)
    python scripts/rectify_images.py photos/card.jpg

    # Whole directory, custom size and zoom
    python scripts/rectify_images.py photos/ --width 800 --height 500 --zoom 1.5

    # Custom configuration file, verbose logging
    python scripts/rectify_images.py photos/ --config my_config.yaml --verbose
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.common.exceptions import ImageLoadError  # noqa: E402
from src.rectification.processor import RectificationProcessor  # noqa: E402
from src.rectification.types import OutputSpec  # noqa: E402
from src.utils.io import list_image_files, load_image, save_image  # noqa: E402

logger = logging.getLogger("rectify_images")


def collect_inputs(inputs: List[Path]) -> List[Path]:
    """Expand directories into their image files, keeping order."""
    files: List[Path] = []
    for path in inputs:
        if path.is_dir():
            files.extend(list_image_files(path))
        else:
            files.append(path)
    return files


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rectify photographs framed by four fiducial markers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/rectify_images.py photos/card.jpg
  python scripts/rectify_images.py photos/ --width 800 --height 500 --zoom 1.5
        """,
    )
    parser.add_argument(
        "inputs", nargs="+", type=Path, help="Image files or directories of images"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("rectified"),
        help="Directory for rectified images (default: ./rectified)",
    )
    parser.add_argument("--width", type=int, default=None, help="Output width in px")
    parser.add_argument("--height", type=int, default=None, help="Output height in px")
    parser.add_argument(
        "--zoom", type=float, default=None, help="Margin factor, >= 1.0"
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="Path to a config YAML file"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    processor = RectificationProcessor(config_path=args.config)
    default_spec = processor.default_output_spec
    try:
        spec = OutputSpec(
            width=args.width if args.width is not None else default_spec.width,
            height=args.height if args.height is not None else default_spec.height,
            zoom=args.zoom if args.zoom is not None else default_spec.zoom,
        )
    except ValueError as e:
        logger.error(f"Invalid output settings: {e}")
        return 2

    files = collect_inputs(args.inputs)
    if not files:
        logger.error("No input images found")
        return 2

    failures = 0
    for path in files:
        try:
            image = load_image(path)
        except ImageLoadError as e:
            logger.error(str(e))
            failures += 1
            continue

        result = processor.process(image, spec)
        if not result.is_success():
            logger.error(f"{path.name}: {result.get_error_message()}")
            failures += 1
            continue

        try:
            out_path = save_image(
                result.image, args.output_dir / f"{path.stem}_rectified.png"
            )
        except OSError as e:
            logger.error(f"{path.name}: could not write output: {e}")
            failures += 1
            continue
        logger.info(f"{path.name} -> {out_path}")

    logger.info(f"Done: {len(files) - failures}/{len(files)} image(s) rectified")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
