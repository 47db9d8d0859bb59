"""Rasterizes SVG artwork in the updates directory to the PNG sizes WordPress uses."""

import logging
import shutil
import subprocess
from pathlib import Path

from plugin_release.changelog import get_changed_files
from plugin_release.config import UPDATES_DIR_NAME
from plugin_release.errors import ImageConversionError
from plugin_release.vcs_integration import is_git_work_tree

logger = logging.getLogger(__name__)

ICON_SIZES: tuple[tuple[int, int], ...] = ((128, 128), (256, 256))
BANNER_SIZES: tuple[tuple[int, int], ...] = ((772, 250), (1544, 500))

CONVERTERS = ("inkscape", "convert")


def find_svg_files(updates_dir: Path | str) -> list[str]:
    updates_dir = Path(updates_dir)
    return sorted(
        entry.name
        for entry in updates_dir.iterdir()
        if entry.is_file() and entry.suffix.lower() == ".svg"
    )


def changed_svg_files(workdir: Path | str) -> list[str]:
    """SVG files to convert: git-changed ones, or all of them outside git."""
    updates_dir = Path(workdir) / UPDATES_DIR_NAME
    if is_git_work_tree(workdir):
        names = {
            Path(name).name
            for name in get_changed_files(workdir)
            if name.lower().endswith(".svg")
        }
        return sorted(name for name in names if (updates_dir / name).is_file())
    return find_svg_files(updates_dir)


def sizes_for(filename: str) -> tuple[tuple[int, int], ...]:
    """Output sizes guessed from the file name."""
    name = filename.lower()
    if "logo" in name or "icon" in name:
        return ICON_SIZES
    if "banner" in name:
        return BANNER_SIZES
    return ICON_SIZES + BANNER_SIZES


def find_converter() -> str | None:
    """First available rasterizer on PATH, preferring Inkscape."""
    for tool in CONVERTERS:
        if shutil.which(tool):
            return tool
    return None


def convert_command(tool: str, svg_path: Path, output_path: Path, width: int, height: int) -> list[str]:
    if tool == "inkscape":
        return [
            "inkscape",
            "--export-filename",
            str(output_path),
            "--export-width",
            str(width),
            "--export-height",
            str(height),
            str(svg_path),
        ]
    return [
        "convert",
        "-background",
        "transparent",
        "-resize",
        f"{width}x{height}",
        str(svg_path),
        str(output_path),
    ]


def convert_svg_files(
    updates_dir: Path | str, svg_files: list[str], converter: str | None = None
) -> list[Path]:
    """Convert each SVG to ``<name>-<w>x<h>.png`` next to it.

    Returns:
        Paths of the written PNG files; empty when no converter is installed

    Raises:
        ImageConversionError: If a conversion command fails
    """
    updates_dir = Path(updates_dir)
    tool = converter or find_converter()
    if tool is None:
        logger.warning(
            "Skipping SVG to PNG conversion. Please install ImageMagick (convert) or Inkscape."
        )
        return []

    written = []
    for svg_file in svg_files:
        svg_path = updates_dir / svg_file
        for width, height in sizes_for(svg_file):
            output_path = updates_dir / f"{svg_path.stem}-{width}x{height}.png"
            command = convert_command(tool, svg_path, output_path, width, height)
            try:
                subprocess.run(command, capture_output=True, check=True)
            except (OSError, subprocess.CalledProcessError) as e:
                raise ImageConversionError(
                    f"Failed to convert {svg_path}: {e}", path=str(svg_path)
                ) from e
            logger.info(f"Converted: {svg_path.name} -> {output_path.name}")
            written.append(output_path)
    return written


def process_svg_files(workdir: Path | str) -> list[Path]:
    """Regenerate PNG artwork for changed SVG files in the updates directory."""
    updates_dir = Path(workdir) / UPDATES_DIR_NAME
    if not updates_dir.is_dir():
        return []

    svg_files = changed_svg_files(workdir)
    if not svg_files:
        logger.info("No SVG files to convert")
        return []

    logger.info(f"Found {len(svg_files)} SVG file(s) to convert")
    return convert_svg_files(updates_dir, svg_files)
