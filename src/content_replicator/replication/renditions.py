"""
Производные представления вложений (миниатюры) на стороне target.

После записи файла метаданные пересобираются заново: то, что пришло с source,
описывает файлы source и на target не годится.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from PIL import Image, UnidentifiedImageError

from content_replicator.common.logging import get_project_logger

log = get_project_logger()


def parse_sizes(raw: str) -> dict[str, tuple[int, int]]:
    """
    "thumbnail:150x150,medium:300x300" -> {"thumbnail": (150, 150), ...}
    """
    sizes: dict[str, tuple[int, int]] = {}
    for item in (raw or "").split(","):
        item = item.strip()
        if not item or ":" not in item:
            continue
        name, dims = item.split(":", 1)
        try:
            w, h = (int(v) for v in dims.lower().split("x", 1))
        except ValueError:
            continue
        if w > 0 and h > 0:
            sizes[name.strip()] = (w, h)
    return sizes


def _rendition_name(path: Path, width: int, height: int) -> str:
    return f"{path.stem}-{width}x{height}{path.suffix}"


def regenerate_renditions(
    path: Path,
    *,
    storage_key: str,
    mime_type: str,
    sizes: dict[str, tuple[int, int]],
) -> dict[str, Any]:
    meta: dict[str, Any] = {"file": storage_key, "filesize": path.stat().st_size}
    if not (mime_type or "").lower().startswith("image/"):
        return meta

    try:
        with Image.open(path) as img:
            img.load()
            meta["width"], meta["height"] = img.size
            fmt = img.format
            rendered: dict[str, Any] = {}
            for name, (max_w, max_h) in sizes.items():
                if img.width <= max_w and img.height <= max_h:
                    continue
                thumb = img.copy()
                thumb.thumbnail((max_w, max_h))
                if fmt == "JPEG" and thumb.mode not in ("RGB", "L"):
                    thumb = thumb.convert("RGB")
                out_name = _rendition_name(path, thumb.width, thumb.height)
                thumb.save(path.with_name(out_name), format=fmt)
                rendered[name] = {
                    "file": out_name,
                    "width": thumb.width,
                    "height": thumb.height,
                    "mime_type": mime_type,
                }
            meta["sizes"] = rendered
    except (UnidentifiedImageError, OSError) as e:
        log.warning(
            "rendition_generation_failed",
            extra={"payload": {"storage_key": storage_key, "error": str(e)[:200]}},
        )
    return meta
