"""Raster PDF export of a storyboard table.

The table is drawn into one tall bitmap at 2x resolution, then sliced into
A4-height bands, one band per PDF page. Pages are images, not selectable text.
"""

from __future__ import annotations

import io
import logging
import math
import os
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .errors import ExportError
from .models import ImageAsset, Storyboard

logger = logging.getLogger(__name__)

A4_WIDTH_MM = 210.0
A4_HEIGHT_MM = 297.0

BASE_WIDTH = 1000
COLUMNS = (
    ("#", 0.06),
    ("화면 내용 (Visual)", 0.32),
    ("소스 파일 (Source)", 0.14),
    ("자막 (Subtitle)", 0.24),
    ("내레이션 (Audio)", 0.24),
)

_FONT_CANDIDATES = (
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/nanum/NanumGothic.ttf",
    "/System/Library/Fonts/AppleSDGothicNeo.ttc",
    "C:/Windows/Fonts/malgun.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
)

_TEXT = (30, 41, 59)
_MUTED = (100, 116, 139)
_RULE = (226, 232, 240)
_HEADER_BG = (248, 250, 252)


def _load_font(size: int) -> ImageFont.ImageFont:
    override = os.getenv("STORYBOARD_FONT_PATH")
    candidates = ([override] if override else []) + list(_FONT_CANDIDATES)
    for candidate in candidates:
        if not Path(candidate).exists():
            continue
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            logger.debug("Font %s could not be loaded", candidate)
    return ImageFont.load_default(size=size)


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> List[str]:
    """Word wrap by measured width; words wider than a line are split by character."""
    lines: List[str] = []
    for paragraph in (text or "").replace("\r", "").split("\n"):
        current = ""
        for word in paragraph.split(" "):
            trial = f"{current} {word}" if current else word
            if draw.textlength(trial, font=font) <= max_width:
                current = trial
                continue
            if current:
                lines.append(current)
                current = ""
            while word and draw.textlength(word, font=font) > max_width:
                cut = len(word)
                while cut > 1 and draw.textlength(word[:cut], font=font) > max_width:
                    cut -= 1
                lines.append(word[:cut])
                word = word[cut:]
            current = word
        lines.append(current)
    return lines or [""]


def _line_height(font) -> int:
    _, _, _, bottom = font.getbbox("Ag가")
    return int(bottom) + 6


def render_storyboard(
    storyboard: Storyboard,
    images: Mapping[int, Optional[ImageAsset]],
    scale: int = 2,
) -> Image.Image:
    """Rasterize the storyboard table (title, synopsis, rows, sketches)."""
    width = BASE_WIDTH * scale
    pad = 24 * scale
    cell_pad = 10 * scale
    inner = width - 2 * pad

    title_font = _load_font(26 * scale)
    body_font = _load_font(13 * scale)
    header_font = _load_font(12 * scale)

    scratch = ImageDraw.Draw(Image.new("RGB", (1, 1)))
    col_widths = [int(inner * fraction) for _, fraction in COLUMNS]
    col_widths[-1] = inner - sum(col_widths[:-1])

    title_lines = _wrap(scratch, storyboard.title, title_font, inner)
    synopsis_lines = _wrap(scratch, storyboard.synopsis, body_font, inner)
    body_lh = _line_height(body_font)
    header_h = _line_height(header_font) + 2 * cell_pad

    sketch_w = col_widths[1] - 2 * cell_pad
    sketch_h = int(sketch_w * 9 / 16)

    rows = []
    for index, cut in enumerate(storyboard.cuts):
        cells = [
            [str(cut.cut_number)],
            _wrap(scratch, cut.visual_description, body_font, col_widths[1] - 2 * cell_pad),
            _wrap(scratch, cut.source_file_name, body_font, col_widths[2] - 2 * cell_pad),
            _wrap(scratch, cut.subtitles, body_font, col_widths[3] - 2 * cell_pad),
            _wrap(scratch, f"\"{cut.narration}\"", body_font, col_widths[4] - 2 * cell_pad),
        ]
        heights = [len(lines) * body_lh for lines in cells]
        heights[1] += cell_pad + sketch_h
        rows.append((index, cells, max(heights) + 2 * cell_pad))

    height = (
        pad
        + len(title_lines) * _line_height(title_font)
        + cell_pad
        + len(synopsis_lines) * body_lh
        + pad
        + header_h
        + sum(row_h for _, _, row_h in rows)
        + pad
    )

    canvas_img = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(canvas_img)

    y = pad
    for line in title_lines:
        draw.text((pad, y), line, font=title_font, fill=_TEXT)
        y += _line_height(title_font)
    y += cell_pad
    for line in synopsis_lines:
        draw.text((pad, y), line, font=body_font, fill=_MUTED)
        y += body_lh
    y += pad

    draw.rectangle([pad, y, pad + inner, y + header_h], fill=_HEADER_BG, outline=_RULE, width=scale)
    x = pad
    for (label, _), col_w in zip(COLUMNS, col_widths):
        draw.text((x + cell_pad, y + cell_pad), label, font=header_font, fill=_MUTED)
        x += col_w
    y += header_h

    for index, cells, row_h in rows:
        draw.line([pad, y + row_h, pad + inner, y + row_h], fill=_RULE, width=scale)
        x = pad
        for col, (lines, col_w) in enumerate(zip(cells, col_widths)):
            ty = y + cell_pad
            for line in lines:
                draw.text((x + cell_pad, ty), line, font=body_font, fill=_TEXT)
                ty += body_lh
            if col == 1:
                _paste_sketch(canvas_img, draw, images.get(index), x + cell_pad, ty + cell_pad, sketch_w, sketch_h, body_font)
            x += col_w
        y += row_h

    return canvas_img


def _paste_sketch(target: Image.Image, draw, asset, x: int, y: int, w: int, h: int, font) -> None:
    if asset is not None:
        try:
            sketch = Image.open(io.BytesIO(asset.to_bytes())).convert("RGB")
            sketch.thumbnail((w, h))
            target.paste(sketch, (x + (w - sketch.width) // 2, y + (h - sketch.height) // 2))
            return
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable sketch skipped in export: %s", exc)

    draw.rectangle([x, y, x + w, y + h], outline=_RULE, width=2)
    draw.text((x + 12, y + h // 2), "(no sketch)", font=font, fill=_MUTED)


def page_bands(width_px: int, height_px: int) -> List[Tuple[int, int]]:
    """Pixel bands of one A4 page each for a bitmap scaled to A4 width."""
    if width_px <= 0 or height_px <= 0:
        raise ExportError("Cannot paginate an empty image.")
    page_px = A4_HEIGHT_MM * width_px / A4_WIDTH_MM
    content_mm = height_px * A4_WIDTH_MM / width_px
    pages = max(1, math.ceil(content_mm / A4_HEIGHT_MM))
    return [
        (math.floor(i * page_px), min(height_px, math.floor((i + 1) * page_px)))
        for i in range(pages)
    ]


def build_pdf(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    page_w, page_h = A4
    pt_per_px = page_w / image.width

    for top, bottom in page_bands(image.width, image.height):
        band = image.crop((0, top, image.width, bottom))
        band_h = (bottom - top) * pt_per_px
        pdf.drawImage(ImageReader(band), 0, page_h - band_h, width=page_w, height=band_h)
        pdf.showPage()

    pdf.save()
    return buffer.getvalue()


def storyboard_file_name(storyboard: Storyboard, extension: str) -> str:
    """Download name `<title>_storyboard.<extension>` with path separators removed."""
    title = storyboard.title.strip().replace("/", "_").replace("\\", "_") or "storyboard"
    return f"{title}_storyboard.{extension}"


def pdf_file_name(storyboard: Storyboard) -> str:
    return storyboard_file_name(storyboard, "pdf")


def export_storyboard_pdf(
    storyboard: Storyboard,
    images: Mapping[int, Optional[ImageAsset]],
    scale: int = 2,
) -> Tuple[str, bytes]:
    try:
        bitmap = render_storyboard(storyboard, images, scale=scale)
        data = build_pdf(bitmap)
    except ExportError:
        raise
    except Exception as exc:
        raise ExportError(f"PDF export failed: {exc}") from exc
    return pdf_file_name(storyboard), data
