"""Raster PDF export tests."""

import base64
import io
import math
import re

import pytest
from PIL import Image

from storyboard_studio.errors import ExportError
from storyboard_studio.export import (
    build_pdf,
    export_storyboard_pdf,
    page_bands,
    pdf_file_name,
    render_storyboard,
    storyboard_file_name,
)
from storyboard_studio.models import ImageAsset, Storyboard


def _storyboard(title: str = "서울 탐방", cuts: int = 2) -> Storyboard:
    return Storyboard.model_validate(
        {
            "title": title,
            "synopsis": "초등학생이 서울의 궁궐을 탐험한다.",
            "cuts": [
                {
                    "cutNumber": n,
                    "visualDescription": "Wide shot of the palace gate, children in yellow hoodies " * 3,
                    "sourceFileName": f"seoul_cut{n:02d}.mp4",
                    "subtitles": f"자막 {n}",
                    "narration": f"내레이션 {n} (SFX: 발소리)",
                    "imagePrompt": "palace gate",
                }
                for n in range(1, cuts + 1)
            ],
        }
    )


def _png_asset() -> ImageAsset:
    buffer = io.BytesIO()
    Image.new("RGB", (64, 36), "gray").save(buffer, format="PNG")
    return ImageAsset(data=base64.b64encode(buffer.getvalue()).decode("ascii"))


def _page_count(pdf: bytes) -> int:
    return len(re.findall(rb"/Type /Page\b", pdf))


@pytest.mark.parametrize("width, height", [(420, 1500), (210, 297), (210, 298), (2000, 9000), (1000, 100)])
def test_page_count_is_ceil_of_content_height_over_a4(width, height):
    content_mm = height * 210 / width

    bands = page_bands(width, height)

    assert len(bands) == max(1, math.ceil(content_mm / 297))
    assert bands[0][0] == 0
    assert bands[-1][1] == height
    for (_, bottom), (top, _) in zip(bands, bands[1:]):
        assert bottom == top


def test_page_bands_rejects_empty_images():
    with pytest.raises(ExportError):
        page_bands(0, 100)


def test_build_pdf_emits_one_page_per_band():
    image = Image.new("RGB", (420, 1500), "white")

    pdf = build_pdf(image)

    assert pdf.startswith(b"%PDF")
    assert _page_count(pdf) == 3


def test_render_storyboard_uses_double_scale_and_grows_with_cuts():
    short = render_storyboard(_storyboard(cuts=1), {0: _png_asset()})
    tall = render_storyboard(_storyboard(cuts=6), {})

    assert short.width == 2000
    assert tall.width == 2000
    assert tall.height > short.height


def test_export_storyboard_pdf_names_file_after_title():
    file_name, data = export_storyboard_pdf(_storyboard(cuts=8), {0: _png_asset(), 1: None}, scale=1)

    assert file_name == "서울 탐방_storyboard.pdf"
    assert data.startswith(b"%PDF")
    assert _page_count(data) >= 1


def test_pdf_file_name_strips_path_separators():
    assert pdf_file_name(_storyboard(title="a/b")) == "a_b_storyboard.pdf"
    assert pdf_file_name(_storyboard(title="  ")) == "storyboard_storyboard.pdf"


def test_unreadable_sketch_falls_back_to_placeholder():
    broken = ImageAsset(data=base64.b64encode(b"not an image").decode("ascii"))

    image = render_storyboard(_storyboard(cuts=1), {0: broken}, scale=1)

    assert image.width == 1000


def test_json_download_name_shares_title_cleanup():
    assert storyboard_file_name(_storyboard(title="a\\b/c"), "json") == "a_b_c_storyboard.json"
    assert storyboard_file_name(_storyboard(title=""), "json") == "storyboard_storyboard.json"
