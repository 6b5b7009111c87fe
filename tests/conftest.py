"""Shared fixtures for the renderer tests."""

import pytest
from PIL import Image

from ratecard.renderer import RenderParams


@pytest.fixture
def solid_background():
    """Opaque red 300x200 image (wider than A4)."""
    return Image.new("RGBA", (300, 200), (255, 0, 0, 255))


@pytest.fixture
def sample_params():
    return RenderParams.from_inputs(
        opacity=1.0,
        table_text="$10 Basic\n$20 Standard\n$30 Premium",
        text_color="#000000",
        date_text="2024-05-01",
    )


@pytest.fixture
def app_root(tmp_path, monkeypatch):
    """Run with the working directory in a temp folder so config/logs land there."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
