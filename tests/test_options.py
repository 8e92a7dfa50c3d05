"""Tests for vectorization options and presets."""
import dataclasses

import pytest

from openvec.options import (
    Mode,
    VectorizeOptions,
    default_options,
    preset_options,
    MODE_PRESETS,
)
from openvec.types import OptionsError


class TestVectorizeOptions:
    """Test option defaults and validation."""

    def test_defaults(self):
        """Test documented default values."""
        options = default_options()
        assert options.max_colors == 8
        assert options.mode is Mode.LOGO
        assert options.simplification_tolerance == 1.5
        assert options.smoothness == 0.5
        assert options.detail == 0.5

    @pytest.mark.parametrize("colors", [1, 65, 100, 0, -3])
    def test_colors_out_of_range(self, colors):
        """Test palette sizes outside 2..64 are rejected, not clamped."""
        with pytest.raises(OptionsError):
            VectorizeOptions(max_colors=colors)

    def test_colors_bounds_accepted(self):
        """Test both ends of the palette size range are valid."""
        assert VectorizeOptions(max_colors=2).max_colors == 2
        assert VectorizeOptions(max_colors=64).max_colors == 64

    @pytest.mark.parametrize("field,value", [
        ("max_colors", True),
        ("max_colors", 8.0),
        ("simplification_tolerance", 0.0),
        ("simplification_tolerance", 101.0),
        ("simplification_tolerance", float("nan")),
        ("smoothness", -0.1),
        ("smoothness", 1.5),
        ("detail", float("inf")),
        ("detail", None),
        ("max_pixels", 0),
    ])
    def test_invalid_values(self, field, value):
        """Test wrong types and out-of-range values raise OptionsError."""
        with pytest.raises(OptionsError):
            VectorizeOptions(**{field: value})

    def test_replace_revalidates(self):
        """Test dataclasses.replace runs validation again."""
        with pytest.raises(OptionsError):
            dataclasses.replace(default_options(), smoothness=2.0)

    def test_max_pixels_none_allowed(self):
        """Test downsampling can be disabled."""
        assert VectorizeOptions(max_pixels=None).max_pixels is None

    def test_effective_values_follow_mode(self):
        """Test mode presets scale tolerance and smoothness."""
        logo = VectorizeOptions(mode=Mode.LOGO, detail=0.5)
        pixel = VectorizeOptions(mode=Mode.PIXEL_ART, detail=0.5)
        assert logo.effective_tolerance == pytest.approx(1.5)
        assert pixel.effective_tolerance < logo.effective_tolerance
        assert pixel.effective_smoothness == 0.0
        assert logo.effective_smoothness == pytest.approx(0.5)

    def test_min_region_area(self):
        """Test speckle threshold shrinks with detail and canvas size."""
        coarse = VectorizeOptions(detail=0.0)
        fine = VectorizeOptions(detail=1.0)
        assert coarse.min_region_area(256, 256) == 32
        assert fine.min_region_area(256, 256) == 1
        assert coarse.min_region_area(8, 8) == 1
        assert VectorizeOptions(mode=Mode.PIXEL_ART, detail=0.0).min_region_area(256, 256) == 1

    def test_merged_skips_none(self):
        """Test merged only applies explicitly given values."""
        options = default_options().merged(max_colors=None, mode="poster", detail=0.9)
        assert options.max_colors == 8
        assert options.mode is Mode.POSTER
        assert options.detail == 0.9


class TestModeParsing:
    """Test mode names and aliases."""

    @pytest.mark.parametrize("name", ["pixel", "pixel-art", "PixelArt", "pixel_art", "PIXEL"])
    def test_pixel_aliases(self, name):
        """Test every pixel-art spelling parses."""
        assert Mode.parse(name) is Mode.PIXEL_ART

    def test_unknown_mode(self):
        """Test unknown mode names raise OptionsError."""
        with pytest.raises(OptionsError):
            Mode.parse("watercolor")

    def test_every_mode_has_preset(self):
        """Test the preset table covers all modes."""
        assert set(MODE_PRESETS) == set(Mode)


class TestRecords:
    """Test flat record conversion."""

    def test_from_dict_aliases(self):
        """Test camelCase and short field names are accepted."""
        options = VectorizeOptions.from_dict({
            "maxColors": 12,
            "mode": "pixel",
            "simplificationTolerance": 0.8,
            "smoothness": 0.3,
            "detail": 0.4,
        })
        assert options.max_colors == 12
        assert options.mode is Mode.PIXEL_ART
        assert options.simplification_tolerance == 0.8

    def test_from_dict_missing_fields_use_defaults(self):
        """Test partial records fill in defaults."""
        options = VectorizeOptions.from_dict({"colors": 4})
        assert options.max_colors == 4
        assert options.smoothness == 0.5

    def test_from_dict_rejects_unknown_keys(self):
        """Test unknown fields raise OptionsError."""
        with pytest.raises(OptionsError):
            VectorizeOptions.from_dict({"colours": 4})

    def test_from_dict_rejects_alias_twice(self):
        """Test giving a field under two names is rejected."""
        with pytest.raises(OptionsError):
            VectorizeOptions.from_dict({"colors": 4, "maxColors": 5})

    def test_from_dict_rejects_bad_type(self):
        """Test string numbers are not coerced."""
        with pytest.raises(OptionsError):
            VectorizeOptions.from_dict({"colors": "8"})

    def test_to_dict_round_trips(self):
        """Test to_dict output is accepted by from_dict."""
        options = VectorizeOptions(max_colors=5, mode=Mode.POSTER, detail=0.2)
        assert VectorizeOptions.from_dict(options.to_dict()) == options


class TestPresets:
    """Test named UI presets."""

    def test_logo_preset(self):
        """Test the logo preset values."""
        options = preset_options("logo")
        assert (options.max_colors, options.detail, options.smoothness) == (6, 0.65, 0.7)
        assert options.mode is Mode.LOGO

    def test_pixel_preset(self):
        """Test the pixel preset uses pixel-art mode."""
        options = preset_options("Pixel")
        assert options.mode is Mode.PIXEL_ART
        assert options.max_colors == 12

    def test_unknown_preset(self):
        """Test unknown preset names raise OptionsError."""
        with pytest.raises(OptionsError):
            preset_options("photo")
