"""Tests for the JSON bridge."""
import json

from openvec.bridge import default_options_json, vectorize_record, vectorize_json


class TestBridge:
    """Test the record and JSON entry points."""

    def test_default_options_json(self):
        """Test defaults serialize with the documented values."""
        defaults = json.loads(default_options_json())
        assert defaults["colors"] == 8
        assert defaults["mode"] == "logo"
        assert defaults["tolerance"] == 1.5
        assert defaults["smoothness"] == 0.5
        assert defaults["detail"] == 0.5

    def test_record_success(self, make_png, red_blue_image):
        """Test a successful run reports svg, size, colors and region count."""
        result = vectorize_record(make_png(red_blue_image), {"colors": 2})
        assert result["ok"] is True
        assert result["svg"].startswith("<?xml")
        assert (result["width"], result["height"]) == (8, 8)
        assert result["colors"] == ["#f00", "#00f"]
        assert result["regions"] == 2

    def test_record_options_error(self, make_png, red_blue_image):
        """Test invalid options come back as an error record."""
        result = vectorize_record(make_png(red_blue_image), {"colors": 1})
        assert result == {
            "ok": False,
            "error": {"kind": "Options", "message": result["error"]["message"]},
        }

    def test_record_decode_error(self):
        """Test bad bytes come back as a Decode error, never an empty document."""
        result = vectorize_record(b"nope", None)
        assert result["ok"] is False
        assert result["error"]["kind"] == "Decode"
        assert "svg" not in result

    def test_json_round_trip(self, make_png, red_blue_image):
        """Test the JSON entry point accepts defaults JSON as input."""
        result = json.loads(vectorize_json(make_png(red_blue_image), default_options_json()))
        assert result["ok"] is True

    def test_json_empty_means_defaults(self, make_png, red_blue_image):
        """Test empty options text uses defaults."""
        result = json.loads(vectorize_json(make_png(red_blue_image), ""))
        assert result["ok"] is True

    def test_json_malformed(self, make_png, red_blue_image):
        """Test malformed JSON is an Options error."""
        result = json.loads(vectorize_json(make_png(red_blue_image), "{colors: 2"))
        assert result["error"]["kind"] == "Options"

    def test_json_not_an_object(self, make_png, red_blue_image):
        """Test non-object JSON is an Options error."""
        result = json.loads(vectorize_json(make_png(red_blue_image), "[2]"))
        assert result["error"]["kind"] == "Options"
