"""JSON record interface for callers in managed or browser runtimes."""
import json
import logging
from typing import Any, Dict, Optional

from openvec.options import VectorizeOptions, default_options
from openvec.pipeline import vectorize
from openvec.svg_export import format_color
from openvec.types import OptionsError, VectorizeError

logger = logging.getLogger(__name__)


def default_options_json() -> str:
    """Default options as a JSON object string."""
    return json.dumps(default_options().to_dict())


def vectorize_record(image_bytes: bytes, record: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Vectorize image bytes with options given as a flat record.

    Failures are reported in the result instead of raised; an error is
    never turned into an empty document.

    Args:
        image_bytes: Encoded raster image
        record: Flat options record (see VectorizeOptions.from_dict)

    Returns:
        ``{"ok": True, "svg", "width", "height", "colors", "regions"}`` on
        success, ``{"ok": False, "error": {"kind", "message"}}`` on failure
    """
    try:
        options = VectorizeOptions.from_dict(record)
        document = vectorize(image_bytes, options)
        return {
            "ok": True,
            "svg": document.to_svg(),
            "width": document.width,
            "height": document.height,
            "colors": [format_color(c) for c in document.palette],
            "regions": document.region_count,
        }
    except VectorizeError as e:
        logger.debug(f"Vectorization failed: {e.kind}: {e.message}")
        return {"ok": False, "error": e.to_dict()}


def vectorize_json(image_bytes: bytes, options_json: Optional[str] = None) -> str:
    """
    Vectorize image bytes with options given as JSON text.

    Args:
        image_bytes: Encoded raster image
        options_json: JSON object with option fields; empty for defaults

    Returns:
        JSON text of the vectorize_record result
    """
    try:
        record = _parse_options_json(options_json)
    except OptionsError as e:
        return json.dumps({"ok": False, "error": e.to_dict()})
    return json.dumps(vectorize_record(image_bytes, record))


def _parse_options_json(options_json: Optional[str]) -> Optional[Dict[str, Any]]:
    if options_json is None or not options_json.strip():
        return None
    try:
        record = json.loads(options_json)
    except json.JSONDecodeError as e:
        raise OptionsError(f"options are not valid JSON: {e.msg}") from e
    if not isinstance(record, dict):
        raise OptionsError(f"options must be a JSON object, got {type(record).__name__}")
    return record
