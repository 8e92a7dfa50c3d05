"""SVG export for vectorized documents."""
from typing import List, Sequence

from openvec.types import Color, FittedPath, PathGroup, VectorDocument

PRECISION = 2
OPACITY_PRECISION = 3


def format_color(rgb: Color) -> str:
    """
    Format RGB color as hex string.

    Uses #RGB shorthand when possible.

    Args:
        rgb: RGB triple with values in [0, 255]

    Returns:
        Hex color string
    """
    r, g, b = [int(min(255, max(0, c))) for c in rgb]

    if (r % 17 == 0) and (g % 17 == 0) and (b % 17 == 0):
        return f"#{r//17:x}{g//17:x}{b//17:x}"
    return f"#{r:02x}{g:02x}{b:02x}"


def format_number(x: float, precision: int = PRECISION) -> str:
    """
    Format number with given precision.

    Trailing zeros and a trailing decimal point are removed; negative
    zero prints as "0".

    Args:
        x: Number to format
        precision: Decimal places

    Returns:
        Formatted string
    """
    formatted = f"{x:.{precision}f}"
    if '.' in formatted:
        formatted = formatted.rstrip('0').rstrip('.')
    if formatted == "-0":
        formatted = "0"
    return formatted


def subpath_data(path: FittedPath, precision: int = PRECISION) -> str:
    """
    Absolute M/L/C commands for one closed path.

    The closing segment is left to Z when it is straight.
    """
    if not path.anchors:
        return ""

    fmt = lambda p: f"{format_number(p.x, precision)},{format_number(p.y, precision)}"

    n = len(path.anchors)
    commands = [f"M{fmt(path.anchors[0])}"]
    for i in range(n):
        end = path.anchors[(i + 1) % n]
        control = path.controls[i] if i < len(path.controls) else None
        if control is not None:
            commands.append(f"C{fmt(control[0])} {fmt(control[1])} {fmt(end)}")
        elif i < n - 1:
            commands.append(f"L{fmt(end)}")
    commands.append("Z")
    return " ".join(commands)


def path_data(paths: Sequence[FittedPath], precision: int = PRECISION) -> str:
    """Path data for an outer boundary followed by its holes."""
    return " ".join(d for d in (subpath_data(p, precision) for p in paths) if d)


def group_to_svg(group: PathGroup) -> str:
    attrs = f'id="{group.group_id}" fill="{format_color(group.color)}" fill-rule="nonzero"'
    if group.opacity < 1.0:
        attrs += f' fill-opacity="{format_number(group.opacity, OPACITY_PRECISION)}"'
    lines = [f"  <g {attrs}>"]
    lines.extend(f'    <path d="{d}"/>' for d in group.paths)
    lines.append("  </g>")
    return "\n".join(lines)


def render_svg(document: VectorDocument) -> str:
    """
    Generate SVG text from a document.

    Groups without paths are left out, so a document without regions is
    an empty but valid SVG.

    Args:
        document: Vectorized document

    Returns:
        Complete SVG string
    """
    width, height = document.width, document.height
    group_elements: List[str] = [group_to_svg(g) for g in document.groups if g.paths]

    header = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {width} {height}" '
        f'width="{width}" height="{height}">'
    )
    return "\n".join([header] + group_elements + ["</svg>"]) + "\n"


def save_svg(svg_string: str, output_path: str) -> None:
    """
    Save SVG string to file.

    Args:
        svg_string: SVG content
        output_path: Output file path
    """
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(svg_string)
