"""Command line interface for openvec."""
import argparse
import json
import logging
import sys
from pathlib import Path

from openvec.options import PRESETS, VectorizeOptions, preset_options
from openvec.pipeline import Vectorizer
from openvec.svg_export import save_svg
from openvec.types import OptionsError, VectorizeError


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog='openvec',
        description='Convert raster images to compact, curve-fitted SVG'
    )

    parser.add_argument(
        'input',
        type=str,
        help="Input image path ('-' reads standard input)"
    )

    parser.add_argument(
        '-o', '--output',
        type=str,
        help='Output SVG path (default: standard output)'
    )

    parser.add_argument(
        '-c', '--colors',
        type=int,
        default=None,
        help='Maximum palette size, 2-64 (default: 8)'
    )

    parser.add_argument(
        '-m', '--mode',
        type=str,
        default=None,
        help='Rendering mode: logo, poster or pixel (default: logo)'
    )

    parser.add_argument(
        '-t', '--tolerance',
        type=float,
        default=None,
        help='Simplification tolerance in pixels (default: 1.5)'
    )

    parser.add_argument(
        '-s', '--smoothness',
        type=float,
        default=None,
        help='Curve smoothness, 0-1 (default: 0.5)'
    )

    parser.add_argument(
        '-d', '--detail',
        type=float,
        default=None,
        help='Detail level, 0-1 (default: 0.5)'
    )

    parser.add_argument(
        '--preset',
        type=str,
        choices=sorted(PRESETS),
        default=None,
        help='Start from a named preset; other flags override it'
    )

    parser.add_argument(
        '--max-pixels',
        type=int,
        default=None,
        help='Downsample inputs larger than this many pixels (default: 2048x2048)'
    )

    parser.add_argument(
        '--workers',
        type=int,
        default=None,
        help='Threads for per-region work; -1 uses all CPUs (default: 1)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Print resolved options and debug logging to stderr'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log pipeline progress to stderr'
    )

    return parser


def resolve_cli_options(parsed_args: argparse.Namespace) -> VectorizeOptions:
    """Preset (or defaults) with the explicitly given flags applied."""
    base = preset_options(parsed_args.preset) if parsed_args.preset else VectorizeOptions()
    return base.merged(
        max_colors=parsed_args.colors,
        mode=parsed_args.mode,
        simplification_tolerance=parsed_args.tolerance,
        smoothness=parsed_args.smoothness,
        detail=parsed_args.detail,
        max_pixels=parsed_args.max_pixels,
    )


def _configure_logging(parsed_args: argparse.Namespace) -> None:
    if parsed_args.debug:
        level = logging.DEBUG
    elif parsed_args.verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )


def main(args=None):
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)
    _configure_logging(parsed_args)

    try:
        options = resolve_cli_options(parsed_args)
        vectorizer = Vectorizer(options, max_workers=parsed_args.workers)
    except OptionsError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    if parsed_args.debug:
        print(f"Options: {json.dumps(options.to_dict())}", file=sys.stderr)

    try:
        if parsed_args.input == '-':
            image_bytes = sys.stdin.buffer.read()
        else:
            image_bytes = Path(parsed_args.input).read_bytes()
    except OSError as e:
        print(f"Error: Cannot read input {parsed_args.input}: {e}", file=sys.stderr)
        return 1

    try:
        document = vectorizer.vectorize(image_bytes)
    except VectorizeError as e:
        print(f"Error: {e.kind}: {e.message}", file=sys.stderr)
        return 1

    svg_string = document.to_svg()

    if parsed_args.output:
        try:
            save_svg(svg_string, parsed_args.output)
        except OSError as e:
            print(f"Error: Cannot write output {parsed_args.output}: {e}", file=sys.stderr)
            return 1
        logging.getLogger(__name__).info(
            f"Wrote {document.region_count} paths to {parsed_args.output}"
        )
    else:
        sys.stdout.write(svg_string)

    return 0


if __name__ == '__main__':
    sys.exit(main())
