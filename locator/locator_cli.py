#!/usr/bin/env python3
"""
Pure Object Locator CLI
Command-line interface for locating object images inside a scene without OpenCV.

Usage:
    python -m locator.locator_cli features scene.png obj1.png obj2.png [options]
    python -m locator.locator_cli templates scene.png icon1.png icon2.png [options]
"""

import argparse
import json
import os
import sys
import time

from .drawing import draw_box, draw_quadrilateral
from .image_io import read_grayscale, to_rgb, write_image
from .logging_setup import setup_logging
from .object_finder import ObjectFinder
from .postprocess import non_max_suppression
from .results import FeatureMatch, TemplateMatchResult
from .template import TemplateMethod


def print_banner():
    """Print ASCII art banner."""
    banner = r"""
 _                    _
| |    ___   ___ __ _| |_ ___  _ __
| |   / _ \ / __/ _` | __/ _ \| '__|
| |__| (_) | (_| (_| | || (_) | |
|_____\___/ \___\__,_|\__\___/|_|

Pure Implementation (No OpenCV)
    """
    print(banner, file=sys.stderr)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Locate object images inside a scene image using pure Python implementation'
    )

    parser.add_argument(
        '--workers',
        type=int,
        default=1,
        help='Threads used for the per-object loop (default: 1)'
    )

    parser.add_argument(
        '-o', '--output',
        default=None,
        help='Write the JSON result to this file instead of stdout'
    )

    parser.add_argument(
        '--annotate',
        default=None,
        help='Save a copy of the scene with the located objects drawn on it'
    )

    parser.add_argument(
        '--log-level',
        default=None,
        help='Logging level (default: $LOG_LEVEL or INFO)'
    )

    parser.add_argument(
        '--log-json',
        action='store_true',
        help='Emit log records as JSON lines on stderr'
    )

    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Do not print the banner and summary'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    features = subparsers.add_parser(
        'features',
        help='SURF feature matching with homography verification'
    )
    features.add_argument('scene', help='Scene image')
    features.add_argument('objects', nargs='+', help='Object images')
    features.add_argument(
        '--hessian-threshold',
        type=float,
        default=400.0,
        help='SURF Hessian threshold (default: 400)'
    )
    features.add_argument(
        '--ratio',
        type=float,
        default=0.75,
        help="Lowe's ratio test threshold (default: 0.75)"
    )
    features.add_argument(
        '--octaves',
        type=int,
        default=4,
        help='Number of SURF octaves (default: 4)'
    )
    features.add_argument(
        '--octave-layers',
        type=int,
        default=3,
        help='Number of layers per octave (default: 3)'
    )
    features.add_argument(
        '--extended',
        action='store_true',
        help='Use 128-element descriptors'
    )
    features.add_argument(
        '--upright',
        action='store_true',
        help='Skip orientation assignment'
    )
    features.add_argument(
        '--ransac-threshold',
        type=float,
        default=3.0,
        help='RANSAC reprojection threshold (default: 3.0)'
    )
    features.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Seed for RANSAC sampling'
    )

    templates = subparsers.add_parser(
        'templates',
        help='Exhaustive template matching'
    )
    templates.add_argument('scene', help='Scene image')
    templates.add_argument('objects', nargs='+', help='Template images')
    templates.add_argument(
        '--method',
        type=int,
        default=int(TemplateMethod.CCOEFF_NORMED),
        choices=[int(m) for m in TemplateMethod],
        help='0=SQDIFF 1=SQDIFF_NORMED 2=CCORR 3=CCORR_NORMED 4=CCOEFF 5=CCOEFF_NORMED (default: 5)'
    )
    templates.add_argument(
        '--threshold',
        type=float,
        default=0.8,
        help='Score threshold (default: 0.8)'
    )
    templates.add_argument(
        '--nms',
        type=float,
        default=None,
        help='Apply non-maximum suppression across templates with this IoU threshold'
    )

    return parser


def run_features(args, finder):
    outcomes = finder.locate_features(args.scene, args.objects,
                                      args.hessian_threshold, args.ratio)
    result = {'matches': [o.to_dict() for o in outcomes]}
    located = [o for o in outcomes if isinstance(o, FeatureMatch)]

    if args.annotate:
        canvas = to_rgb(read_grayscale(args.scene))
        for outcome in located:
            draw_quadrilateral(canvas, [(c.x, c.y) for c in outcome.corners])
        write_image(args.annotate, canvas)

    return result, f"{len(located)}/{len(outcomes)} objects located"


def run_templates(args, finder):
    method = TemplateMethod(args.method)
    outcomes = finder.locate_templates(args.scene, args.objects, method, args.threshold)
    result = {'results': [o.to_dict() for o in outcomes]}

    boxes = [box for o in outcomes if isinstance(o, TemplateMatchResult) for box in o.matches]

    if args.nms is not None:
        boxes = non_max_suppression(boxes, overlap_thresh=args.nms,
                                    higher_is_better=not method.lower_is_better)
        result['nms'] = [dict(box.to_dict(), template=box.template) for box in boxes]

    if args.annotate:
        canvas = to_rgb(read_grayscale(args.scene))
        for box in boxes:
            draw_box(canvas, box)
        write_image(args.annotate, canvas)

    return result, f"{len(boxes)} boxes from {len(outcomes)} templates"


def main(argv=None):
    """Main function for CLI."""
    args = build_parser().parse_args(argv)

    # Rebind the handler to the current stderr on every call
    setup_logging(args.log_level, json_format=args.log_json, force=True)

    if not args.quiet:
        print_banner()

    finder_kwargs = {'workers': args.workers}
    if args.command == 'features':
        finder_kwargs.update(
            surf_params={
                'n_octaves': args.octaves,
                'n_octave_layers': args.octave_layers,
                'extended': args.extended,
                'upright': args.upright,
            },
            ransac_params={'ransac_reproj_threshold': args.ransac_threshold},
            seed=args.seed,
        )

    finder = ObjectFinder(**finder_kwargs)
    start_time = time.time()

    try:
        if args.command == 'features':
            result, summary = run_features(args, finder)
        else:
            result, summary = run_templates(args, finder)
    except (IOError, TypeError, ValueError) as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1

    elapsed_time = time.time() - start_time
    text = json.dumps(result, indent=2)

    if args.output:
        output_dir = os.path.dirname(args.output)
        if output_dir and not os.path.exists(output_dir):
            os.makedirs(output_dir)
        with open(args.output, 'w') as f:
            f.write(text + '\n')
    else:
        print(text)

    if not args.quiet:
        print(f"\n✓ {summary}", file=sys.stderr)
        if args.annotate:
            print(f"  Annotated scene saved to: {args.annotate}", file=sys.stderr)
        print(f"  Processing time: {elapsed_time:.2f} seconds", file=sys.stderr)

    return 0


if __name__ == '__main__':
    sys.exit(main())
