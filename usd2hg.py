#!/usr/bin/env python3
"""
USD->HG Converter - Command Line Version
Converts a USD stage (.usd/.usda/.usdc/.usdz) to a Harfang scene
"""

import argparse
import sys
from pathlib import Path

from core.config import DEFAULT_SHADER, POLICY_CHOICES, Config, ImportPolicy
from core.output_paths import clean_path
from readers import SUPPORTED_EXTENSIONS
from usd_converter import USDToHarfangConverter

POLICY_HELP = "output policy (skip, overwrite, rename or skip_always)"


def build_parser():
    parser = argparse.ArgumentParser(
        prog='usd2hg',
        description='Convert USD (.usd/.usda/.usdc/.usdz) files to Harfang scenes',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  # Convert to ./out, keeping files that already exist
  usd2hg scene.usda -out ./out

  # Convert into a project, overwriting everything
  usd2hg scene.usdc -out ./project/assets/scene -base-resource-path ./project/assets -all-policy overwrite

  # Recompute normals and tangent frames of every geometry
  usd2hg scene.usd -o ./out -recalculate-normal -recalculate-tangent
        """
    )

    parser.add_argument('input', type=str, help='Input USD file to convert')

    parser.add_argument('-o', '-out', dest='out', type=str, default='./',
                        help='Output directory (default: ./)')
    parser.add_argument('-base-resource-path', dest='base_resource_path', type=str, default='',
                        help='Transform references to assets in this directory to be relative')
    parser.add_argument('-name', dest='name', type=str, default='',
                        help='Output scene name (default: input file name)')
    parser.add_argument('-prefix', dest='prefix', type=str, default='',
                        help='File system prefix from which relative assets are to be loaded from')

    parser.add_argument('-all-policy', dest='all_policy', choices=POLICY_CHOICES, default='skip',
                        help=f'All file {POLICY_HELP} (default: skip)')
    parser.add_argument('-geometry-policy', dest='geometry_policy', choices=POLICY_CHOICES,
                        help=f'Geometry file {POLICY_HELP} (default: -all-policy)')
    parser.add_argument('-material-policy', dest='material_policy', choices=POLICY_CHOICES,
                        help=f'Material file {POLICY_HELP} (default: -all-policy)')
    parser.add_argument('-texture-policy', dest='texture_policy', choices=POLICY_CHOICES,
                        help=f'Texture file {POLICY_HELP} (default: -all-policy)')
    parser.add_argument('-scene-policy', dest='scene_policy', choices=POLICY_CHOICES,
                        help=f'Scene file {POLICY_HELP} (default: -all-policy)')
    parser.add_argument('-anim-policy', dest='anim_policy', choices=POLICY_CHOICES,
                        help=f'Animation file {POLICY_HELP}, only applies with -anim-to-file '
                             '(default: -all-policy)')

    parser.add_argument('-geometry-scale', dest='geometry_scale', type=float, default=1.0,
                        help='Factor used to scale exported geometries (default: 1.0)')
    parser.add_argument('-finalizer-script', dest='finalizer_script', type=str, default='',
                        help='Path to the Lua finalizer script')
    parser.add_argument('-s', '-shader', dest='shader', type=str, default='',
                        help=f'Material pipeline shader (default: {DEFAULT_SHADER})')

    parser.add_argument('-recalculate-normal', dest='recalculate_normal', action='store_true',
                        help='Recreate the vertex normals of exported geometries')
    parser.add_argument('-recalculate-tangent', dest='recalculate_tangent', action='store_true',
                        help='Recreate the vertex tangent frames of exported geometries')
    parser.add_argument('-detect-geometry-instances', dest='detect_geometry_instances', action='store_true',
                        help='Detect and optimize geometry instances')
    parser.add_argument('-anim-to-file', dest='anim_to_file', action='store_true',
                        help='Write animation data to its own file instead of the scene')
    parser.add_argument('-q', '-quiet', dest='quiet', action='store_true',
                        help='Quiet log, only log errors')
    return parser


def config_from_args(args):
    """Build the run Config from parsed arguments

    A per-class policy not given on the command line takes -all-policy's value.
    """
    def policy(value):
        return ImportPolicy.from_string(value if value is not None else args.all_policy)

    return Config(
        input_path=args.input,
        name=clean_path(args.name),
        base_output_path=clean_path(args.out),
        prj_path=clean_path(args.base_resource_path),
        prefix=args.prefix,
        shader=args.shader,
        geometry_scale=args.geometry_scale,
        policy_geometry=policy(args.geometry_policy),
        policy_material=policy(args.material_policy),
        policy_texture=policy(args.texture_policy),
        policy_scene=policy(args.scene_policy),
        policy_anim=policy(args.anim_policy),
        recalculate_normal=args.recalculate_normal,
        recalculate_tangent=args.recalculate_tangent,
        detect_geometry_instances=args.detect_geometry_instances,
        anim_to_file=args.anim_to_file,
        finalizer_script=args.finalizer_script,
        quiet=args.quiet,
    )


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Validate input file exists
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {args.input}", file=sys.stderr)
        return 1

    # Validate file extension
    file_ext = input_path.suffix.lower()
    if file_ext not in SUPPORTED_EXTENSIONS:
        print(f"Error: Unsupported file format: {file_ext}", file=sys.stderr)
        print(f"Supported formats: {', '.join(sorted(SUPPORTED_EXTENSIONS))}", file=sys.stderr)
        return 1

    config = config_from_args(args)
    converter = USDToHarfangConverter()
    results = converter.convert(config)

    if not results.get('success'):
        print(f"\n✗ {results.get('message', 'Conversion failed')}", file=sys.stderr)
        return 1

    if not config.quiet:
        print(f"✓ {results['message']}")
        if results.get('scene_file'):
            print(f"✓ Scene: {results['scene_file']}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
