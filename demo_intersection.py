#!/usr/bin/env python3
"""
体積交差デモ
三角形分割とVoronoi分割の交差を計算し、結果を表示・出力
"""

import argparse
import sys
from pathlib import Path

import numpy as np

from polyintersect import setup_logging, get_logger, PolyIntersectError
from polyintersect.config import load_config
from polyintersect.intersection import VolumeIntersector
from polyintersect.io import read_triangulation, read_generators, VolumeDataWriter, VolumeSlicer


# 組み込みサンプル: (頂点, 単体, 母点)
EXAMPLES = {
    '2d': (
        [[0, 0], [1, 0], [0, 1]],
        [[0, 1, 2]],
        [[1, 0], [0, 0], [-1, 0], [0, 1], [0, -1]],
    ),
    '3d': (
        [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]],
        [[0, 1, 2, 3]],
        [[1, 0, 0], [0, 0, 0], [-1, 0, 0], [0, 1, 0], [0, -1, 0], [0, 0, 1], [0, 0, -1]],
    ),
}


def load_inputs(args):
    """コマンドライン引数から入力を取得"""
    if args.triangulation:
        if not args.generators:
            raise SystemExit("--generators is required with --triangulation")
        vertices, simplices = read_triangulation(
            args.triangulation, dimension=args.dimension, index_base=args.index_base
        )
        generators = read_generators(args.generators, dimension=args.dimension)
        return vertices, simplices, generators

    vertices, simplices, generators = EXAMPLES[args.example]
    return np.array(vertices, dtype=float), np.array(simplices), np.array(generators, dtype=float)


def print_summary(volume, stats):
    """交差結果のサマリー表示"""
    print("\n=== Intersection Summary ===")
    print(f"Dimension:    {volume.dimension}")
    print(f"Cells:        {volume.num_cells}")
    print(f"Half-spaces:  {volume.edge_count()}")
    print(f"Total volume: {volume.total_weight():.6f}")
    print(f"Time:         {stats['last_run_time_ms']:.1f}ms")
    print(f"Skipped:      degenerate={stats['degenerate_pairs']} "
          f"oversized={stats['oversized_pairs']} missing_seeds={stats['missing_seeds']}")

    print("\n triangle  voronoi      weight  centroid")
    for cell in volume.cells:
        centroid = ", ".join(f"{value:.4f}" for value in cell.centroid)
        print(f" {cell.triangle_index:8d} {cell.voronoi_index:8d} {cell.weight:11.6f}  ({centroid})")


def main():
    """メイン関数"""
    parser = argparse.ArgumentParser(
        description="Triangulation / Voronoi volume intersection demo",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # 入力設定
    input_group = parser.add_argument_group('Input Options')
    input_group.add_argument('--example', choices=sorted(EXAMPLES), default='3d',
                             help='Built-in example used when no files are given')
    input_group.add_argument('--triangulation', type=Path,
                             help='Triangulation file (counts, vertices, simplices)')
    input_group.add_argument('--generators', type=Path,
                             help='Generator file (one point per line)')
    input_group.add_argument('--dimension', type=int, choices=(2, 3), default=3,
                             help='Coordinate dimension of the input files')
    input_group.add_argument('--index-base', type=int, default=0,
                             help='Base of simplex indices in the triangulation file')

    # 計算設定
    compute_group = parser.add_argument_group('Computation Options')
    compute_group.add_argument('--config', type=Path,
                               help='YAML configuration file')
    compute_group.add_argument('--epsilon', type=float,
                               help='Override geometry epsilon')
    compute_group.add_argument('--workers', type=int,
                               help='Override number of traversal workers')

    # 出力設定
    output_group = parser.add_argument_group('Output Options')
    output_group.add_argument('--output', type=Path,
                              help='Write the intersection as delimited text')
    output_group.add_argument('--slice', type=Path,
                              help='Write a slice image (PNG)')
    output_group.add_argument('--slice-axis', type=int, choices=(0, 1, 2), default=2,
                              help='Slicing axis for 3D volumes')
    output_group.add_argument('--slice-value', type=float, default=0.25,
                              help='Slicing position along the axis')

    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args()

    config = load_config(args.config)
    if args.epsilon is not None:
        config.geometry.epsilon = args.epsilon
    if args.workers is not None:
        config.traversal.max_workers = args.workers

    # ログ設定
    setup_logging(level='DEBUG' if args.verbose else config.log_level,
                  format_style=config.log_format_style)
    logger = get_logger(__name__)

    try:
        vertices, simplices, generators = load_inputs(args)

        intersector = VolumeIntersector(config)
        volume = intersector.intersect(vertices, simplices, generators)
        print_summary(volume, intersector.get_performance_stats())

        if args.output:
            VolumeDataWriter(config.output.separator).write(args.output, volume)

        if args.slice:
            slicer = VolumeSlicer(seed=config.output.slice_seed, epsilon=config.geometry.epsilon)
            image = slicer.slice(
                volume,
                axis=args.slice_axis,
                value=args.slice_value,
                width=config.output.slice_width,
                height=config.output.slice_height
            )
            slicer.save(args.slice, image)

    except (PolyIntersectError, OSError) as e:
        logger.error(f"Intersection failed: {e}")
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1

    logger.info("Demo finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
