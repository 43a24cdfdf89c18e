"""
bh_infra CLI

Offline ingestion of the per-service datasets and planar lookups against
the resulting canonical store.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .aggregator import SegmentAggregator
from .config import ConfigManager, InfraConfig
from .errors import ConfigError, FatalStartupError
from .export import SegmentExporter
from .lookup import InfraLookupService, StateHolder, load_state, resolve_nearest
from .models import ServiceCategory
from .store import StoreDatabase

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bh-infra",
        description="Urban infrastructure availability lookup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Merge the CSV datasets in data/ into infra.db
  %(prog)s ingest --data-dir data --store infra.db

  # Show what the store holds
  %(prog)s stats --store infra.db

  # Assess every service at a point (EPSG:31983 coordinates)
  %(prog)s lookup 609870.5 7797601.2

  # Nearest paving segment only, raw resolver output
  %(prog)s lookup 609870.5 7797601.2 --category pavimentacao --nearest
        """
    )
    parser.add_argument('-c', '--config', type=Path, help='Configuration YAML file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True)

    ingest = subparsers.add_parser('ingest', help='Aggregate datasets into the canonical store')
    ingest.add_argument('--data-dir', type=Path, help='Directory with the dataset CSV files')
    ingest.add_argument('--store', type=Path, help='Output SQLite store path')
    ingest.add_argument('--stats-json', type=Path, help='Write ingestion statistics to this file')

    stats = subparsers.add_parser('stats', help='Show canonical store statistics')
    stats.add_argument('--store', type=Path, help='SQLite store path')

    export = subparsers.add_parser('export', help='Export segments as GeoJSON')
    export.add_argument('output_dir', type=Path)
    export.add_argument('--store', type=Path, help='SQLite store path')
    export.add_argument('--category', choices=[c.value for c in ServiceCategory])
    export.add_argument('--crs', help='Target CRS (e.g. EPSG:4326)')

    lookup = subparsers.add_parser('lookup', help='Assess services at a planar point')
    lookup.add_argument('x', type=float)
    lookup.add_argument('y', type=float)
    lookup.add_argument('--store', type=Path, help='SQLite store path')
    lookup.add_argument(
        '--category',
        action='append',
        choices=[c.value for c in ServiceCategory],
        help='Category to assess (repeatable, default: all)',
    )
    lookup.add_argument('--threshold', type=float, help='Availability distance threshold in meters')
    lookup.add_argument('--nearest', action='store_true', help='Print raw nearest-segment results')

    return parser


def _store_path(args: argparse.Namespace, config: InfraConfig) -> Path:
    return args.store or config.store_path


def cmd_ingest(args: argparse.Namespace, config: InfraConfig) -> int:
    aggregator = SegmentAggregator(
        data_dir=args.data_dir or config.data_dir,
        datasets=config.datasets,
        delimiter=config.delimiter,
        encoding=config.encoding,
    )
    store, stats = aggregator.aggregate()
    StoreDatabase(_store_path(args, config)).save(store)

    if args.stats_json:
        with open(args.stats_json, 'w', encoding="utf-8") as f:
            json.dump(stats.to_dict(), f, indent=2)

    print(f"Segments: {stats.segments:,}  rows used: {stats.rows_used:,}  skipped: {stats.rows_skipped:,}")
    for missing in stats.missing_files:
        print(f"  missing: {missing}")
    for dataset in stats.datasets:
        if not dataset.file_missing:
            print(f"  {dataset.dataset}: {dataset.ids_present:,} of {stats.segments:,} segment ids")
    return 0


def cmd_stats(args: argparse.Namespace, config: InfraConfig) -> int:
    store = StoreDatabase(_store_path(args, config)).load()
    print(json.dumps(store.summary(), indent=2, ensure_ascii=False))
    return 0


def cmd_export(args: argparse.Namespace, config: InfraConfig) -> int:
    store = StoreDatabase(_store_path(args, config)).load()
    category = ServiceCategory(args.category) if args.category else None
    output = SegmentExporter(args.output_dir).export_segments(store, category=category, crs=args.crs)
    print(f"Exported to {output}")
    return 0


def cmd_lookup(args: argparse.Namespace, config: InfraConfig) -> int:
    state = load_state(_store_path(args, config))
    categories = [ServiceCategory(c) for c in args.category] if args.category else list(ServiceCategory)
    point = (args.x, args.y)

    if args.nearest:
        output = {}
        for category in categories:
            result = resolve_nearest(state, point, category, config.search)
            output[category.value] = result.to_dict() if result else None
    else:
        service = InfraLookupService(
            StateHolder(state),
            params=config.search,
            distance_threshold_m=config.distance_threshold_m,
        )
        descriptors = service.assess(point, categories, args.threshold)
        output = {category.value: d.to_dict() for category, d in descriptors.items()}

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


COMMANDS = {
    'ingest': cmd_ingest,
    'stats': cmd_stats,
    'export': cmd_export,
    'lookup': cmd_lookup,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    try:
        config = ConfigManager(args.config).load()
        return COMMANDS[args.command](args, config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except FatalStartupError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
