#!/usr/bin/env python3
"""
itemforge command line.

    itemforge list
    itemforge generate lantern --set type=storm_lantern --set quality=rare --out out/
    itemforge batch potion --count 12 --seed 7 --out out/potions
    itemforge search chest --stat security --min 60 --max 200
"""

import argparse
import logging
import sys
from pathlib import Path

from itemforge import settings
from itemforge.errors import ItemForgeError
from itemforge.families import FAMILIES, get_generator

log = logging.getLogger(__name__)


def parse_assignments(pairs):
    """['quality=rare', 'seed=3'] -> {'quality': 'rare', 'seed': 3}"""
    config = {}
    for pair in pairs or ():
        if "=" not in pair:
            raise argparse.ArgumentTypeError(f"Expected axis=value, got '{pair}'")
        key, value = pair.split("=", 1)
        config[key.strip()] = _coerce(value.strip())
    return config


def _coerce(value):
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            pass
    return value


def save_asset(generator, asset, out_dir: Path):
    png_path = out_dir / f"{asset.item.id if asset.item else asset.id}.png"
    data_path = generator.export_item_data(asset, png_path)
    print(f"  ✓ {asset.name} -> {png_path} (+ {data_path.name})")


def list_command(args):
    for family in FAMILIES:
        generator = get_generator(family)
        print(f"{family}  ({generator.name})")
        for name, table in generator.composer.axes:
            print(f"    {name:<14} {', '.join(table.keys())}")
        if generator.themes:
            print(f"    {'themes':<14} {', '.join(sorted(generator.themes))}")
        print()


def generate_command(args):
    generator = get_generator(args.family)
    config = parse_assignments(args.set)
    asset = generator.generate(config)
    print(f"Generated {asset.name}")
    print(f"  {asset.description}")
    for stat, value in asset.stats.items():
        print(f"    {stat:<16} {value}")
    save_asset(generator, asset, Path(args.out))


def batch_command(args):
    generator = get_generator(args.family, batch_workers=args.workers)
    configs = generator.random_configs(args.count, seed=args.seed, fixed=parse_assignments(args.set))
    out_dir = Path(args.out)

    print(f"=== Generating {args.count} {args.family} sprites ===")
    results = generator.generate_batch(configs, seed=args.seed)
    for result in results:
        if result.success:
            save_asset(generator, result.asset, out_dir)
        else:
            print(f"  ✗ [{result.index}] {result.error.message}")

    stats = generator.stats
    print()
    print(f"Success rate: {stats.success_rate:.1f}%  ({stats.successes}/{stats.total_generated})")
    print(f"Average time: {stats.average_time * 1000:.1f} ms")


def search_command(args):
    generator = get_generator(args.family)
    asset = generator.search_by_stat(args.stat, args.min, args.max, fixed=parse_assignments(args.set),
                                     max_attempts=args.attempts, seed=args.seed)
    value = asset.stats.get(args.stat)
    hit = value is not None and args.min <= value <= args.max
    print(f"{'Found' if hit else 'Fallback'}: {asset.name} ({args.stat}={value})")
    save_asset(generator, asset, Path(args.out))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Procedural 2D item sprite generator")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List families and their axis values")

    gen = subparsers.add_parser("generate", help="Generate one item")
    gen.add_argument("family", choices=sorted(FAMILIES))
    gen.add_argument("--set", action="append", metavar="AXIS=VALUE", help="Config entry (repeatable)")
    gen.add_argument("--out", type=str, default="out", help="Output directory")

    batch = subparsers.add_parser("batch", help="Generate random items in one batch")
    batch.add_argument("family", choices=sorted(FAMILIES))
    batch.add_argument("--count", type=int, default=8, help="Number of items")
    batch.add_argument("--seed", type=int, default=None, help="Random seed")
    batch.add_argument("--set", action="append", metavar="AXIS=VALUE", help="Fix an axis (repeatable)")
    batch.add_argument("--workers", type=int, default=None, help="Worker threads")
    batch.add_argument("--out", type=str, default="out", help="Output directory")

    search = subparsers.add_parser("search", help="Find an item whose stat lands in a range")
    search.add_argument("family", choices=sorted(FAMILIES))
    search.add_argument("--stat", required=True, help="Stat name, e.g. brightness")
    search.add_argument("--min", type=float, required=True)
    search.add_argument("--max", type=float, required=True)
    search.add_argument("--set", action="append", metavar="AXIS=VALUE", help="Fix an axis (repeatable)")
    search.add_argument("--attempts", type=int, default=None, help="Sampling attempts before fallback")
    search.add_argument("--seed", type=int, default=None, help="Random seed")
    search.add_argument("--out", type=str, default="out", help="Output directory")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.LOG_LEVEL,
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
    )

    commands = {
        "list": list_command,
        "generate": generate_command,
        "batch": batch_command,
        "search": search_command,
    }
    try:
        commands[args.command](args)
    except (ItemForgeError, argparse.ArgumentTypeError) as e:
        log.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
