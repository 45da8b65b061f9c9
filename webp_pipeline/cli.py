"""Command-line interface of the offline WebP converter.

Running without a sub-command converts the configured source directory.

Environment variables:
    WEBP_SOURCE_DIR: Directory holding the source images (default: public)
    WEBP_OUTPUT_DIR: Directory receiving converted files (default: public/webp)
    WEBP_QUALITY: WebP quality, 0-100 (default: 85)
    WEBP_LEDGER: Path to the SQLite conversion ledger (default: data/conversions.db)
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from .config import SAMPLE_CONFIG, ConfigError, ConverterConfig, load_config
from .converter.converter import WebPConverter
from .core.batch import BatchOptimizer
from .core.models import ConversionResult, human_size
from .storage.ledger import ConversionLedger


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def resolve_config(args) -> ConverterConfig:
    """Layer defaults, YAML file, environment and command-line flags."""
    try:
        config = load_config(args.config) if args.config else ConverterConfig()
        config = config.with_env()
        overrides = {
            "source_dir": getattr(args, "source", None),
            "output_dir": getattr(args, "output", None),
            "quality": getattr(args, "quality", None),
            "max_dimension": getattr(args, "max_dimension", None),
        }
        if getattr(args, "recursive", False):
            overrides["recursive"] = True
        if getattr(args, "no_mirror", False):
            overrides["mirror_to_source"] = False
        return config.merge(overrides)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)


def open_ledger(args, config: ConverterConfig) -> "ConversionLedger | None":
    """Return the configured ledger, or None when disabled."""
    if args.no_ledger or config.ledger is None:
        return None
    return ConversionLedger(config.ledger)


def _describe(result: ConversionResult) -> str:
    if not result.ok:
        return f"Failed: {result.source.name} ({result.error})"
    return (
        f"Converted: {result.source.name} -> {result.output.name} "
        f"({human_size(result.original_size)} -> {human_size(result.webp_size)}, "
        f"{result.reduction:.1f}% smaller)"
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def convert(args):
    """Convert every eligible image of the source directory."""
    config = resolve_config(args)
    if not config.source_dir.is_dir():
        print(f"Error: Source directory not found: {config.source_dir}")
        sys.exit(1)

    converter = WebPConverter(config, ledger=open_ledger(args, config))
    eligible, skipped = converter.plan()
    if not eligible:
        print(f"No images to convert in {config.source_dir}")
        return

    print(f"Converting {len(eligible)} image(s) from {config.source_dir} to WebP (quality {config.quality})...")
    for path in skipped:
        print(f"Skipping: {path.name}")

    report = converter.convert_all(
        progress=True,
        on_result=lambda result: tqdm.write(_describe(result)),
    )

    print()
    print(report)


def aggressive(args):
    """Re-encode one file until it fits under a size ceiling."""
    config = resolve_config(args)
    target = Path(args.file)
    if not target.is_file():
        print(f"Error: File not found: {target}")
        sys.exit(1)

    converter = WebPConverter(config, ledger=open_ledger(args, config))
    target_bytes = int(args.target_kb * 1024)
    try:
        result = converter.optimize_to_target(
            target,
            target_bytes,
            start_quality=args.start_quality,
            min_quality=args.min_quality,
            step=args.step,
        )
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if result.output is None:
        print(f"Failed: {target.name} ({result.error})")
        return

    print(f"Original size: {human_size(result.original_size)}")
    print(f"Optimized size: {human_size(result.webp_size)} at quality {result.quality}")
    print(f"Reduction: {result.reduction:.1f}%")
    print(f"Written to: {result.output}")
    if result.error:
        print(f"Warning: {result.error}")


def rewrite(args):
    """Preview the WebP paths a batch of image paths resolves to."""
    optimizer = BatchOptimizer(delay=0)

    with tqdm(total=len(args.paths), desc="Rewriting") as bar:
        batch = asyncio.run(optimizer.optimize_all(args.paths, on_progress=lambda _: bar.update(1)))

    for original, result in zip(args.paths, batch.results):
        marker = "=" if original == result else "->"
        print(f"{original} {marker} {result}")

    changed = sum(1 for original, result in zip(args.paths, batch.results) if original != result)
    print(f"\n{changed} of {batch.total} path(s) rewritten")


def stats(args):
    """Summarize the conversion ledger."""
    config = resolve_config(args)
    if args.no_ledger or config.ledger is None:
        print("Ledger disabled")
        return
    if not Path(config.ledger).exists():
        print(f"No ledger found at {config.ledger}")
        return

    ledger = ConversionLedger(config.ledger)
    records = ledger.list_all()
    original, webp = ledger.totals()

    print(f"Conversions recorded: {len(records)}")
    if args.verbose:
        for record in records:
            print(
                f"  {record.source} -> {record.output} "
                f"({human_size(record.original_size)} -> {human_size(record.webp_size)}, q{record.quality})"
            )
    print(f"Original size: {human_size(original)}")
    print(f"WebP size: {human_size(webp)}")
    if original:
        print(f"Bandwidth savings: {human_size(original - webp)} ({(1 - webp / original) * 100:.1f}%)")


def init(args):
    """Write a sample YAML config file."""
    path = Path(args.path)
    if path.exists() and not args.force:
        print(f"Error: {path} already exists (use --force to overwrite)")
        sys.exit(1)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SAMPLE_CONFIG)
    print(f"Wrote sample config to {path}")


def main(argv=None):
    load_dotenv()
    parser = argparse.ArgumentParser(
        description="WebP pipeline - convert site images to WebP and preview path rewrites",
        epilog="Environment variables: WEBP_SOURCE_DIR, WEBP_OUTPUT_DIR, WEBP_QUALITY, WEBP_LEDGER",
    )
    parser.add_argument("--config", "-c", help="Path to YAML config file")
    parser.add_argument("--no-ledger", action="store_true", help="Do not record conversions in the ledger")

    subparsers = parser.add_subparsers(dest="command")

    # --- convert ---
    convert_parser = subparsers.add_parser("convert", help="Convert the source directory to WebP (default)")
    convert_parser.add_argument("--source", "-s", help="Source directory (default: public)")
    convert_parser.add_argument("--output", "-o", help="Output directory (default: public/webp)")
    convert_parser.add_argument("--quality", "-q", type=int, help="WebP quality 0-100 (default: 85)")
    convert_parser.add_argument("--max-dimension", type=int, help="Downscale images larger than this")
    convert_parser.add_argument("--recursive", "-r", action="store_true", help="Scan subdirectories")
    convert_parser.add_argument("--no-mirror", action="store_true", help="Do not copy outputs next to their sources")
    convert_parser.set_defaults(func=convert)

    # --- aggressive ---
    aggressive_parser = subparsers.add_parser("aggressive", help="Shrink one image under a size ceiling")
    aggressive_parser.add_argument("file", help="Image to optimize in place")
    aggressive_parser.add_argument("--target-kb", type=float, default=500, help="Size ceiling in KB (default: 500)")
    aggressive_parser.add_argument("--start-quality", type=int, default=75, help="First quality tried (default: 75)")
    aggressive_parser.add_argument("--min-quality", type=int, default=30, help="Lowest quality tried (default: 30)")
    aggressive_parser.add_argument("--step", type=int, default=10, help="Quality decrement (default: 10)")
    aggressive_parser.set_defaults(func=aggressive)

    # --- rewrite ---
    rewrite_parser = subparsers.add_parser("rewrite", help="Show the WebP path of each given image path")
    rewrite_parser.add_argument("paths", nargs="+", help="Image paths or URLs")
    rewrite_parser.set_defaults(func=rewrite)

    # --- stats ---
    stats_parser = subparsers.add_parser("stats", help="Summarize recorded conversions")
    stats_parser.add_argument("--verbose", "-v", action="store_true", help="List every record")
    stats_parser.set_defaults(func=stats)

    # --- init ---
    init_parser = subparsers.add_parser("init", help="Write a sample config file")
    init_parser.add_argument("path", help="Where to write the config")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite an existing file")
    init_parser.set_defaults(func=init)

    argv = sys.argv[1:] if argv is None else list(argv)
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args([*argv, "convert"])
    args.func(args)


if __name__ == "__main__":
    main()
