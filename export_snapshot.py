"""
Exports the current shared canvas from the mirrored store to a PNG file.
"""

import argparse
import sys
from pathlib import Path

import config
from pixellar.core.errors import StoreError
from pixellar.core.pixel_cache import PixelCache
from pixellar.core.renderer import CanvasRenderer
from pixellar.store.client import MirroredStore


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Export a snapshot of the shared canvas")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=config.OUTPUT_DIR / "canvas.png",
        help="PNG file to write (default: output/canvas.png)",
    )
    parser.add_argument(
        "-s", "--pixel-size",
        type=int,
        default=config.PIXEL_SIZE,
        help="Output pixels per cell",
    )
    parser.add_argument("--grid", action="store_true", help="Draw grid lines between cells")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config.configure_logging()

    print("=" * 70)
    print("PIXELLAR - Canvas Snapshot")
    print("=" * 70)
    print()

    is_valid, message = config.validate_store()
    if not is_valid:
        print(f"[ERROR] {message}")
        return 1
    print(f"   {message}")

    if args.pixel_size < 1:
        print("[ERROR] Pixel size must be at least 1")
        return 1

    # 1. Fetch rows
    print("Step 1/2: Fetching pixels...")
    store = MirroredStore(
        config.SUPABASE_URL,
        config.SUPABASE_KEY,
        table=config.PIXELS_TABLE,
        timeout=config.HTTP_TIMEOUT_SECONDS,
    )
    try:
        rows = store.fetch_all()
    except StoreError as e:
        print(f"   [ERROR] {e}")
        return 1

    cache = PixelCache(config.CANVAS_WIDTH, config.CANVAS_HEIGHT, len(config.PALETTE))
    loaded = cache.load(rows)
    print(f"   [OK] {loaded} painted cells")
    print()

    # 2. Render
    print("Step 2/2: Rendering...")
    renderer = CanvasRenderer(config.PALETTE, config.CANVAS_WIDTH, config.CANVAS_HEIGHT)
    try:
        path = renderer.export_png(
            cache,
            args.output,
            pixel_size=args.pixel_size,
            with_grid=args.grid,
            grid_color=config.GRID_COLOR,
        )
    except OSError as e:
        print(f"   [ERROR] Could not write {args.output}: {e}")
        return 1

    width = config.CANVAS_WIDTH * args.pixel_size
    height = config.CANVAS_HEIGHT * args.pixel_size
    print(f"   [OK] Saved: {path} ({width}x{height})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
