"""
Centralized configuration for the Pixellar client.
"""

import logging
import os
from pathlib import Path

# ==================== PATHS ====================

# Project root
PROJECT_ROOT = Path(__file__).parent

# Output (canvas snapshots)
OUTPUT_DIR = PROJECT_ROOT / "output"


# ==================== CANVAS ====================

# Grid size in cells
CANVAS_WIDTH = 500
CANVAS_HEIGHT = 500

# Display size of each cell in pixels at scale 1.0
PIXEL_SIZE = 2

# r/place 16-color palette (index 0 is the background)
PALETTE = [
    (0xFF, 0xFF, 0xFF),  # 0 - White
    (0xE4, 0xE4, 0xE4),  # 1 - Light Gray
    (0x88, 0x88, 0x88),  # 2 - Gray
    (0x22, 0x22, 0x22),  # 3 - Black
    (0xFF, 0xA7, 0xD1),  # 4 - Pink
    (0xE5, 0x00, 0x00),  # 5 - Red
    (0xE5, 0x95, 0x00),  # 6 - Orange
    (0xA0, 0x6A, 0x42),  # 7 - Brown
    (0xE5, 0xD9, 0x00),  # 8 - Yellow
    (0x94, 0xE0, 0x44),  # 9 - Light Green
    (0x02, 0xBE, 0x01),  # 10 - Green
    (0x00, 0xD3, 0xDD),  # 11 - Cyan
    (0x00, 0x83, 0xC7),  # 12 - Blue
    (0x00, 0x00, 0xEA),  # 13 - Dark Blue
    (0xCF, 0x6E, 0xE4),  # 14 - Purple
    (0x82, 0x00, 0x80),  # 15 - Dark Purple
]

# Color selected at startup (red)
DEFAULT_COLOR = 5

# Grid line color (RGBA) for snapshots and the canvas overlay
GRID_COLOR = (128, 128, 128, 128)


# ==================== PLACEMENT ====================

# Seconds a chain stays locked after a successful placement
COOLDOWN_SECONDS = 10.0

# Seconds an error/success notice stays visible
NOTICE_SECONDS = 3.0

# Chain selected at startup
DEFAULT_CHAIN = "sui"


# ==================== VIEWPORT ====================

MIN_SCALE = 0.5
MAX_SCALE = 5.0
ZOOM_IN_FACTOR = 1.1
ZOOM_OUT_FACTOR = 0.9

# Drag distance (px) below which a press/release is a click
CLICK_THRESHOLD_PX = 5.0

# "pointer": the cell under the mouse is selected
# "center": the cell under the viewport center is selected (pan snaps to cells)
INTERACTION_MODE = "pointer"


# ==================== MIRRORED STORE ====================

SUPABASE_URL = os.environ.get("PIXELLAR_SUPABASE_URL", "")
SUPABASE_KEY = os.environ.get("PIXELLAR_SUPABASE_KEY", "")
PIXELS_TABLE = "pixels"

# Realtime heartbeat and reconnect backoff cap (seconds)
REALTIME_HEARTBEAT_SECONDS = 30.0
REALTIME_MAX_BACKOFF_SECONDS = 30.0


# ==================== CHAINS ====================

# Local wallet bridge that holds keys and signs on behalf of the user
WALLET_BRIDGE_URL = os.environ.get("PIXELLAR_WALLET_BRIDGE_URL", "http://127.0.0.1:8765")

# Sui
SUI_PACKAGE_ID = os.environ.get("PIXELLAR_SUI_PACKAGE_ID", "")
SUI_CANVAS_OBJECT_ID = os.environ.get("PIXELLAR_SUI_CANVAS_OBJECT_ID", "")

# Stellar (Soroban)
STELLAR_HORIZON_URL = os.environ.get("PIXELLAR_STELLAR_HORIZON_URL", "https://horizon-testnet.stellar.org")
STELLAR_CANVAS_CONTRACT = os.environ.get("PIXELLAR_STELLAR_CANVAS_CONTRACT", "")
STELLAR_NETWORK_PASSPHRASE = "Test SDF Network ; September 2015"

# Starknet
STARKNET_CONTRACT_ADDRESS = os.environ.get("PIXELLAR_STARKNET_CONTRACT_ADDRESS", "")

# Timeout for every outgoing HTTP request (seconds)
HTTP_TIMEOUT_SECONDS = 30


# ==================== APPLICATION ====================

APP_TITLE = "Pixellar"

# Initial window size
WINDOW_SIZE = (1280, 800)

# Logging
LOG_LEVEL = os.environ.get("PIXELLAR_LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR


# ==================== HELPERS ====================

def ensure_directories():
    """Creates the directories the application writes to."""
    OUTPUT_DIR.mkdir(exist_ok=True)


def configure_logging(level: str = None):
    """Configures root logging with the same "[LEVEL] message" layout used on the console."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="[%(levelname)s] %(name)s: %(message)s",
    )


def validate_store():
    """
    Checks that the mirrored store is configured.

    Returns:
        tuple: (is_valid, message)
    """
    if not SUPABASE_URL or not SUPABASE_KEY:
        return False, "PIXELLAR_SUPABASE_URL / PIXELLAR_SUPABASE_KEY are not set"
    return True, f"Store: {SUPABASE_URL}"


if __name__ == "__main__":
    print("=== Pixellar - Configuration ===\n")

    print(f"Project root: {PROJECT_ROOT}")
    print(f"Canvas: {CANVAS_WIDTH}x{CANVAS_HEIGHT} cells, {len(PALETTE)} colors")
    print(f"Cooldown: {COOLDOWN_SECONDS:.0f}s per chain")
    print(f"Wallet bridge: {WALLET_BRIDGE_URL}\n")

    is_valid, message = validate_store()
    print(f"   {message}\n")
