"""
Main entry point for the Pixellar desktop client.
Qt drives the asyncio event loop through QtAsyncio.
"""

import logging
import sys

from PySide6.QtWidgets import QApplication
from PySide6 import QtAsyncio

import config
from pixellar.application import PixellarApp

logger = logging.getLogger("pixellar")


def main():
    """Main entry point."""
    config.configure_logging()
    config.ensure_directories()

    print("=" * 70)
    print(f"{config.APP_TITLE} - Multi-chain pixel canvas")
    print("=" * 70)
    print()
    logger.info("Initializing Qt application...")

    # Create Qt application
    app = QApplication(sys.argv)
    app.setApplicationName(config.APP_TITLE)
    app.setOrganizationName("Pixellar")

    logger.info("Creating application...")

    pixellar = PixellarApp()
    pixellar.setup()
    app.aboutToQuit.connect(pixellar.shutdown)

    logger.info("Application ready!")
    print()
    print("Controls:")
    print("   - Pan: drag with left or middle mouse button")
    print("   - Zoom: mouse scroll wheel")
    print("   - Place pixel: click a cell (connect a wallet first)")
    print("   - Pick color: select the Eyedropper tool")
    print()

    # Runs start() and keeps the loop alive until the window closes
    QtAsyncio.run(pixellar.start(), keep_running=True, quit_qapp=True)


if __name__ == "__main__":
    main()
