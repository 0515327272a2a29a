#!/usr/bin/env python3
"""Start the paper.io match server."""

import logging
import os

from paperio.app import create_app
from paperio.config import MatchSettings

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("PAPERIO_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = MatchSettings.from_env()
    port = int(os.environ.get("PAPERIO_PORT", "5000"))

    print("=" * 60)
    print("Paper.io Match Server")
    print("=" * 60)
    print(f"Listening on: http://localhost:{port}")
    print(f"Grid {settings.width}x{settings.height}, {settings.players_per_match} player(s), "
          f"{settings.tick_count} ticks every {settings.tick_interval_seconds}s")
    print(f"Disconnect policy: {settings.disconnect_policy.value}")
    print("Press Ctrl+C to stop")
    print("=" * 60)

    create_app(settings).run(host="0.0.0.0", port=port, debug=False)
