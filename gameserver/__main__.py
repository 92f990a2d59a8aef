import argparse
import asyncio
import logging
import os

from engine.models import GameConfig
from .server import GameServer


def main() -> None:
    parser = argparse.ArgumentParser(description="Mexico & Lorum game server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 3000)))
    parser.add_argument(
        "--trick-delay-ms",
        type=int,
        default=3_000,
        help="How long a completed trick stays on the table before it is cleared (milliseconds)",
    )
    parser.add_argument(
        "--target-score",
        type=int,
        default=101,
        help="Mexico ends once any player reaches this score",
    )
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level))

    config = GameConfig(target_score=args.target_score, trick_delay_ms=args.trick_delay_ms)
    server = GameServer(config)
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
