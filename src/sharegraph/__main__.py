"""
Main entry point for ShareGraph.

Runs the background worker that processes ``createShare`` jobs.
"""

import asyncio
import sys

from .services.share import ShareContext, ShareService
from .shared import get_settings, setup_logging


async def run_worker() -> None:
    service = ShareService(ShareContext.from_settings())
    worker = service.create_worker()
    try:
        await worker.run()
    finally:
        await service.ctx.job_queue.close()


def main():
    """Main entry point."""
    setup_logging()

    if len(sys.argv) > 1 and sys.argv[1] == "worker":
        if not get_settings().redis_url:
            print("SHAREGRAPH_REDIS_URL must be set to run the share worker")
            sys.exit(1)
        try:
            asyncio.run(run_worker())
        except KeyboardInterrupt:
            pass
    else:
        print("ShareGraph - publish and duplicate engine for a shared content graph")
        print("")
        print("Usage:")
        print("  python -m sharegraph worker   # Process createShare jobs from Redis")


if __name__ == "__main__":
    main()
