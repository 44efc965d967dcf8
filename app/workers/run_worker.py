from __future__ import annotations

import asyncio
import logging

from arq.worker import run_worker

from app.core.logging import configure_logging
from app.workers.arq_worker import WorkerSettings

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging()
    # arq calls asyncio.get_event_loop() during init; newer interpreters no longer create one implicitly.
    asyncio.set_event_loop(asyncio.new_event_loop())
    logger.info("Starting scheduler worker")
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
