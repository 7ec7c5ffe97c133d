"""CLI entry point for the insertion runner."""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from common.config import get_settings
from common.db import get_engine
from meter_ingest.cache.reading_cache import ReadingCache
from meter_ingest.core.pipeline.config import PipelineConfig
from meter_ingest.core.pipeline.processor import ReadingInsertionPipeline
from meter_ingest.persistence.inserter import TransactionalInserter
from meter_ingest.persistence.schema import create_schema

from .config import RunnerConfig
from .loader import load_readings

logger = logging.getLogger(__name__)


def main(argv=None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Meter reading batch insertion runner")
    p.add_argument("readings_file", type=Path, help="JSON array or JSON lines of readings")
    p.add_argument("--sleep-seconds", type=float, default=None)
    p.add_argument("--once", action="store_true", help="run a single cycle and exit")
    p.add_argument("--create-schema", action="store_true", help="create meter_reading if missing")
    args = p.parse_args(argv)

    settings = get_settings()
    cfg = RunnerConfig(
        readings_file=args.readings_file,
        sleep_seconds=(
            args.sleep_seconds
            if args.sleep_seconds is not None
            else settings.collection_interval_seconds
        ),
        once=bool(args.once),
        create_schema=bool(args.create_schema),
    )

    engine = get_engine(settings)
    if cfg.create_schema:
        create_schema(engine)

    cache = ReadingCache(lock_timeout=settings.cache_lock_timeout_seconds)
    pipeline = ReadingInsertionPipeline(
        cache,
        TransactionalInserter(engine),
        config=PipelineConfig.from_settings(settings),
    )
    cache.accumulate(load_readings(cfg.readings_file))

    logger.info("Insertion runner started")
    logger.info("Config: file=%s, sleep=%.1fs, once=%s", cfg.readings_file, cfg.sleep_seconds, cfg.once)

    try:
        while True:
            metrics = pipeline.run_cycle()
            logger.info("Metrics: %s", metrics.to_dict())
            if cfg.once or cache.pending_count() == 0:
                return
            logger.info("%d readings still pending, waiting %.1fs...", cache.pending_count(), cfg.sleep_seconds)
            time.sleep(cfg.sleep_seconds)
    except KeyboardInterrupt:
        pipeline.cancel()
        logger.warning("Interrupted with %d readings pending", cache.pending_count())
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
