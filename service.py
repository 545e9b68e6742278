"""Long-running Quicket ingestor process."""
import logging
import sys

from dotenv import load_dotenv
from supabase import create_client

from log_config import setup_logging
from processor.event_processor import EventProcessor
from scheduler.orchestrator import IngestOrchestrator
from scheduler.ticker import CronTicker
from scraper.quicket_client import QuicketClient
from settings import AppConfig, ConfigError, load_config
from storage.event_gateway import EventGateway
from storage.supabase_store import SupabaseEventStore

logger = logging.getLogger(__name__)


def build_orchestrator(config: AppConfig) -> IngestOrchestrator:
    """Wire the pipeline components for the given configuration."""
    supabase = create_client(config.supabase_url, config.supabase_service_role_key)
    return IngestOrchestrator(
        client=QuicketClient(
            api_key=config.quicket_api_key,
            page_size=config.page_size,
            timeout=config.timeout_seconds
        ),
        processor=EventProcessor(
            target_city=config.target_city,
            target_country=config.target_country
        ),
        gateway=EventGateway(SupabaseEventStore(supabase)),
        business_id=config.system_business_id,
        preferred_user_id=config.system_user_id
    )


def main() -> int:
    load_dotenv()

    try:
        config = load_config()
    except ConfigError as e:
        setup_logging()
        logger.error(f"Fatal: {e}")
        return 1

    setup_logging(config.log_level)
    logger.info(
        "Quicket ingestor started",
        extra={
            'schedule': config.schedule,
            'city': config.target_city,
            'page_size': config.page_size
        }
    )

    orchestrator = build_orchestrator(config)
    ticker = CronTicker(config.schedule)
    ticker.start()

    try:
        if config.run_on_start:
            logger.info("RUN_ON_START set. Running immediate ingest")
            orchestrator.run_ingest()
        else:
            logger.info("Waiting for next scheduled run. Set RUN_ON_START=true for immediate execution.")
        orchestrator.run_forever(ticker)
    except KeyboardInterrupt:
        logger.info("Interrupted. Shutting down")
    finally:
        ticker.stop()

    return 0


if __name__ == '__main__':
    sys.exit(main())
