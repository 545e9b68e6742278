"""AWS Lambda handler running one Quicket ingest per invocation."""
import json
import logging
import os
import time
from typing import Any, Dict

from log_config import setup_logging
from service import build_orchestrator
from settings import ConfigError, load_config


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the scheduled Quicket ingest.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and run statistics
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info("Lambda execution started")

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Invalid configuration',
                'error': str(e),
                'error_type': type(e).__name__
            })
        }

    try:
        # A fresh orchestrator per invocation, so its run guard is never held here
        report = build_orchestrator(config).run_ingest()
    except Exception as e:
        duration = round(time.time() - start_time, 2)
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={'duration_seconds': duration, 'error_type': type(e).__name__},
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Ingest failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': duration
            })
        }

    duration = round(time.time() - start_time, 2)

    if not report.succeeded:
        logger.error(
            "Lambda execution failed",
            extra={'duration_seconds': duration, 'error_type': report.error_type}
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Ingest failed',
                'error': report.error,
                'error_type': report.error_type,
                'duration_seconds': duration
            })
        }

    logger.info(
        "Lambda execution completed successfully",
        extra={'duration_seconds': duration}
    )
    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': 'Ingest completed successfully',
            'source': 'quicket',
            'statistics': report.statistics(),
            'errors': report.upsert.errors if report.upsert else []
        })
    }
