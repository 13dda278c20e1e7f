"""AWS Lambda handler for the connpass materials batch."""
import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from catalog.connpass_client import ConnpassClient
from catalog.rate_limiter import shared_rate_limiter
from notification.sns_publisher import SNSPublisher
from processor.orchestrator import BatchOrchestrator, collect_statistics
from storage.dynamodb_manager import DynamoDBManager
from storage.secrets_manager import SecretsProvider

# Attributes present on every LogRecord; anything else came from extra=
_STANDARD_RECORD_ATTRS = set(
    logging.LogRecord('', 0, '', 0, '', None, None).__dict__
) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class BatchConfig:
    """Runtime configuration read from environment variables."""
    table_name: str = 'study-sessions'
    log_level: str = 'INFO'
    sns_topic_arn: str = ''
    secret_name: str = 'connpass-api-key'
    fallback_secret_names: List[str] = field(default_factory=list)
    discovery_keyword: str = '広島'
    discovery_max_results: int = 100
    rate_limit_seconds: float = 5.0
    item_delay_seconds: float = 1.0
    timeout_seconds: int = 30

    @classmethod
    def from_environ(cls) -> 'BatchConfig':
        fallbacks = os.environ.get('CONNPASS_API_KEY_FALLBACK_SECRETS', '')
        return cls(
            table_name=os.environ.get('TABLE_NAME', 'study-sessions'),
            log_level=os.environ.get('LOG_LEVEL', 'INFO'),
            sns_topic_arn=os.environ.get('SNS_TOPIC_ARN', ''),
            secret_name=os.environ.get(
                'CONNPASS_API_KEY_SECRET_NAME', 'connpass-api-key'
            ),
            fallback_secret_names=[
                name.strip() for name in fallbacks.split(',') if name.strip()
            ],
            discovery_keyword=os.environ.get('DISCOVERY_KEYWORD', '広島'),
            discovery_max_results=int(
                os.environ.get('DISCOVERY_MAX_RESULTS', '100')
            ),
            rate_limit_seconds=float(os.environ.get('RATE_LIMIT_SECONDS', '5')),
            item_delay_seconds=float(os.environ.get('ITEM_DELAY_SECONDS', '1')),
            timeout_seconds=int(os.environ.get('TIMEOUT_SECONDS', '30'))
        )


def build_orchestrator(config: BatchConfig) -> BatchOrchestrator:
    """Wire the AWS collaborators and connpass client into an orchestrator."""
    rate_limiter = shared_rate_limiter()
    rate_limiter.min_interval = config.rate_limit_seconds

    def client_factory(api_key: str) -> ConnpassClient:
        return ConnpassClient(
            api_key,
            rate_limiter=rate_limiter,
            timeout=config.timeout_seconds
        )

    return BatchOrchestrator(
        secrets=SecretsProvider(
            config.secret_name,
            fallback_names=config.fallback_secret_names
        ),
        store=DynamoDBManager(table_name=config.table_name),
        notifier=SNSPublisher(config.sns_topic_arn),
        client_factory=client_factory,
        keyword=config.discovery_keyword,
        max_results=config.discovery_max_results,
        item_delay=config.item_delay_seconds
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the materials batch.

    Args:
        event: EventBridge scheduled event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and the batch result as body
    """
    config = BatchConfig.from_environ()

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'event_id': event.get('id') if isinstance(event, dict) else None,
            'request_id': getattr(context, 'aws_request_id', None),
            'table_name': config.table_name,
            'discovery_keyword': config.discovery_keyword
        }
    )

    try:
        orchestrator = build_orchestrator(config)
        result = orchestrator.run()
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Batch update failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    duration = time.time() - start_time
    status_code = 500 if result.failed else 200

    if result.failed:
        message = 'Batch update failed'
        logger.error(
            message,
            extra={'duration_seconds': round(duration, 2), **result.to_dict()}
        )
    else:
        message = 'Complete batch update finished'
        logger.info(
            "Lambda execution completed successfully",
            extra={'duration_seconds': round(duration, 2), **result.to_dict()}
        )

    body = {'message': message, **result.to_dict()}
    body['duration_seconds'] = round(duration, 2)

    return {
        'statusCode': status_code,
        'body': json.dumps(body, ensure_ascii=False)
    }


class _ManualContext:
    """Minimal stand-in for a Lambda context during manual runs."""

    function_name = 'batchUpdateMaterials'

    def __init__(self):
        self.aws_request_id = f"manual-{int(time.time() * 1000)}"


def manual_batch_update() -> Dict[str, Any]:
    """Run the batch outside EventBridge with a synthetic scheduled event."""
    event = {
        'id': 'manual-execution',
        'detail-type': 'Scheduled Event',
        'source': 'manual',
        'detail': {}
    }
    return lambda_handler(event, _ManualContext())


def get_batch_statistics() -> Dict[str, Any]:
    """
    Report material coverage of approved connpass events.

    Returns:
        Dict with total, with/without materials counts and last update time
    """
    config = BatchConfig.from_environ()
    store = DynamoDBManager(table_name=config.table_name)
    return asdict(collect_statistics(store))


if __name__ == '__main__':
    print(json.dumps(manual_batch_update(), indent=2, ensure_ascii=False))
