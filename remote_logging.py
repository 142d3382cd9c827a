# remote_logging.py - Ship warnings and errors to the Fivemanage logs API
import logging
import os

import requests

import config

LEVEL_NAMES = {
    logging.DEBUG: 'debug',
    logging.INFO: 'info',
    logging.WARNING: 'warn',
    logging.ERROR: 'error',
    logging.CRITICAL: 'critical',
}

# LogRecord attributes that are not caller-supplied metadata
_RESERVED = set(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {'message', 'asctime', 'security'}


class FivemanageHandler(logging.Handler):
    """Logging handler posting records to Fivemanage.

    Records logged with ``extra={"security": True}`` land in the security
    dataset and are tagged ``security``. Any other ``extra`` keys travel as
    metadata.
    """

    def __init__(self, api_key, url=None, dataset=None, security_dataset=None, level=logging.WARNING):
        super().__init__(level)
        self.api_key = api_key
        self.url = url or config.FIVEMANAGE_LOGS_URL
        self.dataset = dataset or config.FIVEMANAGE_DATASET
        self.security_dataset = security_dataset or config.FIVEMANAGE_SECURITY_DATASET

    def build_payload(self, record):
        metadata = {
            'app': config.FIVEMANAGE_APP,
            'environment': os.environ.get('FLASK_ENV', 'production'),
            'logger': record.name,
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and value is not None:
                metadata[key] = value
        if record.exc_info:
            metadata['error'] = (self.formatter or logging.Formatter()).formatException(record.exc_info)

        tags = ['security'] if getattr(record, 'security', False) else []
        return {
            'level': LEVEL_NAMES.get(record.levelno, 'info'),
            'message': record.getMessage(),
            'metadata': metadata,
            'tags': tags,
        }

    def emit(self, record):
        try:
            dataset = self.security_dataset if getattr(record, 'security', False) else self.dataset
            requests.post(
                self.url,
                json=self.build_payload(record),
                headers={
                    'Authorization': self.api_key,
                    'X-Fivemanage-Dataset': dataset,
                },
                timeout=5,
            )
        except Exception:
            self.handleError(record)


def install(logger):
    """Attach the Fivemanage handler once when a logs key is configured"""
    if not config.FIVEMANAGE_LOGS_KEY:
        logger.info("FIVEMANAGE_API_KEY not set; remote logging disabled")
        return None
    for handler in logger.handlers:
        if isinstance(handler, FivemanageHandler):
            return handler
    handler = FivemanageHandler(config.FIVEMANAGE_LOGS_KEY)
    logger.addHandler(handler)
    return handler
