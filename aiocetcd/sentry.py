import os
import logging
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

logger = logging.getLogger(__name__)

def setup_sentry(dsn: str='') -> bool:
    '''
    Report uncaught errors of the command line tool to Sentry,
    configured by CETCD_SENTRY_DSN, CETCD_SENTRY_ENV and
    CETCD_SENTRY_TRACES.
    '''
    dsn = dsn or os.getenv('CETCD_SENTRY_DSN', '')
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=os.getenv('CETCD_SENTRY_ENV') or None,
        integrations=[AioHttpIntegration()],
        traces_sample_rate=float(os.getenv('CETCD_SENTRY_TRACES', '0')))
    logger.debug('sentry enabled')
    return True
