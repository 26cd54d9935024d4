# coding: utf-8
"""
Sentry configuration for error monitoring and tracking
"""
import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from loguru import logger

from config.config import SENTRY_DSN, ENVIRONMENT


def init_sentry() -> None:
    """
    Initialize Sentry SDK for error monitoring

    FastAPI/Starlette integrations are enabled automatically by the SDK.
    """
    if not SENTRY_DSN:
        logger.warning("SENTRY_DSN not configured - error monitoring disabled")
        return

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            integrations=[
                AsyncioIntegration(),
                SqlalchemyIntegration(),  # Database queries tracking
            ],
            traces_sample_rate=0.1 if ENVIRONMENT == "production" else 1.0,
            sample_rate=1.0,
            attach_stacktrace=True,
            send_default_pii=False,  # Lead contact data must not leave the service
            max_breadcrumbs=50,
            before_send=before_send_hook,
        )

        logger.info(f"Sentry initialized successfully (Environment: {ENVIRONMENT})")

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


def before_send_hook(event, hint):
    """
    Strip credentials and payout details from events before sending
    """
    if 'exc_info' in hint:
        exc_type, exc_value, tb = hint['exc_info']
        if isinstance(exc_value, KeyboardInterrupt):
            return None

    request = event.get('request')
    if request:
        headers = request.get('headers', {})
        if 'Authorization' in headers:
            headers['Authorization'] = '[Filtered]'
        # Payment method bodies carry IBANs and account ids
        if request.get('data'):
            request['data'] = '[Filtered]'

    return event
