"""
Bounded retries for third-party providers.
A fixed number of retries with linear backoff (delay, 2*delay, 3*delay, ...).
"""

import logging
from typing import Tuple, Type

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing
)

from echo_agent.config import Settings
from echo_agent.core.exceptions import ProviderUnavailableException

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    httpx.TransportError,
    ProviderUnavailableException
)


def provider_retrying(
    settings: Settings,
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS
) -> AsyncRetrying:
    """Build a retry controller from the provider settings."""
    max_retries = settings.PROVIDER_MAX_RETRIES
    delay = settings.PROVIDER_RETRY_DELAY_SECONDS

    def log_retry(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(f"Provider call failed ({error}), retrying... ({state.attempt_number}/{max_retries})")

    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_incrementing(start=delay, increment=delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=log_retry,
        reraise=True
    )
