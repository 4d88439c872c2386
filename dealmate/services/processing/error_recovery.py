"""Error classification and bounded retry policy for processing sessions."""

import asyncio
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from dealmate.core.config import settings
from dealmate.schemas.processing import CIMError, ErrorRecoveryState, ErrorType
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

ErrorInput = Union[BaseException, str]

# Ordered, first match wins. "timeout" appears under NETWORK first, so the
# TIMEOUT rule is only reached through "504".
CLASSIFICATION_RULES: List[Tuple[ErrorType, Tuple[str, ...], bool, str]] = [
    (ErrorType.NETWORK, ("fetch", "network", "timeout"), True,
     "Check network connection and retry"),
    (ErrorType.AUTHENTICATION, ("401", "authentication", "unauthorized"), False,
     "Please log in again"),
    (ErrorType.PARSING, ("parse", "json", "syntax"), True,
     "Retry with different parsing strategy"),
    (ErrorType.VALIDATION, ("validation", "invalid", "format"), False,
     "Check file format and try again"),
    (ErrorType.TIMEOUT, ("timeout", "504"), True,
     "The operation timed out. Please try again."),
]

UNKNOWN_RECOVERY_ACTION = "An unexpected error occurred. Please try again."

BACKOFF_ERROR_TYPES = (ErrorType.NETWORK, ErrorType.TIMEOUT)


def error_message_of(error: ErrorInput) -> str:
    if isinstance(error, str):
        return error
    return str(error) or type(error).__name__


def classify_error(error: ErrorInput, agent: Optional[str] = None) -> CIMError:
    """Classify a failure by case-insensitive substring checks on its message."""
    message = error_message_of(error)
    lowered = message.lower()

    for error_type, needles, retryable, recovery_action in CLASSIFICATION_RULES:
        if any(needle in lowered for needle in needles):
            return CIMError(
                type=error_type,
                message=message,
                agent=agent,
                retryable=retryable,
                recovery_action=recovery_action,
            )

    return CIMError(
        type=ErrorType.UNKNOWN,
        message=message,
        agent=agent,
        retryable=True,
        recovery_action=UNKNOWN_RECOVERY_ACTION,
    )


class ErrorRecovery:
    """Per-session error log and retry counter.

    ``attempt_recovery`` increments the counter before running the retry
    function; a failed attempt does not advance it further, so callers decide
    whether to try again.
    """

    def __init__(
        self,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._max_retries = max_retries if max_retries is not None else settings.processing.max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.processing.retry_backoff_seconds
        )
        self._sleep = sleep
        self.state = ErrorRecoveryState(max_retries=self._max_retries)

    def classify(self, error: ErrorInput, agent: Optional[str] = None) -> CIMError:
        return classify_error(error, agent)

    def handle_error(self, error: ErrorInput, agent: Optional[str] = None) -> CIMError:
        """Classify and record a failure."""
        cim_error = classify_error(error, agent)
        self.state.errors.append(cim_error)

        agent_suffix = f" in {agent}" if agent else ""
        LOGGER.error(
            f"CIM processing error [{cim_error.type.value}]{agent_suffix}: {cim_error.message}",
            extra={"error_type": cim_error.type.value, "retryable": cim_error.retryable},
        )
        return cim_error

    @property
    def last_error(self) -> Optional[CIMError]:
        return self.state.errors[-1] if self.state.errors else None

    def can_retry(self, error: CIMError) -> bool:
        return error.retryable and self.state.retry_count < self.state.max_retries

    async def attempt_recovery(
        self,
        retry_fn: Callable[[], Awaitable[object]],
        error: CIMError,
    ) -> bool:
        if not self.can_retry(error):
            LOGGER.info(
                "Error not retryable or max retries reached",
                extra={"error_type": error.type.value, "retry_count": self.state.retry_count},
            )
            return False

        previous_retries = self.state.retry_count
        self.state.retry_count += 1
        self.state.is_recovering = True

        try:
            LOGGER.info(
                f"Attempting recovery (attempt {self.state.retry_count}/{self.state.max_retries})"
            )
            if error.type in BACKOFF_ERROR_TYPES:
                await self._sleep(self.backoff_seconds * previous_retries)

            await retry_fn()

            LOGGER.info("Recovery successful")
            return True
        except Exception as e:
            LOGGER.error(f"Recovery attempt failed: {e}", exc_info=True)
            return False
        finally:
            self.state.is_recovering = False

    def reset(self) -> None:
        self.state = ErrorRecoveryState(max_retries=self._max_retries)
