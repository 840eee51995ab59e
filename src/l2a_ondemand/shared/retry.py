"""Retry utilities."""

from typing import Callable, TypeVar, Optional, Type, Tuple

T = TypeVar('T')


class RetryStrategy:
    """
    Immediate retry of failed calls.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates on the first occurrence. When every attempt fails, the
    last exception is re-raised.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        retry_on: Tuple[Type[Exception], ...] = (Exception,),
        on_retry: Optional[Callable[[int, Exception], None]] = None
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got: {max_attempts}")
        self.max_attempts = max_attempts
        self.retry_on = retry_on
        self.on_retry = on_retry

    def execute(
        self,
        func: Callable[..., T],
        *args,
        **kwargs
    ) -> T:
        """
        Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Function result

        Raises:
            Last retryable exception if all attempts fail, or the first
            non-retryable one
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except self.retry_on as e:
                if attempt == self.max_attempts:
                    raise

                if self.on_retry:
                    self.on_retry(attempt, e)

        raise RuntimeError("Retry logic failed unexpectedly")
