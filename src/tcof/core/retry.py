"""Store 调用超时与有限重试

只对幂等操作（读取、用相同 patch 重放的更新）使用多次尝试；
插入和删除以 attempts=1 调用，仅获得超时保护。
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from .config import RetryPolicy
from .exceptions import StoreUnavailableError

log = structlog.get_logger()

T = TypeVar("T")


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    op_name: str,
    policy: RetryPolicy,
    attempts: int | None = None,
) -> T:
    """执行 Store 调用，超时或不可用时按策略重试

    Args:
        operation: 每次尝试重新构造协程的工厂函数
        op_name: 日志中的操作名
        policy: 超时与重试策略
        attempts: 覆盖 policy.attempts（非幂等写入传 1）

    Raises:
        StoreUnavailableError: 所有尝试均失败
    """
    max_attempts = attempts if attempts is not None else policy.attempts
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=policy.timeout_s)
        except (StoreUnavailableError, TimeoutError) as e:
            last_error = e
            if attempt < max_attempts:
                log.warning(
                    "store_call_retry",
                    op=op_name,
                    attempt=attempt,
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(policy.backoff_s * attempt)

    log.error(
        "store_call_exhausted",
        op=op_name,
        attempts=max_attempts,
        error_type=type(last_error).__name__,
    )
    if isinstance(last_error, StoreUnavailableError):
        raise last_error
    raise StoreUnavailableError(
        f"Task store did not respond within {policy.timeout_s}s ({op_name})",
        last_error,
    ) from last_error
