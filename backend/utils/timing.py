import time
import asyncio
import functools
import logging

logger = logging.getLogger("authkit.timing")

def timeit(label: str = ""):
    """
    Decorator that logs execution time for a function (sync or async).

    Usage:
        @timeit()
        async def register(...):
            ...

        @timeit("reset_password_confirm")
        async def confirm(...):
            await ...
    """

    def _decorate(func):
        name = label or getattr(func, "__qualname__", getattr(func, "__name__", "function"))

        def _log(start: float) -> None:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            logger.info(f"[timing] {name} took {elapsed_ms:.2f} ms")

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def _aw(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _log(start)

            return _aw

        @functools.wraps(func)
        def _w(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _log(start)

        return _w

    return _decorate
