import functools
import re
import time
from typing import Any, Callable, Literal, Optional

from strif import abbreviate_str

from prodos.config.logger import get_logger
from prodos.config.text_styles import EMOJI_CALL_BEGIN, EMOJI_CALL_END, EMOJI_TIMING

log = get_logger(__name__)

LogLevelStr = Literal["debug", "info", "warning", "message", "error"]


_WHITESPACE = re.compile(r"\s+")


def single_line(text: str) -> str:
    """
    Convert newlines and other whitespace to spaces.
    """
    return _WHITESPACE.sub(" ", str(text)).strip()


_QUOTABLE = re.compile(r"['\" \n\t\r]")


def quote_if_needed(arg: str) -> str:
    """
    Only quote if necessary for readability.
    """
    if _QUOTABLE.search(arg):
        return repr(arg)
    return arg


def friendly_str(arg: Any) -> str:
    """
    Same as `str()` but quotes strings if helpful for readability.
    """
    return quote_if_needed(arg) if isinstance(arg, str) else str(arg)


DEFAULT_TRUNCATE = 100


def abbreviate_arg(
    value: Any,
    repr_func: Callable = friendly_str,
    truncate_length: Optional[int] = DEFAULT_TRUNCATE,
) -> str:
    """
    Abbreviate an argument value for logging.
    """
    if truncate_length:
        return abbreviate_str(single_line(repr_func(value)), truncate_length - 2, indicator="…")
    return single_line(repr_func(value))


def format_duration(seconds: float) -> str:
    if seconds < 100.0 / 1000.0:
        return f"{seconds * 1000:.2f}ms"
    elif seconds < 1.0:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 100.0:
        return f"{seconds:.2f}s"
    else:
        return f"{seconds:.0f}s"


def func_and_module_name(func: Callable):
    short_module = func.__module__.split(".")[-1] if func.__module__ else None
    return f"{short_module}.{func.__qualname__}" if short_module else func.__qualname__


def log_calls(
    level: LogLevelStr = "info",
    show_args=True,
    show_return=False,
    if_slower_than: float = 0.0,
    truncate_length: Optional[int] = DEFAULT_TRUNCATE,
    repr_func: Callable = friendly_str,
):
    """
    Decorator to log function calls and returns and time taken, with optional display of
    arguments and return values. If `if_slower_than` is set, only log calls that take longer
    than that number of seconds.
    """
    to_str = lambda value: abbreviate_arg(value, repr_func, truncate_length)

    def format_args(args, kwargs):
        return ", ".join(
            [to_str(arg) for arg in args] + [f"{k}={to_str(v)}" for k, v in kwargs.items()]
        )

    def format_call(func_name: str, args, kwargs):
        if show_args:
            return f"{func_name}({format_args(args, kwargs)})"
        else:
            return func_name

    log_func = getattr(log, level.lower())

    show_call = if_slower_than <= 0.0

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            func_name = func_and_module_name(func)

            if show_call:
                log_func("%s Call: %s", EMOJI_CALL_BEGIN, format_call(func_name, args, kwargs))

            start_time = time.time()

            result = func(*args, **kwargs)

            elapsed = time.time() - start_time

            if show_call:
                call_msg = (
                    f"{EMOJI_CALL_END} Call done: {func_name}() in {format_duration(elapsed)}"
                )
                if show_return:
                    log_func("%s: %s", call_msg, to_str(result))
                else:
                    log_func("%s", call_msg)
            elif elapsed > if_slower_than:
                log_func(
                    "%s Call to %s took %s.", EMOJI_TIMING, func_name, format_duration(elapsed)
                )

            return result

        return wrapper

    return decorator


## Tests


def test_format_duration():
    assert format_duration(0.0123) == "12.30ms"
    assert format_duration(0.5) == "500ms"
    assert format_duration(12.345) == "12.35s"
    assert format_duration(250) == "250s"


def test_log_calls_returns_result():
    @log_calls(level="debug", show_return=True)
    def add(a, b):
        return a + b

    assert add(2, b=3) == 5
    assert add.__name__ == "add"


def test_abbreviate_arg():
    assert abbreviate_arg("short") == "short"
    assert abbreviate_arg("two words") == "'two words'"
    long_arg = abbreviate_arg("x" * 300)
    assert long_arg.endswith("…")
    assert len(long_arg) <= DEFAULT_TRUNCATE
