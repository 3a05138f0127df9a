"""
Emoji and Rich styles used in console output and logs.
"""

EMOJI_WARN = "△"

EMOJI_ERROR = EMOJI_WARN + EMOJI_WARN

EMOJI_TIMING = "⏱"

EMOJI_SUCCESS = "[✓]"

EMOJI_SKIP = "[−]"

EMOJI_FAILURE = "[✗]"

EMOJI_CALL_BEGIN = "≫"

EMOJI_CALL_END = "≪"


RICH_STYLES = {
    "prodos.success": "bold green",
    "prodos.failure": "bold red",
    "prodos.skip": "dim",
    "prodos.path": "cyan",
    "prodos.warning": "yellow",
    "prodos.key": "bold",
    "prodos.hint": "dim cyan",
}
