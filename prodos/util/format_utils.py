import shlex
from pathlib import Path
from textwrap import indent
from typing import Any, Iterable


def fmt_path(path: str | Path, resolve: bool = True) -> str:
    """
    Format a path or filename for display, quoting it if it contains whitespace.
    Paths within the current directory are shown relative to it.
    """
    if resolve:
        path = Path(path).resolve()
        try:
            path = path.relative_to(Path.cwd())
        except ValueError:
            pass
    return shlex.quote(str(path))


def fmt_lines(values: Iterable[Any], prefix: str = "    ", line_break: str = "\n") -> str:
    """
    Simple indented or prefixed formatting of values one per line.
    """
    return indent(line_break.join(str(value) for value in values), prefix).rstrip()


def fmt_count(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


## Tests


def test_fmt_lines():
    assert fmt_lines(["a", "b"]) == "    a\n    b"
    assert fmt_lines([]) == ""


def test_fmt_path():
    assert fmt_path("/tmp/with space/x.md", resolve=False) == "'/tmp/with space/x.md'"
    assert fmt_path("/tmp/x.md", resolve=False) == "/tmp/x.md"


def test_fmt_count():
    assert fmt_count(1, "product", "products") == "1 product"
    assert fmt_count(3, "entity", "entities") == "3 entities"
