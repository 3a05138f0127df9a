"""
Reading a mirrored Markdown file back, for display. Files are never read back into the
database.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

from frontmatter_format import fmf_read

from prodos.config.logger import get_logger
from prodos.errors import FileFormatError, NotFound
from prodos.util.format_utils import fmt_path

log = get_logger(__name__)

FRONTMATTER_DELIM = "---"


@dataclass
class MirroredDoc:
    path: Path
    body: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or "")


def split_raw_frontmatter(text: str) -> Tuple[str, Dict[str, str]]:
    """
    Split text at its frontmatter delimiters without parsing YAML. Top-level `key: value`
    lines become string values; anything nested is left out.
    """
    lines = text.split("\n")
    if not lines or lines[0] != FRONTMATTER_DELIM:
        return text, {}
    try:
        end = lines.index(FRONTMATTER_DELIM, 1)
    except ValueError:
        return text, {}

    metadata: Dict[str, str] = {}
    for line in lines[1:end]:
        if line and not line[0].isspace() and ": " in line:
            key, value = line.split(": ", 1)
            metadata[key] = value
    return "\n".join(lines[end + 1 :]), metadata


def read_entity_markdown(path: Path) -> MirroredDoc:
    path = Path(path)
    if not path.is_file():
        raise NotFound(f"Markdown file not found: {fmt_path(path)}")

    try:
        body, metadata = fmf_read(path)
    except UnicodeDecodeError as e:
        raise FileFormatError(f"Could not read markdown: {fmt_path(path)}: {e}") from e
    except ValueError as e:
        # Titles like `'Tis` are written unquoted and aren't valid YAML.
        log.info("Reading frontmatter as plain lines: %s: %s", fmt_path(path), e)
        body, metadata = split_raw_frontmatter(path.read_text(encoding="utf-8"))

    # The body is separated from the frontmatter by one blank line.
    if body.startswith("\n"):
        body = body[1:]

    log.debug("Read markdown from %s: body length %s", fmt_path(path), len(body))
    return MirroredDoc(path=path, body=body, metadata=dict(metadata or {}))


## Tests


def test_split_raw_frontmatter():
    text = "---\nid: prob_1\ntitle: 'Tis slow\ncontext:\n  personas: [Coach]\n---\n\nBody\n"
    body, metadata = split_raw_frontmatter(text)
    assert metadata == {"id": "prob_1", "title": "'Tis slow"}
    assert body == "\nBody\n"

    assert split_raw_frontmatter("No frontmatter") == ("No frontmatter", {})
    assert split_raw_frontmatter("---\nid: x\n") == ("---\nid: x\n", {})
