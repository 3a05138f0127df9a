import json
from pathlib import Path

from pydantic.dataclasses import dataclass
from strif import atomic_output_file

from prodos.config.logger import get_logger
from prodos.config.settings import DB_FILENAME
from prodos.util.format_utils import fmt_path
from prodos.workspace.folders import PRODUCTS_DIR

log = get_logger(__name__)

# Top-level folders copied when a workspace moves.
COPIED_DIRS = ("data", PRODUCTS_DIR, "exports", "logs")


@dataclass(frozen=True)
class WorkspaceDirs:
    """
    The on-disk layout of a workspace, as paths relative to its root.
    """

    base_dir: Path

    data_dir: str = "data"
    products_dir: str = PRODUCTS_DIR
    exports_dir: str = "exports"
    export_runs_dir: str = "exports/runs"
    export_history_json: str = "exports/history.json"
    logs_dir: str = "logs"

    def path(self, relative: str) -> Path:
        return self.base_dir / relative

    @property
    def db_path(self) -> Path:
        return self.path(self.data_dir) / DB_FILENAME

    @property
    def flat_db_path(self) -> Path:
        return self.base_dir / DB_FILENAME

    def resolve_db_path(self) -> Path:
        """
        The database file in use: `data/` if it's there, else one at the root (the older
        flat layout), else where a new one goes.
        """
        if self.db_path.exists():
            return self.db_path
        if self.flat_db_path.exists():
            return self.flat_db_path
        return self.db_path

    def is_initialized(self) -> bool:
        return all(
            self.path(relative).is_dir()
            for relative in (self.data_dir, self.products_dir, self.exports_dir, self.export_runs_dir)
        )

    def is_legacy_layout(self) -> bool:
        return not self.path(self.data_dir).is_dir()

    def initialize(self) -> "WorkspaceDirs":
        """
        Create the workspace folder and its subfolders. Idempotent.
        """
        if not self.is_initialized():
            log.info("Initializing workspace: %s", fmt_path(self.base_dir))

        for relative in (self.data_dir, self.products_dir, self.exports_dir, self.export_runs_dir):
            self.path(relative).mkdir(parents=True, exist_ok=True)

        history_path = self.path(self.export_history_json)
        if not history_path.exists():
            with atomic_output_file(history_path, make_parents=True) as temp_path:
                with open(temp_path, "w", encoding="utf-8") as f:
                    f.write(json.dumps([]))

        return self


## Tests


def test_workspace_dirs(tmp_path: Path):
    dirs = WorkspaceDirs(tmp_path / "ws")
    assert dirs.is_legacy_layout()
    assert dirs.resolve_db_path() == tmp_path / "ws" / "data" / DB_FILENAME

    dirs.initialize()
    dirs.initialize()
    assert dirs.is_initialized()
    assert not dirs.is_legacy_layout()
    assert (tmp_path / "ws" / "exports" / "runs").is_dir()
    assert (tmp_path / "ws" / "exports" / "history.json").read_text() == "[]"


def test_resolve_flat_db_path(tmp_path: Path):
    (tmp_path / DB_FILENAME).write_text("")
    assert WorkspaceDirs(tmp_path).resolve_db_path() == tmp_path / DB_FILENAME
