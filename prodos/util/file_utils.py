import os
import shutil
from pathlib import Path

from strif import copyfile_atomic


def copy_file(src_path: Path, dest_path: Path):
    """
    Copy a file atomically, creating parent directories as needed.
    """
    copyfile_atomic(src_path, dest_path, make_parents=True)


def copy_tree(src_dir: Path, dest_dir: Path):
    """
    Recursively copy a directory, merging into the destination if it exists.
    """
    shutil.copytree(src_dir, dest_dir, dirs_exist_ok=True)


def is_within(path: Path, root: Path) -> bool:
    """
    True if `path` is strictly inside `root` (not equal to it).
    """
    path = path.resolve()
    root = root.resolve()
    return path != root and path.is_relative_to(root)


def remove_empty_parents(dir_path: Path, stop_at: Path) -> None:
    """
    Remove `dir_path` if it is empty, then its parents while they are empty, stopping
    before `stop_at`. Nothing outside `stop_at` is ever removed. Errors are ignored
    since this is only cleanup.
    """
    current = dir_path
    while is_within(current, stop_at):
        try:
            if any(os.scandir(current)):
                return
            current.rmdir()
        except OSError:
            return
        current = current.parent


## Tests


def test_remove_empty_parents(tmp_path: Path):
    root = tmp_path / "root"
    leaf = root / "a" / "b" / "c"
    leaf.mkdir(parents=True)
    (root / "a" / "keep.txt").write_text("x")

    remove_empty_parents(leaf, root)
    assert not (root / "a" / "b").exists()
    assert (root / "a").exists()
    assert root.exists()


def test_remove_empty_parents_never_leaves_root(tmp_path: Path):
    root = tmp_path / "root"
    root.mkdir()
    remove_empty_parents(root, root)
    assert root.exists()

    outside = tmp_path / "outside"
    outside.mkdir()
    remove_empty_parents(outside, root)
    assert outside.exists()
