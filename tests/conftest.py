from pathlib import Path

import pytest

from prodos.product_os import ProductOS
from prodos.workspace.manager import WorkspaceManager


@pytest.fixture
def app_data_dir(tmp_path: Path) -> Path:
    return tmp_path / "app"


@pytest.fixture
def manager(app_data_dir: Path):
    manager = WorkspaceManager(app_data_dir)
    yield manager
    manager.close_database()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    return tmp_path / "workspace"


@pytest.fixture
def product_os(manager: WorkspaceManager, workspace: Path) -> ProductOS:
    product_os = ProductOS(manager)
    product_os.initialize_workspace(workspace)
    return product_os
