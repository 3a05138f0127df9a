import tomllib
from importlib import metadata
from pathlib import Path

PACKAGE_NAME = "prodos"


def get_pyproject_version() -> str:
    pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
    pyproject_data = tomllib.loads(pyproject_path.read_text())
    return pyproject_data["project"]["version"]


def get_version() -> str:
    """
    Version from the installed package, or from pyproject.toml in a source checkout.
    """
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return get_pyproject_version()


if __name__ == "__main__":
    print(get_version())
