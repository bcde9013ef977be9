"""CLI package for dtheaders.

Re-exports for tests and the pyproject.toml entry point.
"""

from src.cli.config import (  # noqa: F401
    CONFIG_FILE,
    ENV_FILE,
    PROJECT_ROOT,
    _build_app,
    _build_controller,
    _load_config,
)
from src.cli.main import cli  # noqa: F401
