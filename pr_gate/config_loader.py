# AGPL-3.0 License

"""
Settings loading for PR-Gate.

Defaults ship in ``settings/configuration.toml``; a repository may layer its
own ``.pr_gate.toml`` on top, and ``PR_GATE_*`` environment variables
override both.
"""

from os.path import abspath, dirname, join
from pathlib import Path
from typing import Optional

from dynaconf import Dynaconf

current_dir = dirname(abspath(__file__))

REPO_SETTINGS_FILENAME = ".pr_gate.toml"

global_settings = Dynaconf(
    envvar_prefix="PR_GATE",
    merge_enabled=True,
    load_dotenv=False,
    settings_files=[join(current_dir, f) for f in [
        "settings/configuration.toml",
    ]],
)


def get_settings() -> Dynaconf:
    """Return the process-wide settings object."""
    return global_settings


def load_repo_settings(repo_root: Optional[Path] = None, settings: Optional[Dynaconf] = None) -> Optional[Path]:
    """
    Merge a repository-level ``.pr_gate.toml`` into the settings.

    Args:
        repo_root: Directory holding the repository config (defaults to cwd)
        settings: Settings object to update (defaults to the global settings)

    Returns:
        Path of the merged file, or None when the repository has no config
    """
    settings = settings or get_settings()
    repo_root = Path(repo_root) if repo_root else Path.cwd()
    config_path = repo_root / REPO_SETTINGS_FILENAME
    if not config_path.is_file():
        return None

    settings.load_file(path=str(config_path))
    return config_path
