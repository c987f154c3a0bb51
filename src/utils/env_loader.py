"""
Automatic .env file loader for entry points.

Lets settings such as WALLGEN_CONFIG live in a project-level .env file
instead of the shell environment.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Project root (this file is in src/utils/)
PROJECT_ROOT = Path(__file__).parent.parent.parent


def load_env_automatically(env_file: Optional[Path] = None) -> bool:
    """
    Load a .env file, by default from the project root.

    Variables already set in the environment are not overridden.

    Args:
        env_file: Explicit .env path (optional)

    Returns:
        True if a file was found and loaded
    """
    env_file = Path(env_file) if env_file else PROJECT_ROOT / ".env"
    if not env_file.exists():
        return False

    load_dotenv(env_file)
    return True
