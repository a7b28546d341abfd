"""Read .env files before config.py, the API and Celery workers look at os.environ."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).resolve().parent

_loaded: List[Path] = []


def _search_order(extra_paths: Optional[Iterable[str | os.PathLike[str]]]) -> Iterator[Path]:
    """Explicit paths, then $RS_ENV_PATH, then <repo>/.env, then <package>/.env."""
    for path in extra_paths or ():
        if path:
            yield Path(path)
    if os.environ.get("RS_ENV_PATH"):
        yield Path(os.environ["RS_ENV_PATH"])
    yield PACKAGE_DIR.parent / ".env"
    yield PACKAGE_DIR / ".env"


def load_env(
    extra_paths: Optional[Iterable[str | os.PathLike[str]]] = None,
    *,
    force: bool = False,
) -> List[Path]:
    """
    Export every existing .env file into os.environ and return the files read.

    Earlier files win over later ones, and values already exported by the
    shell win over all files. Only the first call reads from disk unless
    `force` is set.
    """
    global _loaded
    if _loaded and not force:
        return _loaded

    loaded: List[Path] = []
    for env_file in dict.fromkeys(_search_order(extra_paths)):
        if env_file.is_file():
            load_dotenv(dotenv_path=env_file, override=False)
            loaded.append(env_file)

    _loaded = loaded
    return _loaded
