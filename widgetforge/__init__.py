import os
from pathlib import Path
from typing import Optional, Tuple


def _parse_env_line(line: str) -> Optional[Tuple[str, str]]:
    s = line.strip()
    if not s or s.startswith("#") or "=" not in s:
        return None
    if s.startswith("export "):
        s = s[len("export "):]
    key, val = (part.strip() for part in s.split("=", 1))
    if len(val) >= 2 and val[0] == val[-1] and val[0] in "\"'":
        val = val[1:-1]
    return (key, val) if key else None


def _load_env_file() -> None:
    """Fill missing OPENAI_*/API_KEYS/... settings from a local .env file."""
    # Tests configure the environment themselves
    if os.getenv("PYTEST_CURRENT_TEST"):
        return
    env_path = Path(os.getenv("WIDGETFORGE_ENV_FILE", ".env"))
    try:
        lines = env_path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for line in lines:
        parsed = _parse_env_line(line)
        if parsed and parsed[0] not in os.environ:
            os.environ[parsed[0]] = parsed[1]


_load_env_file()
