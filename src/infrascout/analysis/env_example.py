"""Example environment file parsing."""

import re
from dataclasses import dataclass
from pathlib import Path

from infrascout.analysis.manifests import DEFAULT_MAX_BYTES, read_text
from infrascout.exceptions import ParseError

ENV_EXAMPLE_FILES = (".env.example", ".env.sample", ".env.template", "env.example")

_KEY = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

# Values that mean "fill me in" rather than a usable default
_PLACEHOLDER = re.compile(
    r"^(?:<.*>|\[.*\]|your[_-].*|.*[_-]here|changeme|change[_-]me|replace[_-]?me|x{3,}|\.\.\.|todo|tbd|\*+)$",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class EnvExampleEntry:
    key: str
    value: str | None
    is_required: bool


def is_placeholder(value: str) -> bool:
    return not value or _PLACEHOLDER.match(value) is not None


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    # Inline comments only count on unquoted values
    return re.split(r"\s+#", value, maxsplit=1)[0].strip()


def parse_env_example_content(content: str, path: Path | str = ".env.example") -> list[EnvExampleEntry]:
    """Parse KEY=value lines. Later duplicates of a key are ignored.

    Raises:
        ParseError: On a non-comment line that is not a valid assignment.
    """
    entries: dict[str, EnvExampleEntry] = {}
    for lineno, raw in enumerate(content.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not _KEY.match(key):
            raise ParseError(path, f"line {lineno}: expected KEY=value, got {raw.strip()!r}")
        if key in entries:
            continue
        value = _unquote(value.strip())
        if is_placeholder(value):
            entries[key] = EnvExampleEntry(key, None, True)
        else:
            entries[key] = EnvExampleEntry(key, value, False)
    return list(entries.values())


def find_env_example(app_dir: Path) -> Path | None:
    for filename in ENV_EXAMPLE_FILES:
        candidate = app_dir / filename
        if candidate.is_file():
            return candidate
    return None


def parse_env_example(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[EnvExampleEntry] | None:
    content = read_text(path, max_bytes)
    if content is None:
        return None
    return parse_env_example_content(content, path)
