from pathlib import Path
from typing import Iterable, List
from urllib.parse import unquote

FILE_URI_PREFIX = "file://"


def _strip_wrapping_quotes(value: str) -> str:
    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in ('"', "'"):
        return trimmed[1:-1]
    return trimmed


def entry_to_path(entry: str) -> Path:
    """Turn a plain path or a file:// URI (percent-encoded) into a Path."""
    cleaned = _strip_wrapping_quotes(entry)
    if cleaned.startswith(FILE_URI_PREFIX):
        cleaned = unquote(cleaned[len(FILE_URI_PREFIX):])
    return Path(cleaned)


def dedupe_preserve_order(entries: Iterable[Path]) -> List[Path]:
    seen = set()
    deduped: List[Path] = []
    for entry in entries:
        if entry not in seen:
            seen.add(entry)
            deduped.append(entry)
    return deduped


def normalize_input_paths(entries: Iterable[str]) -> List[Path]:
    paths = []
    for entry in entries:
        if entry is None:
            continue
        if not _strip_wrapping_quotes(entry):
            continue
        paths.append(entry_to_path(entry))
    return dedupe_preserve_order(paths)


def parse_uri_list(text: str) -> List[Path]:
    """Parse text/uri-list content (as produced by file managers on drag and drop).

    Blank lines and '#' comments are skipped; only existing regular files are kept.
    """
    paths: List[Path] = []
    for line in text.splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        path = entry_to_path(s)
        if path.is_file():
            paths.append(path)
    return dedupe_preserve_order(paths)


def validate_input_files(paths: List[Path]) -> None:
    if not paths:
        raise ValueError("No input files provided.")
    missing = [p for p in paths if not p.is_file()]
    if missing:
        raise ValueError(f"Input file does not exist: {missing[0]}")
