import csv
import json
import tempfile
import unicodedata
from dataclasses import fields
from pathlib import Path
from typing import List, Sequence


def _is_relative_to(path: Path, base: Path) -> bool:
    try:
        path.relative_to(base)
        return True
    except ValueError:
        return False


def sanitize_path(path_str: str, project_root: Path) -> Path:
    if not path_str:
        raise ValueError("path required")
    normalized = unicodedata.normalize("NFKC", path_str)
    if ".." in normalized or ".." in Path(normalized).parts:
        raise ValueError("path traversal not allowed")
    if "\u202e" in normalized or "\u202d" in normalized:
        raise ValueError("unsafe unicode in path")

    tmp_root = Path(tempfile.gettempdir()).resolve()
    project_root = project_root.resolve()
    raw_path = Path(normalized)
    if raw_path.is_absolute():
        resolved = raw_path.resolve()
    else:
        resolved = (project_root / raw_path).resolve()

    allowed = any(
        _is_relative_to(resolved, root) for root in (project_root, tmp_root)
    )
    if not allowed:
        raise ValueError("path outside allowed roots")
    candidate = raw_path if raw_path.is_absolute() else project_root / raw_path
    roots = {project_root, tmp_root, Path(tempfile.gettempdir())}
    for parent in [candidate] + list(candidate.parents):
        if parent in roots:
            break
        if parent.is_symlink():
            raise ValueError("symlink paths not allowed")
    return resolved


def neutralize_csv_field(value):
    text = "" if value is None else str(value)
    if text.startswith(("=", "+", "-", "@")):
        return "'" + text
    return text


def record_columns(records: Sequence) -> List[str]:
    if not records:
        return []
    return [f.name for f in fields(records[0])]


def write_records(records: Sequence, path: Path, fmt: str, append: bool = False) -> None:
    rows = [r.to_dict() for r in records]
    if fmt == "jsonl":
        mode = "a" if append else "w"
        with path.open(mode, encoding="utf-8") as handle:
            for row in rows:
                handle.write(json.dumps(row) + "\n")
    elif fmt == "json":
        existing = []
        if append and path.exists():
            existing = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(existing, list):
                existing = []
        path.write_text(json.dumps(existing + rows), encoding="utf-8")
    elif fmt == "csv":
        columns = record_columns(records)
        write_header = not (append and path.exists())
        mode = "a" if append else "w"
        with path.open(mode, newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(handle, fieldnames=columns)
            if write_header and columns:
                writer.writeheader()
            for row in rows:
                writer.writerow({k: neutralize_csv_field(row.get(k)) for k in columns})
    else:
        raise ValueError(f"Unsupported output format: {fmt}")
