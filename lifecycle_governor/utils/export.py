"""Export helpers for pass summaries and record listings."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, List

SUPPORTED_FORMATS = ("json", "csv")


def detect_format(filepath: str) -> str:
    """Detect export format from the file extension.

    Args:
        filepath: Destination file path

    Returns:
        "json" or "csv"

    Raises:
        ValueError: If the extension is not supported
    """
    suffix = Path(filepath).suffix.lower().lstrip(".")
    if suffix not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported export format '{suffix or filepath}'. Use one of: .json, .csv")
    return suffix


def export_to_json(data: Any, filepath: str) -> Path:
    """Write data as indented JSON, creating parent directories."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2, default=str)
    return path


def export_to_csv(rows: List[Dict[str, Any]], filepath: str) -> Path:
    """Write rows as CSV with a header taken from the first row."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = list(rows[0].keys()) if rows else []
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return path
