"""
CSV import for spreadsheet-authored dialogue.

Expected columns (header row first):

    ID, CharacterName, DialogueText, PortraitName, BGMName, BackgroundName

Rows sharing an ID become the lines of one node, in file order. Nodes are
returned in the order their ID first appears.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Optional

from branchtalk.core.errors import GraphLoadError
from branchtalk.dialogue.models import DialogueLine, DialogueNode

logger = logging.getLogger(__name__)

CSV_COLUMNS = 6


def import_csv(path: str | Path, id_prefix: str = "dialogue_") -> list[DialogueNode]:
    """
    Read a dialogue CSV file into nodes.

    Args:
        path: CSV file path
        id_prefix: Prepended to the numeric ID to form the node id

    Returns:
        One node per distinct ID

    Raises:
        GraphLoadError: the file cannot be read or has no data rows
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8-sig', newline='') as f:
            rows = list(csv.reader(f))
    except OSError as e:
        raise GraphLoadError(f"Failed to read {path}: {e}") from e

    if len(rows) <= 1:
        raise GraphLoadError(f"CSV file is empty or only contains a header: {path}")

    grouped: dict[int, list[DialogueLine]] = {}
    # Row 1 is the header; report data rows by their file line number
    for line_number, row in enumerate(rows[1:], start=2):
        if not any(field.strip() for field in row):
            continue

        if len(row) < CSV_COLUMNS:
            logger.warning(f"Skipping malformed row at line {line_number} in {path}: {row!r}")
            continue

        try:
            group_id = int(row[0].strip())
        except ValueError:
            logger.warning(f"Invalid ID at line {line_number} in {path}: {row[0]!r}")
            continue

        grouped.setdefault(group_id, []).append(DialogueLine(
            speaker=row[1].strip(),
            text=row[2],
            portrait_ref=_optional(row[3]),
            bgm_hint=_optional(row[4]),
            background_hint=_optional(row[5]),
        ))

    nodes = [
        DialogueNode(id=f"{id_prefix}{group_id}", lines=tuple(lines))
        for group_id, lines in grouped.items()
    ]
    logger.info(f"Imported {len(nodes)} dialogue nodes from {path}")
    return nodes


def convert_csv(
    input_path: str | Path,
    output_path: Optional[str | Path] = None,
    id_prefix: str = "dialogue_",
) -> Path:
    """
    Convert a dialogue CSV to a JSON node list.

    Args:
        input_path: Path to .csv file
        output_path: Path to output .json file (default: same name with .json)

    Returns:
        The output path
    """
    input_path = Path(input_path)
    output_path = input_path.with_suffix('.json') if output_path is None else Path(output_path)

    nodes = import_csv(input_path, id_prefix=id_prefix)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump([node.to_json() for node in nodes], f, indent=2, ensure_ascii=False)
    return output_path


def _optional(value: str) -> Optional[str]:
    value = value.strip()
    return value or None
