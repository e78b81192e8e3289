# dbfixtures/document.py

"""
Fixture document parsing.

A fixture document is a YAML sequence of entries::

    - table: some_table
      pk:
        id: 1
      fields:
        string_field: foobar
        created_at: !on_insert_now
        updated_at: ON_UPDATE_NOW()

Entries become Row objects in document order. Timestamp markers can be
written as YAML tags (``!on_insert_now``, ``!on_update_now``) or as the
literal strings ``ON_INSERT_NOW()`` / ``ON_UPDATE_NOW()``; the string form
is only recognised while the ``recognize_marker_strings`` setting is on.
"""

import logging
from typing import Any, List, Mapping, Union

import yaml

from .defaults import settings
from .errors import DocumentError
from .row import Row, Marker, MARKERS, ON_INSERT_NOW, ON_UPDATE_NOW

logger = logging.getLogger(__name__)

ENTRY_KEYS = ('table', 'pk', 'fields')


class FixtureLoader(yaml.SafeLoader):
    """SafeLoader that also constructs the timestamp marker tags."""


def _marker_constructor(marker: Marker):
    def construct(loader, node):
        return marker
    return construct


for _marker in (ON_INSERT_NOW, ON_UPDATE_NOW):
    FixtureLoader.add_constructor(_marker.tag, _marker_constructor(_marker))


def _resolve_markers(columns: Mapping[str, Any]) -> dict:
    if not settings.get('recognize_marker_strings', True):
        return dict(columns)
    return {col: MARKERS.get(val, val) if isinstance(val, str) else val
            for col, val in columns.items()}


def row_from_entry(entry: Any, position: int) -> Row:
    """
    Build a Row from one deserialized document entry.

    Args:
        entry: The mapping read from the document
        position: 1-based position of the entry, used in error messages

    Raises:
        DocumentError: If the entry is not a valid fixture row
    """
    if not isinstance(entry, Mapping):
        raise DocumentError(f"expected a mapping, got {type(entry).__name__}", position)

    unknown = [key for key in entry if key not in ENTRY_KEYS]
    if unknown:
        raise DocumentError(f"unknown keys {unknown}, allowed keys are {list(ENTRY_KEYS)}", position)

    table = entry.get('table')
    if not table or not isinstance(table, str):
        raise DocumentError("'table' is required and must be a string", position)

    pk = entry.get('pk')
    if not isinstance(pk, Mapping) or not pk:
        raise DocumentError(f"table '{table}': 'pk' must map at least one column to a value", position)

    fields = entry.get('fields') or {}
    if not isinstance(fields, Mapping):
        raise DocumentError(f"table '{table}': 'fields' must be a mapping", position)

    try:
        return Row(table, _resolve_markers(pk), _resolve_markers(fields))
    except ValueError as e:
        raise DocumentError(str(e), position) from e


def parse_document(data: Union[bytes, str]) -> List[Row]:
    """
    Deserialize a fixture document into its ordered rows.

    Args:
        data: YAML text or bytes

    Returns:
        List of Row in document order. An empty document yields an empty list.

    Raises:
        DocumentError: If the YAML is malformed or any entry is invalid
    """
    try:
        document = yaml.load(data, Loader=FixtureLoader)
    except yaml.YAMLError as e:
        raise DocumentError(f"Malformed fixture document: {e}") from e

    if document is None:
        return []
    if not isinstance(document, list):
        raise DocumentError(
            f"Fixture document must be a sequence of rows, got {type(document).__name__}"
        )

    rows = [row_from_entry(entry, i) for i, entry in enumerate(document, 1)]
    logger.debug(f"Parsed {len(rows)} fixture rows")
    return rows
