"""
schemas/__init__.py

JSON Schema for Mapdraw map documents and validation helpers.
Used by the document normalizer for import and by tests.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
DOCUMENT_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "map_document_schema.json")

# Cached schema and validators
_document_schema: Optional[Dict] = None
_document_validator: Optional[Draft202012Validator] = None
_hotspot_validator: Optional[Draft202012Validator] = None


def get_document_schema() -> Dict:
    """Load and return the map document schema."""
    global _document_schema
    if _document_schema is None:
        with open(DOCUMENT_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _document_schema = json.load(f)
    return _document_schema


def _format_errors(errors) -> List[str]:
    messages = []
    for error in sorted(errors, key=lambda e: list(map(str, e.absolute_path))):
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        messages.append(f"{path}: {error.message}")
    return messages


def _get_document_validator() -> Draft202012Validator:
    global _document_validator
    if _document_validator is None:
        _document_validator = Draft202012Validator(get_document_schema())
    return _document_validator


def _get_hotspot_validator() -> Draft202012Validator:
    """Validator for a single hotspot, built from ``$defs/hotspot``."""
    global _hotspot_validator
    if _hotspot_validator is None:
        schema = get_document_schema()
        full_schema = {
            "$schema": "https://json-schema.org/draft/2020-12/schema",
            "$defs": schema.get("$defs", {}),
            **schema["$defs"]["hotspot"],
        }
        _hotspot_validator = Draft202012Validator(full_schema)
    return _hotspot_validator


def validate_document(data: Any) -> Tuple[bool, List[str]]:
    """
    Validate the structure of a whole document (top level and map nodes).

    Hotspot entries are not checked here; the normalizer validates and, if
    needed, drops them one by one.

    Args:
        data: The decoded JSON document

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = list(_get_document_validator().iter_errors(data))
    if not errors:
        return True, []
    return False, _format_errors(errors)


def validate_hotspot(hotspot: Any) -> Tuple[bool, List[str]]:
    """
    Validate a single hotspot entry against ``$defs/hotspot``.

    Args:
        hotspot: One raw hotspot dictionary

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = list(_get_hotspot_validator().iter_errors(hotspot))
    if not errors:
        return True, []
    return False, _format_errors(errors)
