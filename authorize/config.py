"""Configuration loading: .env support and the privilege catalog.

The catalog is application data, so it is read from configuration rather than
the database. Two sources are supported, checked in order:

- ``AUTHORIZE_PRIVS_FILE``: path to a JSON object such as ``{"1": "deploy"}``
- ``AUTHORIZE_PRIVS``: the same JSON object inline
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from .errors import InvalidArgument
from .schemas import PrivilegeCatalog

try:
    load_dotenv()
except Exception as e:  # pragma: no cover
    logger.warning(f"Failed to load .env file: {e}")


def load_privilege_catalog(path: Optional[str] = None) -> PrivilegeCatalog:
    path = path or os.getenv("AUTHORIZE_PRIVS_FILE")
    if path:
        catalog_path = Path(path)
        if not catalog_path.exists():
            raise InvalidArgument(f"Privilege catalog file not found: {path}")
        raw = catalog_path.read_text()
        source = str(catalog_path)
    else:
        raw = os.getenv("AUTHORIZE_PRIVS")
        source = "AUTHORIZE_PRIVS"
        if not raw:
            raise InvalidArgument(
                "No privilege catalog configured. "
                "Set AUTHORIZE_PRIVS_FILE or AUTHORIZE_PRIVS."
            )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidArgument(f"{source} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidArgument(f"{source} must hold a JSON object of id -> name")

    try:
        catalog = PrivilegeCatalog(privs=data)
    except ValidationError as e:
        raise InvalidArgument(f"Invalid privilege catalog in {source}: {e}") from e

    logger.debug(f"Loaded {len(catalog.privs)} privileges from {source}")
    return catalog
