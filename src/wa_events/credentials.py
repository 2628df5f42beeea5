"""Persistence for transport session credentials.

The transport rotates its credentials from time to time and signals each
rotation.  :class:`CredentialStore` keeps the latest set in a JSON file so
the next start-up (or reconnect) can resume the session without pairing
again.

Usage::

    store = CredentialStore(Path("auth_info"))
    creds = store.load()        # None before the first pairing
    store.save(new_creds)       # after every rotation
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CREDENTIALS_FILENAME = "creds.json"


class CredentialStore:
    """Load and save session credentials under *auth_dir*.

    Args:
        auth_dir: Directory holding the credentials file.  Created on the
            first save.
    """

    def __init__(self, auth_dir: Path | str) -> None:
        self._path = Path(auth_dir) / CREDENTIALS_FILENAME

    @property
    def path(self) -> Path:
        """Location of the credentials file."""
        return self._path

    def load(self) -> dict[str, Any] | None:
        """Return the saved credentials, or ``None`` if there are none.

        An unreadable or corrupt file is logged and treated as missing, so
        the transport falls back to pairing.
        """
        if not self._path.exists():
            logger.info("No saved credentials at %s", self._path)
            return None

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read credentials at %s: %s", self._path, exc)
            return None

        if not isinstance(data, dict):
            logger.warning("Ignoring credentials at %s: not a JSON object", self._path)
            return None

        logger.info("Loaded saved credentials from %s", self._path)
        return data

    def save(self, credentials: Mapping[str, Any]) -> None:
        """Write *credentials* atomically, replacing any previous file.

        Raises:
            OSError: If the file cannot be written.
            TypeError: If *credentials* is not JSON serialisable.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(dict(credentials), indent=2)

        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".creds-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Credentials saved to %s", self._path)
