"""
Mapping Template Store Module.

Remembers the column mapping chosen for a file layout so the next upload
with the same headers is mapped automatically. Layouts are identified by
their fingerprint (sorted header labels). Saving replaces the whole
mapping of a fingerprint; templates never expire.

Templates live in memory and, when a database path is configured, in a
SQLite table so they survive restarts.

Author: ML Engineering Team
"""

import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import ensure_directory
from reconciler.utils.exceptions import TemplateStoreError
from .schemas import FieldMapping

# Initialize module logger
logger = get_logger(__name__)


class MappingTemplateStore:
    """
    Keyed store of FieldMappings.

    Attributes:
        db_path: SQLite file backing the store, or None for memory only
        table_name: Name of the SQLite table

    Example:
        >>> store = MappingTemplateStore()
        >>> store.save(header.fingerprint, mapping)
        >>> store.get(header.fingerprint).to_dict()
        {'invoice_number': 'Fatura No', ...}
    """

    table_name = 'mapping_templates'

    def __init__(self, db_path: Optional[str] = None, persist: Optional[bool] = None) -> None:
        """
        Initialize the store.

        Args:
            db_path: SQLite file. Implies persistence.
            persist: Persist to ``paths.template_db`` when no path is given.
        """
        if persist is None:
            persist = get_config("templates.persist", False)

        if db_path:
            self.db_path: Optional[Path] = Path(db_path)
        elif persist:
            self.db_path = Path(get_config("paths.template_db", "outputs/mapping_templates.db"))
        else:
            self.db_path = None

        self._templates: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

        if self.db_path is not None:
            ensure_directory(self.db_path.parent)
            self._create_tables()
            self._load()

        logger.debug(
            f"MappingTemplateStore initialized "
            f"(db={self.db_path or 'memory'}, templates={len(self._templates)})"
        )

    # =========================================================================
    # SQLite backing
    # =========================================================================

    def _execute(self, operation: str, sql: str, params: tuple = ()) -> List[tuple]:
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                cursor = conn.execute(sql, params)
                rows = cursor.fetchall()
                conn.commit()
                return rows
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise TemplateStoreError(operation, str(e))

    def _create_tables(self) -> None:
        self._execute(
            "create table",
            f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                fingerprint TEXT PRIMARY KEY,
                mapping TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )

    def _load(self) -> None:
        rows = self._execute(
            "load", f"SELECT fingerprint, mapping FROM {self.table_name}"
        )
        for fingerprint, payload in rows:
            try:
                self._templates[fingerprint] = json.loads(payload)
            except json.JSONDecodeError:
                logger.warning(f"Ignoring unreadable template for layout: {fingerprint}")

    # =========================================================================
    # Public API
    # =========================================================================

    def get(self, fingerprint: str) -> Optional[FieldMapping]:
        """Return a copy of the stored mapping, or None."""
        with self._lock:
            stored = self._templates.get(fingerprint)
        return FieldMapping.from_dict(stored) if stored is not None else None

    def save(self, fingerprint: str, mapping: FieldMapping) -> None:
        """
        Store a mapping, replacing any previous mapping of the fingerprint.

        Args:
            fingerprint: Layout fingerprint.
            mapping: Mapping to remember.
        """
        payload = mapping.to_dict()
        with self._lock:
            if self.db_path is not None:
                self._execute(
                    "save",
                    f"INSERT OR REPLACE INTO {self.table_name} "
                    f"(fingerprint, mapping, updated_at) VALUES (?, ?, ?)",
                    (fingerprint, json.dumps(payload, ensure_ascii=False), datetime.now().isoformat())
                )
            self._templates[fingerprint] = payload

        logger.info(f"Mapping template saved ({len(payload)} fields)")

    def delete(self, fingerprint: str) -> bool:
        """Remove one template. Returns True when it existed."""
        with self._lock:
            if self.db_path is not None:
                self._execute(
                    "delete",
                    f"DELETE FROM {self.table_name} WHERE fingerprint = ?",
                    (fingerprint,)
                )
            return self._templates.pop(fingerprint, None) is not None

    def clear(self) -> None:
        """Remove every stored template."""
        with self._lock:
            if self.db_path is not None:
                self._execute("clear", f"DELETE FROM {self.table_name}")
            count = len(self._templates)
            self._templates.clear()
        logger.info(f"Cleared {count} mapping templates")

    def fingerprints(self) -> List[str]:
        with self._lock:
            return sorted(self._templates)

    def __contains__(self, fingerprint: str) -> bool:
        with self._lock:
            return fingerprint in self._templates

    def __len__(self) -> int:
        with self._lock:
            return len(self._templates)
