"""Repository facades exposing typed accessors over low-level mixins.

The scheduling service depends on the ``ContentCatalog`` protocol; this
package provides the SQLite implementation::

    from infrastructure.database.repositories import SQLiteContentCatalog
"""

from infrastructure.database.repositories.content import SQLiteContentCatalog

__all__ = ["SQLiteContentCatalog"]
