"""Table-level operation mixins for SQLiteDatabaseHandler."""
