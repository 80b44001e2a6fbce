"""SQLite storage for content items and their windows."""
