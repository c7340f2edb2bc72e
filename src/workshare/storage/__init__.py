"""SQLite storage layer: engine policy, table models, and schema migrations."""
