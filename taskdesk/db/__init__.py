"""TaskDesk database layer — SQLAlchemy models and session management for the SQL task store."""
