"""todo-companion: task store, derived views and conversation-to-task ingestion."""

__version__ = "0.1.0"
