"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Conversation, Priority, Category)
- blob_store.py: SQLite-backed key-value blob storage
- task_store.py: in-memory collections with write-through persistence
- views.py: pure filtering / sorting / aggregation over task snapshots
- task_api.py: small high-level helpers used by front-ends
"""
