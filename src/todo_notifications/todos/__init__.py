"""
Todo subsystem.

Components:
- todo_models.py: data structures (Todo, TodoAction, TodoState, TargetRef, SortOrder)
- todo_store.py: SQLite-backed storage, priority ordering and the keep-around outbox
- todo_service.py: public operations and derived accessors
- targets.py: issue / merge request / commit targets and per-kind resolution
- label_priorities.py: label priority resolvers
- keep_around.py: polling worker that pins commits referenced by todos
"""
