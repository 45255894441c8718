from .project_store import (
    DirectoryProjectStore,
    InMemoryProjectStore,
    ProjectStore,
    validate_project_name,
)

__all__ = [
    "DirectoryProjectStore",
    "InMemoryProjectStore",
    "ProjectStore",
    "validate_project_name",
]
