"""Install agent skills from git repositories and package registries."""

__version__ = "0.1.0"

# Export protocol interfaces for type hints and dependency injection
from skills_pkg.protocols import (
    AgentProvider,
    FileSystem,
    HashService,
    PackageManager,
)

__all__ = [
    "__version__",
    "AgentProvider",
    "FileSystem",
    "HashService",
    "PackageManager",
]
