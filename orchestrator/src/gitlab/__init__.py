from orchestrator.src.gitlab.client import (
    CIProvider,
    GitLabClient,
    PRODUCTS_VARIABLE,
)

__all__ = [
    "CIProvider",
    "GitLabClient",
    "PRODUCTS_VARIABLE",
]
