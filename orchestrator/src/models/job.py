"""
Provider-side job payloads.
"""

from pydantic import BaseModel

class ProviderJob(BaseModel):
    """A job as reported by the CI provider for a pipeline run."""
    id: int
    name: str
    stage: str
    status: str = "manual"
