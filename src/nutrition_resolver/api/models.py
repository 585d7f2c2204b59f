"""Request models for the HTTP API."""

from pydantic import BaseModel


class LookupRequest(BaseModel):
    """Free-text nutrition lookup request."""

    input: str
