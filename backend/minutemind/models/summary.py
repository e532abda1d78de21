"""
Summarization Pydantic models.
"""
from pydantic import BaseModel


class SummarizeRequest(BaseModel):
    """Meeting transcript plus the user's summarization instructions."""
    transcript: str = ""
    prompt: str = ""


class SummarizeResponse(BaseModel):
    summary: str
