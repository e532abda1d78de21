"""
Meeting summary service.
"""
from functools import lru_cache

from fastapi import Depends

from minutemind.config import get_settings
from minutemind.integrations.llm_client import CompletionClient
from minutemind.utils.errors import ValidationError
from minutemind.utils.logger import get_logger

logger = get_logger(__name__)

SUMMARY_SYSTEM = "You are a helpful meeting note summarizer."
NO_SUMMARY = "No summary generated."


def build_messages(transcript: str, prompt: str) -> list:
    return [
        {"role": "system", "content": SUMMARY_SYSTEM},
        {"role": "user", "content": f"{prompt}\n\nTranscript:\n{transcript}"},
    ]


class SummaryService:
    """Summarizes meeting transcripts with a language model."""

    def __init__(self, llm: CompletionClient):
        self.llm = llm

    async def summarize(self, transcript: str, prompt: str) -> str:
        """
        Summarize a transcript following the user's prompt.

        Raises:
            ValidationError: If the transcript is empty
            UpstreamCompletionError: If the model call fails
        """
        if not (transcript or "").strip():
            raise ValidationError("Transcript is required")

        logger.info(f"Summarizing transcript ({len(transcript)} chars)")
        summary = await self.llm.complete(build_messages(transcript, prompt or ""))
        return summary or NO_SUMMARY


@lru_cache()
def get_completion_client() -> CompletionClient:
    return CompletionClient(get_settings())


def get_summary_service(llm: CompletionClient = Depends(get_completion_client)) -> SummaryService:
    """FastAPI dependency returning the summary service."""
    return SummaryService(llm)
