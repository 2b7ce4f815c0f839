"""
Discussion summarization.

Uses OpenAI's chat models when an API key is configured and falls back to a
local extractive summary otherwise, so a summary is always available offline.

Important: OpenAI client is initialized only when first needed to prevent
unnecessary API calls and allow for flexible configuration.
"""

import logging
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

SHORT_DISCUSSION_MESSAGE = "This discussion is too short to generate a meaningful summary."
MIN_SUMMARY_WORDS = 10
FALLBACK_PREFIX_CHARS = 100


def local_summary(texts: Iterable[str]) -> str:
    """
    Build an extractive summary from transcript segments.

    The summary is the first sentence of the discussion (or its first 100
    characters when there is no sentence break) followed by segment and word
    counts. Discussions of ten words or fewer get a fixed message.

    Args:
        texts: Transcript segment texts in order

    Returns:
        Summary text
    """
    segments = [text for text in texts]
    all_text = " ".join(segments)
    words = all_text.split()

    if len(words) <= MIN_SUMMARY_WORDS:
        return SHORT_DISCUSSION_MESSAGE

    sentence_end = all_text.find(".")
    if sentence_end >= 0:
        first_sentence = all_text[: sentence_end + 1]
    else:
        first_sentence = all_text[:FALLBACK_PREFIX_CHARS]

    return (
        "Summary of discussion:\n\n"
        f"{first_sentence.strip()}\n\n"
        f"This discussion contained {len(segments)} segments with a total of {len(words)} words."
    )


class DiscussionSummarizer:
    """
    Summarize discussion transcripts.

    With an API key the summary comes from an OpenAI chat model; without one,
    or when the request fails, the local extractive summary is used.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o-mini"):
        """
        Initialize the summarizer.

        Args:
            api_key: OpenAI API key, None or empty for local summaries only
            model: OpenAI model to use
        """
        self.api_key = api_key or None
        self.model = model
        self.client = None
        self._client_loaded = False

    def _load_client(self):
        """Lazy load the OpenAI client."""
        if self._client_loaded or not self.api_key:
            return

        try:
            from openai import OpenAI

            self.client = OpenAI(api_key=self.api_key)
            self._client_loaded = True
            logger.info(f"OpenAI client loaded (model: {self.model})")
        except Exception as e:
            self.client = None
            self._client_loaded = False
            logger.warning(f"OpenAI client failed to load: {e}")

    def summarize(self, texts: Iterable[str]) -> str:
        """
        Summarize transcript segments.

        Args:
            texts: Transcript segment texts in order

        Returns:
            Summary text (never None)
        """
        segments = list(texts)
        transcript_text = " ".join(segments).strip()

        if self.api_key and transcript_text:
            summary = self._summarize_remote(transcript_text)
            if summary:
                return summary

        return local_summary(segments)

    def _summarize_remote(self, transcript_text: str) -> Optional[str]:
        self._load_client()
        if not self.client:
            return None

        try:
            logger.info(f"Generating summary using {self.model}...")

            prompt = f"""You are an assistant summarizing a live group discussion.
Summarize the transcript briefly, noting the main points, any disagreements and how they were resolved.

Transcript:
{transcript_text}"""

            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You are a discussion summarizer."},
                    {"role": "user", "content": prompt},
                ],
            )
            return response.choices[0].message.content
        except Exception as e:
            logger.warning(f"Summarization failed, using local summary: {e}")
            return None
