"""
Chat title generation from the first user message.
"""

import logging
from typing import Optional

from .config import AdvisorConfig, get_config
from .legal_patterns import LLM_PROMPTS

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
MAX_TITLE_LENGTH = 50


def clean_title(raw: str) -> str:
    title = (raw or "").strip().strip("\"'`«»“”").strip()
    return title[:MAX_TITLE_LENGTH] or DEFAULT_TITLE


class TitleGenerator:
    def __init__(self, completion_service, config: Optional[AdvisorConfig] = None):
        self.llm = completion_service
        self.config = config or get_config()

    def generate(self, message: str) -> str:
        """Short title for a conversation; DEFAULT_TITLE if the model call fails."""
        try:
            raw = self.llm.complete(
                [
                    {"role": "system", "content": LLM_PROMPTS["title_system"]},
                    {"role": "user", "content": message},
                ],
                model=self.config.classifier_model,
                temperature=0.3,
                max_tokens=20,
            )
        except Exception as e:
            logger.warning(f"Title generation failed: {e}")
            return DEFAULT_TITLE
        return clean_title(raw)
