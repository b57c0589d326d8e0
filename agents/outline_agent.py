"""Outline Agent: breaks a chapter into ordered unit descriptors."""

import logging

from agents.base_agent import BaseAgent
from agents.protocols import OutlineRequest

logger = logging.getLogger(__name__)


class OutlineAgent(BaseAgent):
    """Outline-generation collaborator backed by the Agent SDK."""

    template_name = "outline"
    instructions_section = "Outline Instructions"

    async def generate_outline(self, request: OutlineRequest) -> list:
        """Request a unit breakdown for one chapter.

        Returns:
            The raw JSON array from the model. Entries are not validated here.
        """
        system_prompt, user_prompt = self._build_prompts(
            genre=request.genre or "general",
            chapter_title=request.chapter_title,
            target_words=request.target_words or "an appropriate number of",
            previous_chapters_summary=request.previous_chapters_summary or "(this is the first chapter)",
            next_chapter_title=request.next_chapter_title or "(none, this is the final chapter)",
        )

        logger.info("Requesting outline for chapter %d '%s'", request.chapter_id, request.chapter_title)

        return await self.llm.chat_json_list(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            model=self.settings.llm_model_outline,
            key="units",
        )
