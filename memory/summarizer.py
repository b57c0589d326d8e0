"""Chapter summarization using LLM."""

import logging

from agents.base_agent import BaseAgent
from agents.protocols import ChapterSummary, SummaryRequest

logger = logging.getLogger(__name__)

_MAX_APPEARANCES = 10


def _parse_appearances(raw) -> list[dict]:
    """Keep well-formed {name, actions} entries, at most _MAX_APPEARANCES."""
    if not isinstance(raw, list):
        return []
    results = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        actions = item.get("actions") or []
        if isinstance(actions, str):
            actions = [actions]
        actions = [str(a).strip() for a in actions if str(a).strip()]
        if name and actions:
            results.append({"name": name, "actions": actions})
    return results[:_MAX_APPEARANCES]


def _parse_chapter_summary(data: dict) -> ChapterSummary:
    appearances = data.get("characterAppearances")
    if appearances is None:
        appearances = data.get("character_appearances")
    return ChapterSummary(
        summary=str(data.get("summary") or "").strip(),
        character_appearances=_parse_appearances(appearances),
    )


class Summarizer(BaseAgent):
    """Summarization collaborator: chapter summary plus per-character actions."""

    template_name = "summary"
    instructions_section = "Summary Instructions"

    async def summarize_chapter(self, request: SummaryRequest) -> ChapterSummary:
        """Generate a structured summary for a chapter."""
        system_prompt, user_prompt = self._build_prompts(
            genre=request.genre or "general",
            chapter_title=request.chapter_title,
            chapter_text=request.chapter_text,
        )

        data = await self.llm.chat_json(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            model=self.settings.llm_model_summary,
        )

        result = _parse_chapter_summary(data)
        logger.info(
            "Chapter %d summary: %d chars, %d character appearances",
            request.chapter_id,
            len(result.summary),
            len(result.character_appearances),
        )
        return result
