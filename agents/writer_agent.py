"""Writer Agent: produces the prose for a single unit."""

import logging
import re

from agents.base_agent import BaseAgent
from agents.protocols import UnitDraft, UnitRequest
from config.exceptions import LLMResponseParseError
from tools.text_utils import count_words

logger = logging.getLogger(__name__)

# Models occasionally wrap prose in a code fence or lead with a heading
_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n?```\s*$", re.DOTALL)
_HEADING_RE = re.compile(r"^#{1,6} .*\n+")


def format_character_history(history: dict[str, list[str]]) -> str:
    """Render the rolling character history as prompt lines."""
    if not history:
        return "(no earlier character activity recorded)"
    lines = []
    for name, actions in history.items():
        lines.append(f"- {name}: " + "; ".join(actions))
    return "\n".join(lines)


def _clean_prose(text: str) -> str:
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1).strip()
    return _HEADING_RE.sub("", text, count=1).strip()


class WriterAgent(BaseAgent):
    """Content-generation collaborator backed by the Agent SDK.

    Makes exactly one attempt per call; retrying is the unit writer stage's job.
    """

    template_name = "writer"
    instructions_section = "Writing Instructions"

    async def write_unit(self, request: UnitRequest) -> UnitDraft:
        """Write one unit of prose.

        Raises:
            LLMResponseParseError: If the response contains no prose.
            LLMError: Classified service errors from the client.
        """
        unit = request.unit
        system_prompt, user_prompt = self._build_prompts(
            genre=request.genre or "general",
            chapter_title=request.chapter_title,
            sequence=unit.sequence,
            unit_title=unit.title,
            description=unit.description,
            key_events="\n".join(f"- {e}" for e in unit.key_events) or "(none listed)",
            character_history=format_character_history(request.character_history),
            prior_prose=request.prior_prose or "(this is the start of the book)",
            target_words=unit.target_words,
        )

        logger.info("Writing unit %d of chapter %d", unit.sequence, request.chapter_id)

        raw_text = await self.llm.chat(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            model=self.settings.llm_model_writing,
        )

        text = _clean_prose(raw_text)
        if not text:
            raise LLMResponseParseError("Response contained no prose", raw_response=raw_text)

        return UnitDraft(text=text, word_count=count_words(text))
