"""Shared plumbing for the LLM-backed collaborators: client wiring and prompt templates."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from config.exceptions import InvalidConfigError
from config.settings import Settings
from tools.agent_sdk_client import AgentSDKClient

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent.parent / "config" / "prompts"
_SYSTEM_SECTION = "System Prompt"


@lru_cache(maxsize=8)
def _read_template(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


class BaseAgent:
    """Base class for the outline, writer and summary collaborators.

    Each subclass names one template in config/prompts/. A template holds a
    ``## System Prompt`` section plus one instructions section whose
    ``{placeholders}`` are filled per request.
    """

    template_name: str = ""
    instructions_section: str = ""

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.llm = llm_client or AgentSDKClient(self.settings)
        self._template = self._load_prompt(self.template_name) if self.template_name else ""

    def _load_prompt(self, template_name: str) -> str:
        """Read a template from config/prompts/, cached per process.

        Raises:
            InvalidConfigError: If the template file does not exist.
        """
        path = _PROMPTS_DIR / f"{template_name}.md"
        if not path.is_file():
            raise InvalidConfigError("Prompt template not found", {"path": str(path)})
        return _read_template(str(path))

    def _extract_section(self, template: str, section_header: str) -> str:
        """Return the body under the '## ' header containing `section_header`."""
        captured = []
        capturing = False
        for line in template.split("\n"):
            is_header = line.strip().startswith("## ")
            if is_header and capturing:
                break
            if is_header and section_header in line:
                capturing = True
            elif capturing:
                captured.append(line)
        return "\n".join(captured).strip()

    def _build_prompts(self, **fields) -> tuple[str, str]:
        """Return (system_prompt, user_prompt) for one request.

        Raises:
            InvalidConfigError: If a section is missing or references an unknown field.
        """
        system_prompt = self._extract_section(self._template, _SYSTEM_SECTION)
        instructions = self._extract_section(self._template, self.instructions_section)
        if not system_prompt or not instructions:
            raise InvalidConfigError(
                "Prompt template is missing a section",
                {"template": self.template_name, "section": self.instructions_section},
            )
        try:
            user_prompt = instructions.format(**fields)
        except KeyError as e:
            raise InvalidConfigError(
                "Prompt template references an unknown field",
                {"template": self.template_name, "field": e.args[0]},
            ) from e
        return system_prompt, user_prompt
