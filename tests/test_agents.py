"""Tests for the LLM-backed collaborators."""

import pytest


def _unit_request(**overrides):
    from agents.protocols import UnitRequest
    from models.chapter import UnitDescriptor
    fields = dict(
        chapter_id=1,
        chapter_title="The Harbor",
        unit=UnitDescriptor(sequence=2, title="Departure", description="Ada boards the ship",
                            target_words=700, key_events=["storm warning"]),
        prior_prose="The gulls were loud that morning.",
        character_history={"Ada": ["The Gate: opened the gate"]},
        genre="adventure",
    )
    fields.update(overrides)
    return UnitRequest(**fields)


class TestBaseAgent:
    def test_extract_section(self, mock_llm, settings):
        from agents.base_agent import BaseAgent
        agent = BaseAgent(llm_client=mock_llm, settings=settings)
        template = "## One\nfirst\n## Two\nsecond\nmore\n## Three\nthird"
        assert agent._extract_section(template, "Two") == "second\nmore"
        assert agent._extract_section(template, "Four") == ""

    def test_missing_prompt_raises(self, mock_llm, settings):
        from agents.base_agent import BaseAgent
        from config.exceptions import InvalidConfigError
        agent = BaseAgent(llm_client=mock_llm, settings=settings)
        with pytest.raises(InvalidConfigError, match="Prompt template not found"):
            agent._load_prompt("does_not_exist")

    @pytest.mark.parametrize("agent_path", [
        "agents.outline_agent.OutlineAgent",
        "agents.writer_agent.WriterAgent",
        "memory.summarizer.Summarizer",
    ])
    def test_templates_have_both_sections(self, mock_llm, settings, agent_path):
        import importlib
        module_name, cls_name = agent_path.rsplit(".", 1)
        cls = getattr(importlib.import_module(module_name), cls_name)
        agent = cls(llm_client=mock_llm, settings=settings)
        assert agent._extract_section(agent._template, "System Prompt")
        assert agent._extract_section(agent._template, agent.instructions_section)

    def test_unknown_placeholder_rejected(self, mock_llm, settings):
        from agents.base_agent import BaseAgent
        from config.exceptions import InvalidConfigError
        agent = BaseAgent(llm_client=mock_llm, settings=settings)
        agent.instructions_section = "Task"
        agent._template = "## System Prompt\nBe brief.\n## Task\nWrite about {topic}."
        assert agent._build_prompts(topic="tides") == ("Be brief.", "Write about tides.")
        with pytest.raises(InvalidConfigError, match="unknown field"):
            agent._build_prompts(subject="tides")

    def test_missing_section_rejected(self, mock_llm, settings):
        from agents.base_agent import BaseAgent
        from config.exceptions import InvalidConfigError
        agent = BaseAgent(llm_client=mock_llm, settings=settings)
        agent.instructions_section = "Task"
        agent._template = "## System Prompt\nBe brief."
        with pytest.raises(InvalidConfigError, match="missing a section"):
            agent._build_prompts()


class TestOutlineAgent:
    @pytest.mark.asyncio
    async def test_returns_raw_units(self, mock_llm, settings):
        from agents.outline_agent import OutlineAgent
        from agents.protocols import OutlineRequest
        agent = OutlineAgent(llm_client=mock_llm, settings=settings)
        request = OutlineRequest(
            project_id=1, chapter_id=3, chapter_title="The Harbor", genre="adventure",
            previous_chapters_summary="The Gate: Ada leaves home", next_chapter_title="The Storm",
            target_words=5000,
        )

        units = await agent.generate_outline(request)

        assert units[0]["title"] == "Arrival"
        kwargs = mock_llm.chat_json_list.call_args.kwargs
        assert kwargs["key"] == "units"
        assert kwargs["model"] == settings.llm_model_outline
        assert "The Harbor" in kwargs["user_prompt"]
        assert "The Storm" in kwargs["user_prompt"]
        assert "5000" in kwargs["user_prompt"]

    @pytest.mark.asyncio
    async def test_propagates_classified_errors(self, mock_llm, settings):
        from agents.outline_agent import OutlineAgent
        from agents.protocols import OutlineRequest
        from config.exceptions import LLMRateLimitError
        mock_llm.chat_json_list.side_effect = LLMRateLimitError()
        agent = OutlineAgent(llm_client=mock_llm, settings=settings)
        with pytest.raises(LLMRateLimitError):
            await agent.generate_outline(OutlineRequest(project_id=1, chapter_id=1, chapter_title="X"))


class TestWriterAgent:
    @pytest.mark.asyncio
    async def test_write_unit(self, mock_llm, settings):
        from agents.writer_agent import WriterAgent
        agent = WriterAgent(llm_client=mock_llm, settings=settings)

        draft = await agent.write_unit(_unit_request())

        assert draft.word_count == 60
        kwargs = mock_llm.chat.call_args.kwargs
        assert kwargs["model"] == settings.llm_model_writing
        assert "Departure" in kwargs["user_prompt"]
        assert "storm warning" in kwargs["user_prompt"]
        assert "The gulls were loud" in kwargs["user_prompt"]
        assert "Ada: The Gate: opened the gate" in kwargs["user_prompt"]

    @pytest.mark.asyncio
    async def test_strips_fence_and_heading(self, mock_llm, settings):
        from agents.writer_agent import WriterAgent
        mock_llm.chat.return_value = "```markdown\n# Departure\n\nThe ship left.\n\nIt rained.\n```"
        agent = WriterAgent(llm_client=mock_llm, settings=settings)
        draft = await agent.write_unit(_unit_request())
        assert draft.text == "The ship left.\n\nIt rained."
        assert draft.word_count == 5

    @pytest.mark.asyncio
    async def test_empty_prose_is_parse_error(self, mock_llm, settings):
        from agents.writer_agent import WriterAgent
        from config.exceptions import LLMResponseParseError
        mock_llm.chat.return_value = "```\n```"
        agent = WriterAgent(llm_client=mock_llm, settings=settings)
        with pytest.raises(LLMResponseParseError):
            await agent.write_unit(_unit_request())

    @pytest.mark.asyncio
    async def test_single_attempt(self, mock_llm, settings):
        from agents.writer_agent import WriterAgent
        from config.exceptions import LLMServerError
        mock_llm.chat.side_effect = LLMServerError("503", status_code=503)
        agent = WriterAgent(llm_client=mock_llm, settings=settings)
        with pytest.raises(LLMServerError):
            await agent.write_unit(_unit_request())
        assert mock_llm.chat.await_count == 1

    def test_format_empty_history(self):
        from agents.writer_agent import format_character_history
        assert "no earlier" in format_character_history({})


class TestSummarizer:
    @pytest.mark.asyncio
    async def test_summarize_chapter(self, mock_llm, settings):
        from agents.protocols import SummaryRequest
        from memory.summarizer import Summarizer
        agent = Summarizer(llm_client=mock_llm, settings=settings)

        result = await agent.summarize_chapter(SummaryRequest(
            chapter_id=1, chapter_title="The Harbor", chapter_text="Ada crossed the river.",
        ))

        assert result.summary == "Ada crossed the river."
        assert result.character_appearances == [{"name": "Ada", "actions": ["crossed the river"]}]
        assert mock_llm.chat_json.call_args.kwargs["model"] == settings.llm_model_summary

    @pytest.mark.asyncio
    async def test_malformed_appearances_filtered_and_capped(self, mock_llm, settings):
        from agents.protocols import SummaryRequest
        from memory.summarizer import Summarizer
        appearances = [None, {"name": ""}, {"name": "Solo", "actions": "waved"}]
        appearances += [{"name": f"C{i}", "actions": ["act"]} for i in range(15)]
        mock_llm.chat_json.return_value = {"summary": "s", "character_appearances": appearances}
        agent = Summarizer(llm_client=mock_llm, settings=settings)

        result = await agent.summarize_chapter(SummaryRequest(chapter_id=1, chapter_title="T", chapter_text="x"))

        assert len(result.character_appearances) == 10
        assert result.character_appearances[0] == {"name": "Solo", "actions": ["waved"]}
