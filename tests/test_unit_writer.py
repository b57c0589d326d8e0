"""Tests for the unit writer stage and its retry policy."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from conftest import make_prose


def _request():
    from agents.protocols import UnitRequest
    from models.chapter import UnitDescriptor
    return UnitRequest(chapter_id=1, chapter_title="Chapter 1", unit=UnitDescriptor(sequence=1, title="S1"))


def _draft(words=50):
    from agents.protocols import UnitDraft
    return UnitDraft(text=make_prose(words), word_count=words)


def _stage(settings, side_effect, policy=None):
    from workflow.retry import RetryPolicy
    from workflow.unit_writer import UnitWriterStage
    service = MagicMock()
    service.write_unit = AsyncMock(side_effect=side_effect)
    sleep = AsyncMock()
    stage = UnitWriterStage(service, settings, policy=policy or RetryPolicy(), sleep=sleep)
    return stage, service, sleep


class TestRetryPolicy:
    def test_rate_limit_doubles_and_caps(self):
        from config.exceptions import LLMRateLimitError
        from workflow.retry import RetryPolicy
        policy = RetryPolicy()
        delays = [policy.delay_for(LLMRateLimitError(), n) for n in range(6)]
        assert delays == [5, 10, 20, 40, 60, 60]

    def test_transient_uses_smaller_factor(self):
        from config.exceptions import LLMServerError
        from workflow.retry import RetryPolicy
        policy = RetryPolicy()
        assert policy.delay_for(LLMServerError(), 0) == 5
        assert policy.delay_for(LLMServerError(), 1) == 7.5
        assert policy.delay_for(LLMServerError(), 10) == 60

    def test_from_settings(self, settings):
        from workflow.retry import RetryPolicy
        policy = RetryPolicy.from_settings(settings)
        assert policy.max_attempts == 7
        assert policy.max_delay == 0


class TestUnitWriterRetries:
    @pytest.mark.asyncio
    async def test_six_rate_limits_then_success(self, settings):
        from config.exceptions import LLMRateLimitError
        stage, service, sleep = _stage(settings, [LLMRateLimitError()] * 6 + [_draft()])

        draft = await stage.write(_request())

        assert draft.word_count == 50
        assert service.write_unit.await_count == 7
        waits = [c.args[0] for c in sleep.await_args_list]
        assert len(waits) == 6
        assert waits == sorted(waits)
        assert max(waits) <= 60

    @pytest.mark.asyncio
    async def test_seven_rate_limits_exhaust(self, settings):
        from config.exceptions import LLMRateLimitError, RetryExhaustedError
        stage, service, sleep = _stage(settings, [LLMRateLimitError()] * 8)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await stage.write(_request())

        assert service.write_unit.await_count == 7
        assert sleep.await_count == 6
        assert isinstance(exc_info.value.last_error, LLMRateLimitError)

    @pytest.mark.asyncio
    async def test_degenerate_response_retried(self, settings):
        from agents.protocols import UnitDraft
        stage, service, sleep = _stage(settings, [UnitDraft(text="Too short.", word_count=2), _draft()])

        draft = await stage.write(_request())

        assert draft.word_count == 50
        assert service.write_unit.await_count == 2
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_builtin_timeout_retried(self, settings):
        stage, service, sleep = _stage(settings, [TimeoutError(), _draft()])
        await stage.write(_request())
        assert service.write_unit.await_count == 2

    @pytest.mark.asyncio
    async def test_unclassified_error_not_retried(self, settings):
        from config.exceptions import LLMError
        stage, service, sleep = _stage(settings, [LLMError("invalid api key"), _draft()])

        with pytest.raises(LLMError, match="invalid api key"):
            await stage.write(_request())

        assert service.write_unit.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notice_reports_wait(self, settings):
        from config.exceptions import LLMRateLimitError
        stage, service, sleep = _stage(settings, [LLMRateLimitError(), _draft()])
        notices = []

        await stage.write(_request(), on_notice=notices.append)

        assert len(notices) == 1
        assert "waiting 5s" in notices[0]

    @pytest.mark.asyncio
    async def test_word_count_filled_when_missing(self, settings):
        from agents.protocols import UnitDraft
        stage, _, _ = _stage(settings, [UnitDraft(text=make_prose(40), word_count=0)])
        draft = await stage.write(_request())
        assert draft.word_count == 40


class TestPreview:
    @pytest.mark.asyncio
    async def test_preview_chunks_cover_text(self, settings):
        stage, _, _ = _stage(settings, [_draft(23)])
        chunks = []

        draft = await stage.write(_request(), on_preview=chunks.append)

        assert len(chunks) == 5
        assert "".join(chunks).split() == draft.text.split()
