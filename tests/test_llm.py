"""Tests for the LLM layer: LiteLLM engine, factory and gap scenario prompt."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from litellm.exceptions import AuthenticationError as LiteLLMAuthError
from litellm.exceptions import BadRequestError as LiteLLMBadRequestError
from litellm.exceptions import RateLimitError as LiteLLMRateLimitError

from gapwise.agents.analyzers.gaps import ApiGap, BusinessRuleGap, CoverageGap, GapSet
from gapwise.agents.analyzers.openapi import ApiContract
from gapwise.agents.analyzers.requirements import RuleCatalog
from gapwise.adapters.coverage.base import CoverageMetricKind
from gapwise.config import LLMConfig
from gapwise.llm.builtin import BuiltinLLM, RetryConfig, _RequestThrottle
from gapwise.llm.engine import (
    GenerationRequest,
    LLMAuthError,
    LLMError,
    LLMMessage,
    LLMRateLimitError,
    LLMResponseError,
)
from gapwise.llm.factory import create_engine
from gapwise.llm.prompts.gap_scenarios import GapPromptContext, GapScenarioPrompt


def _completion(text: str = "ok") -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        model="gpt-4o",
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )


def _request() -> GenerationRequest:
    return GenerationRequest(messages=[LLMMessage(role="user", content="hi")])


_NO_DELAY = RetryConfig(max_retries=2, base_delay=0.0)


# ── BuiltinLLM ───────────────────────────────────────────────────


class TestBuiltinLLM:
    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        engine = BuiltinLLM("gpt-4o", api_key="sk-test", base_url="http://proxy")
        with patch("litellm.acompletion", new=AsyncMock(return_value=_completion("hello"))) as ac:
            response = await engine.generate(_request())

        assert response.text == "hello"
        assert response.total_tokens == 15
        kwargs = ac.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["api_base"] == "http://proxy"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self) -> None:
        engine = BuiltinLLM("gpt-4o", retry=_NO_DELAY, requests_per_minute=0)
        error = LiteLLMAuthError(message="bad key", llm_provider="openai", model="gpt-4o")
        with (
            patch("litellm.acompletion", new=AsyncMock(side_effect=error)) as ac,
            pytest.raises(LLMAuthError),
        ):
            await engine.generate(_request())
        assert ac.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_retried_then_raised(self) -> None:
        engine = BuiltinLLM("gpt-4o", retry=_NO_DELAY, requests_per_minute=0)
        error = LiteLLMRateLimitError(message="slow down", llm_provider="openai", model="gpt-4o")
        with (
            patch("litellm.acompletion", new=AsyncMock(side_effect=error)) as ac,
            pytest.raises(LLMRateLimitError),
        ):
            await engine.generate(_request())
        assert ac.await_count == 3

    @pytest.mark.asyncio
    async def test_rate_limit_then_success(self) -> None:
        engine = BuiltinLLM("gpt-4o", retry=_NO_DELAY, requests_per_minute=0)
        error = LiteLLMRateLimitError(message="slow down", llm_provider="openai", model="gpt-4o")
        with patch(
            "litellm.acompletion", new=AsyncMock(side_effect=[error, _completion("done")])
        ):
            response = await engine.generate(_request())
        assert response.text == "done"

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self) -> None:
        engine = BuiltinLLM("gpt-4o", retry=_NO_DELAY, requests_per_minute=0)
        error = LiteLLMBadRequestError(message="unknown model", model="x", llm_provider="openai")
        with (
            patch("litellm.acompletion", new=AsyncMock(side_effect=error)) as ac,
            pytest.raises(LLMError, match="unknown model"),
        ):
            await engine.generate(_request())
        assert ac.await_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_llm_error(self) -> None:
        engine = BuiltinLLM("gpt-4o", retry=_NO_DELAY, requests_per_minute=0)
        with (
            patch("litellm.acompletion", new=AsyncMock(side_effect=ValueError("boom"))),
            pytest.raises(LLMError, match="ValueError: boom"),
        ):
            await engine.generate(_request())

    @pytest.mark.asyncio
    async def test_unroutable_model(self) -> None:
        engine = BuiltinLLM("no-such-provider-xyz", retry=RetryConfig(max_retries=0))
        with pytest.raises(LLMError):
            await engine.generate(_request())

    @pytest.mark.asyncio
    async def test_empty_choices(self) -> None:
        engine = BuiltinLLM("gpt-4o", retry=_NO_DELAY, requests_per_minute=0)
        completion = SimpleNamespace(choices=[], model="gpt-4o", usage=None)
        with (
            patch("litellm.acompletion", new=AsyncMock(return_value=completion)),
            pytest.raises(LLMResponseError, match="no message"),
        ):
            await engine.generate(_request())

    @pytest.mark.asyncio
    async def test_missing_usage_counts_zero(self) -> None:
        engine = BuiltinLLM("gpt-4o")
        completion = _completion("hi")
        completion.usage = None
        with patch("litellm.acompletion", new=AsyncMock(return_value=completion)):
            response = await engine.generate(_request())
        assert response.total_tokens == 0

    def test_backoff_is_capped(self) -> None:
        engine = BuiltinLLM("gpt-4o", retry=RetryConfig(base_delay=1.0, max_delay=5.0))
        assert engine._backoff_delay(0) == 1.0
        assert engine._backoff_delay(10) == 5.0


class TestRequestThrottle:
    @pytest.mark.asyncio
    async def test_first_request_not_delayed(self) -> None:
        throttle = _RequestThrottle(60)
        with patch("asyncio.sleep", new=AsyncMock()) as sleep:
            await throttle.wait()
        sleep.assert_not_awaited()
        assert throttle.interval == 1.0

    @pytest.mark.asyncio
    async def test_second_request_waits_for_slot(self) -> None:
        throttle = _RequestThrottle(60)
        with patch("asyncio.sleep", new=AsyncMock()) as sleep:
            await throttle.wait()
            await throttle.wait()
        delay = sleep.await_args.args[0]
        assert 0 < delay <= 1.0

    @pytest.mark.asyncio
    async def test_zero_rate_disables_throttling(self) -> None:
        throttle = _RequestThrottle(0)
        with patch("asyncio.sleep", new=AsyncMock()) as sleep:
            await throttle.wait()
            await throttle.wait()
        sleep.assert_not_awaited()


# ── Factory ──────────────────────────────────────────────────────


class TestCreateEngine:
    def test_builtin(self) -> None:
        engine = create_engine(LLMConfig(model="gpt-4o", api_key="sk-test"))
        assert isinstance(engine, BuiltinLLM)
        assert engine.model_name == "gpt-4o"

    def test_ollama_prefix(self) -> None:
        engine = create_engine(LLMConfig(model="llama3", mode="ollama"))
        assert engine.model_name == "ollama/llama3"

    def test_ollama_prefix_not_doubled(self) -> None:
        engine = create_engine(LLMConfig(model="ollama/llama3", mode="ollama"))
        assert engine.model_name == "ollama/llama3"

    def test_disabled(self) -> None:
        with pytest.raises(LLMError, match="disabled"):
            create_engine(LLMConfig(model="gpt-4o", mode="disabled"))

    def test_unknown_mode(self) -> None:
        with pytest.raises(LLMError, match="Unsupported"):
            create_engine(LLMConfig(model="gpt-4o", mode="telepathy"))

    def test_no_model(self) -> None:
        with pytest.raises(LLMError, match="No LLM model"):
            create_engine(LLMConfig())


# ── Prompt ───────────────────────────────────────────────────────


def _gaps(count: int) -> GapSet:
    return GapSet(
        code_gaps=[
            CoverageGap(
                package_name="com/acme",
                class_name=f"com/acme/C{i}",
                kind=CoverageMetricKind.LINE,
                coverage=i,
                threshold=80,
                method_name="run",
                suggestion=f"suggest {i}",
            )
            for i in range(count)
        ],
        api_gaps=[ApiGap(path="/orders", method="POST", operation_id="createOrder")],
        business_rule_gaps=[
            BusinessRuleGap(
                rule_id="R-1",
                description="y" * 200,
                category="Payment",
                priority="High",
            )
        ],
    )


class TestGapScenarioPrompt:
    def test_render_sections(self) -> None:
        contract = ApiContract(title="Orders API", version="2.0", description="Orders")
        rendered = GapScenarioPrompt().render(
            GapPromptContext(gaps=_gaps(2), contract=contract, catalog=RuleCatalog())
        )
        assert "Test Automation Agent" in rendered.system_message
        user = rendered.user_message
        assert "## API Information" in user
        assert "- Title: Orders API" in user
        assert "- Class: com.acme.C0, Method: run" in user
        assert "LINE Coverage: 0%" in user
        assert "- POST /orders (createOrder)" in user
        assert "Category: Payment, Priority: High" in user
        assert "## Response Format" in user

    def test_gap_lists_capped(self) -> None:
        rendered = GapScenarioPrompt().render(
            GapPromptContext(
                gaps=_gaps(8), contract=ApiContract(), catalog=RuleCatalog(), max_gaps=3
            )
        )
        assert "com.acme.C2" in rendered.user_message
        assert "com.acme.C3" not in rendered.user_message

    def test_long_rule_description_truncated(self) -> None:
        rendered = GapScenarioPrompt().render(
            GapPromptContext(gaps=_gaps(0), contract=ApiContract(), catalog=RuleCatalog())
        )
        assert "y" * 150 + "..." in rendered.user_message
        assert "y" * 151 not in rendered.user_message

    def test_empty_sections_omitted(self) -> None:
        rendered = GapScenarioPrompt().render(
            GapPromptContext(gaps=GapSet(), contract=ApiContract(), catalog=RuleCatalog())
        )
        assert "## Code Coverage Gaps" not in rendered.user_message
        assert "## Task" in rendered.user_message
