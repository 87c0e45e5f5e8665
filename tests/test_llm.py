"""Tests for blockflow/llm/client.py and blockflow/llm/operations.py.

litellm.acompletion is patched; no provider is ever called.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from blockflow.exceptions import LLMError
from blockflow.llm.client import FALLBACK_MODELS, LLMClient, available_models
from blockflow.llm.operations import AIOperations
from blockflow.types import AIBlockConfig, AIDecisionRule, OutputFormat


def _ops(model="gpt-4") -> AIOperations:
    return AIOperations(LLMClient(model=model, api_key="sk-test"))


# ── LLMClient ─────────────────────────────────────────────────────────────────

class TestLLMClient:

    async def test_complete_returns_content_and_usage(self, llm_response):
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response("hi", 11, 4))) as mock:
            result = await LLMClient(model="gpt-4", api_key="sk-user").complete(
                [{"role": "user", "content": "hello"}], temperature=0.1, max_tokens=50,
            )
        assert result == {"content": "hi", "model": "gpt-4", "usage": {"input_tokens": 11, "output_tokens": 4}}
        kwargs = mock.call_args.kwargs
        assert kwargs["api_key"] == "sk-user"
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 50
        assert "response_format" not in kwargs

    async def test_provider_error_becomes_llm_error(self):
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("rate limited"))):
            with pytest.raises(LLMError) as exc_info:
                await LLMClient(model="gpt-4").complete([{"role": "user", "content": "x"}])
        assert exc_info.value.model == "gpt-4"
        assert "rate limited" in str(exc_info.value)

    def test_with_model_reuses_credentials(self):
        client = LLMClient(model="gpt-4", api_key="sk-user")
        assert client.with_model(None) is client
        assert client.with_model("gpt-4") is client
        other = client.with_model("gpt-3.5-turbo")
        assert other.model == "gpt-3.5-turbo"
        assert other.api_key == "sk-user"

    def test_available_models_fallback(self):
        with patch("litellm.open_ai_chat_completion_models", [], create=True):
            assert available_models() == FALLBACK_MODELS

    def test_available_models_filters_gpt(self):
        with patch("litellm.open_ai_chat_completion_models", ["gpt-4", "o1-mini", "gpt-3.5-turbo"], create=True):
            assert available_models() == ["gpt-3.5-turbo", "gpt-4"]


# ── execute_ai_block ──────────────────────────────────────────────────────────

class TestExecuteAIBlock:

    async def test_text_block_interpolates_prompt(self, llm_response):
        block = AIBlockConfig(
            block_id="summary", system_prompt="Be brief.", user_prompt_template="Summarise {{portfolio}}",
        )
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response("All good", 10, 5))) as mock:
            result = await _ops().execute_ai_block(block, {"portfolio": {"eth": 1}})

        assert result == {"response": "All good", "model": "gpt-4", "tokens_used": 15}
        messages = mock.call_args.kwargs["messages"]
        assert messages[1]["content"] == 'Summarise {"eth": 1}'

    async def test_json_block_parses_output(self, llm_response):
        block = AIBlockConfig(block_id="j", user_prompt_template="x", output_format=OutputFormat.JSON)
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response('{"score": 7}'))) as mock:
            result = await _ops().execute_ai_block(block, {})
        assert result == {"score": 7}
        assert mock.call_args.kwargs["response_format"] == {"type": "json_object"}

    async def test_json_block_invalid_json(self, llm_response):
        block = AIBlockConfig(block_id="j", user_prompt_template="x", output_format=OutputFormat.JSON)
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response("not json"))):
            result = await _ops().execute_ai_block(block, {})
        assert result == {"error": "Invalid JSON response", "raw": "not json"}

    async def test_failure_uses_fallback(self):
        block = AIBlockConfig(block_id="f", user_prompt_template="x", fallback_response="offline")
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("down"))):
            result = await _ops().execute_ai_block(block, {})
        assert result == {"response": "offline", "fallback": True}

    async def test_failure_without_fallback_raises(self):
        block = AIBlockConfig(block_id="f", user_prompt_template="x")
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("down"))):
            with pytest.raises(LLMError):
                await _ops().execute_ai_block(block, {})

    async def test_empty_content_is_failure(self, llm_response):
        block = AIBlockConfig(block_id="f", user_prompt_template="x", fallback_response="n/a")
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response(""))):
            result = await _ops().execute_ai_block(block, {})
        assert result["fallback"] is True

    async def test_block_model_overrides_default(self, llm_response):
        block = AIBlockConfig(block_id="m", model="gpt-3.5-turbo", user_prompt_template="x")
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response("ok"))) as mock:
            await _ops().execute_ai_block(block, {})
        assert mock.call_args.kwargs["model"] == "gpt-3.5-turbo"


# ── Analyses ──────────────────────────────────────────────────────────────────

class TestAnalyses:

    async def test_make_decision_clamps_confidence(self, llm_response):
        rule = AIDecisionRule(block_id="d", condition="price > 3000")
        reply = json.dumps({"decision": True, "confidence": 1.7, "reasoning": "yes", "suggestedAction": "sell"})
        ops = _ops()
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response(reply, 30, 9))) as mock:
            result = await ops.make_decision(rule, {"price": 3100})

        assert result.decision is True
        assert result.confidence == 1.0
        assert result.suggested_action == "sell"
        assert ops.last_usage == {"input_tokens": 30, "output_tokens": 9}
        assert "price > 3000" in mock.call_args.kwargs["messages"][0]["content"]

    async def test_make_decision_failure_is_safe(self):
        ops = _ops()
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("down"))):
            result = await ops.make_decision(AIDecisionRule(block_id="d", condition="c"), {})
        assert result.decision is False
        assert result.confidence == 0
        assert "error" in result.data

    async def test_analyze_portfolio_normalises(self, llm_response):
        reply = json.dumps({
            "analysis": "Concentrated in ETH",
            "recommendations": ["Diversify", 3],
            "riskLevel": "extreme",
            "diversificationScore": 140,
        })
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response(reply))):
            insight = await _ops().analyze_portfolio({"eth": 10})
        assert insight.recommendations == ["Diversify", "3"]
        assert insight.risk_level == "medium"
        assert insight.diversification_score == 100
        assert insight.market_sentiment == "neutral"

    async def test_trading_signal_defaults(self, llm_response):
        reply = json.dumps({"action": "moon", "confidence": "high", "targetPrice": 4000, "stop_loss": "n/a"})
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response(reply))):
            signal = await _ops().generate_trading_signal({"symbol": "ETH"}, {"trend": "up"})
        assert signal.action == "hold"
        assert signal.confidence == 0
        assert signal.target_price == 4000
        assert signal.stop_loss is None
        assert signal.timeframe == "short-term"

    async def test_trading_signal_failure(self):
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("down"))):
            signal = await _ops().generate_trading_signal({}, {})
        assert signal.action == "hold"
        assert signal.timeframe == "unknown"

    async def test_assess_risk(self, llm_response):
        reply = json.dumps({"decision": True, "confidence": 0.4, "reasoning": "fresh wallet"})
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response(reply))):
            result = await _ops().assess_risk({"value": 10}, {"age_days": 1})
        assert result.decision is True
        assert result.suggested_action == "Monitor closely"

    async def test_process_query(self, llm_response):
        reply = json.dumps({"answer": "2 ETH", "insights": ["small"], "dataUsed": ["balance"]})
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response(reply))) as mock:
            result = await _ops().process_query("How much ETH?", {"balance": 2}, ["getNativeBalance"])
        assert result["answer"] == "2 ETH"
        assert result["data_used"] == ["balance"]
        assert result["suggested_actions"] == []
        system = mock.call_args.kwargs["messages"][0]["content"]
        assert "getNativeBalance" in system

    async def test_non_object_json_treated_as_empty(self, llm_response):
        with patch("litellm.acompletion", new=AsyncMock(return_value=llm_response("[1, 2]"))):
            result = await _ops().process_query("q", {})
        assert result["answer"] == "Unable to process query"
