"""Blockchain-flavoured LLM operations built on LLMClient.

Every analysis operation runs in JSON mode and normalises what comes back:
confidences are clamped to 0-1, enums fall back to a safe value, missing
fields get defaults. Provider failures are logged and turned into a safe,
clearly-labelled result instead of an exception. ``execute_ai_block`` is the
exception to that rule: it raises unless the block defines a fallback.
"""

import json
import logging
from typing import Any, Optional

from blockflow.engine.template import interpolate_keys
from blockflow.exceptions import LLMError
from blockflow.llm import prompts
from blockflow.llm.client import LLMClient, available_models
from blockflow.types import (
    AIAnalysisResult, AIBlockConfig, AIDecisionRule, AIPortfolioInsight, AITradingSignal, OutputFormat,
)

logger = logging.getLogger(__name__)

JSON_MODE = {"type": "json_object"}


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def _section(label: str, data: Any) -> str:
    return f"{label}: {_dump(data)}\n" if data else ""


def _clamp(value: Any, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    return min(max(number, low), high)


def _parse_object(content: str) -> dict:
    """Parse a JSON-mode reply. Anything but a JSON object counts as empty."""
    try:
        parsed = json.loads(content or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """First present key. Models answer in snake_case or camelCase."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


class AIOperations:
    """LLM-backed operations used by AI blocks, decision rules and /api/ai."""

    def __init__(self, llm: LLMClient):
        self.llm = llm
        self.last_usage: dict = {"input_tokens": 0, "output_tokens": 0}

    async def _json_call(self, system: str, user: str, temperature: float, model: Optional[str] = None) -> dict:
        self.last_usage = {"input_tokens": 0, "output_tokens": 0}
        response = await self.llm.with_model(model).complete(
            [{"role": "system", "content": system}, {"role": "user", "content": user}],
            temperature=temperature,
            response_format=JSON_MODE,
        )
        self.last_usage = response["usage"]
        return _parse_object(response["content"])

    # ── Blocks ──

    async def execute_ai_block(
        self,
        block: AIBlockConfig,
        inputs: dict[str, Any],
        context: Optional[dict[str, Any]] = None,
    ) -> dict:
        """Run one AI block: interpolate its prompt, call the model, shape the reply.

        Raises:
            LLMError: model call failed and the block has no fallback_response
        """
        user_prompt = interpolate_keys(block.user_prompt_template, {**inputs, **(context or {})})
        json_output = block.output_format == OutputFormat.JSON
        self.last_usage = {"input_tokens": 0, "output_tokens": 0}
        try:
            response = await self.llm.with_model(block.model).complete(
                [{"role": "system", "content": block.system_prompt}, {"role": "user", "content": user_prompt}],
                temperature=block.temperature,
                max_tokens=block.max_tokens,
                response_format=JSON_MODE if json_output else None,
            )
            self.last_usage = response["usage"]
            content = response["content"]
            if not content:
                raise LLMError("No response from AI model", model=response["model"])
        except LLMError as e:
            logger.error("[ai] block %s failed: %s", block.block_id, e)
            if block.fallback_response:
                return {"response": block.fallback_response, "fallback": True}
            raise

        if json_output:
            try:
                return json.loads(content)
            except json.JSONDecodeError:
                logger.warning("[ai] block %s returned invalid JSON", block.block_id)
                return {"error": "Invalid JSON response", "raw": content}

        usage = response["usage"]
        return {
            "response": content,
            "model": response["model"],
            "tokens_used": usage["input_tokens"] + usage["output_tokens"],
        }

    async def make_decision(
        self,
        rule: AIDecisionRule,
        context_data: dict[str, Any],
        blockchain_data: Optional[dict[str, Any]] = None,
    ) -> AIAnalysisResult:
        try:
            result = await self._json_call(
                prompts.MAKE_DECISION_SYSTEM.format(condition=rule.condition),
                prompts.MAKE_DECISION_USER.format(
                    context_data=_dump(context_data),
                    blockchain_section=_section("Blockchain Data", blockchain_data),
                ),
                prompts.DECISION_TEMPERATURE,
                model=rule.model,
            )
        except LLMError as e:
            logger.error("[ai] decision %s failed: %s", rule.block_id, e)
            return AIAnalysisResult(
                decision=False,
                confidence=0,
                reasoning="AI decision making failed due to error",
                data={"error": str(e)},
            )
        return AIAnalysisResult(
            decision=bool(result.get("decision", False)),
            confidence=_clamp(result.get("confidence", 0), 0, 1),
            reasoning=str(result.get("reasoning") or "No reasoning provided"),
            suggested_action=_pick(result, "suggested_action", "suggestedAction"),
            data=result,
        )

    # ── Analyses ──

    async def analyze_portfolio(
        self,
        portfolio_data: dict[str, Any],
        market_data: Optional[dict[str, Any]] = None,
        user_preferences: Optional[dict[str, Any]] = None,
    ) -> AIPortfolioInsight:
        try:
            result = await self._json_call(
                prompts.ANALYZE_PORTFOLIO_SYSTEM,
                prompts.ANALYZE_PORTFOLIO_USER.format(
                    portfolio_data=_dump(portfolio_data),
                    market_section=_section("Market Data", market_data),
                    preferences_section=_section("User Preferences", user_preferences),
                ),
                prompts.PORTFOLIO_TEMPERATURE,
            )
        except LLMError as e:
            logger.error("[ai] portfolio analysis failed: %s", e)
            return AIPortfolioInsight(
                analysis="Portfolio analysis failed due to error",
                recommendations=["Unable to analyze portfolio at this time"],
                risk_level="medium",
                diversification_score=0,
                market_sentiment="unknown",
            )
        risk_level = _pick(result, "risk_level", "riskLevel")
        recommendations = result.get("recommendations")
        return AIPortfolioInsight(
            analysis=str(result.get("analysis") or "No analysis provided"),
            recommendations=[str(r) for r in recommendations] if isinstance(recommendations, list) else [],
            risk_level=risk_level if risk_level in ("low", "medium", "high") else "medium",
            diversification_score=_clamp(_pick(result, "diversification_score", "diversificationScore", default=0), 0, 100),
            market_sentiment=str(_pick(result, "market_sentiment", "marketSentiment", default="neutral")),
        )

    async def generate_trading_signal(
        self,
        token_data: dict[str, Any],
        market_data: dict[str, Any],
        user_strategy: Optional[dict[str, Any]] = None,
    ) -> AITradingSignal:
        try:
            result = await self._json_call(
                prompts.TRADING_SIGNAL_SYSTEM,
                prompts.TRADING_SIGNAL_USER.format(
                    token_data=_dump(token_data),
                    market_data=_dump(market_data),
                    strategy_section=_section("User Strategy", user_strategy),
                ),
                prompts.TRADING_SIGNAL_TEMPERATURE,
            )
        except LLMError as e:
            logger.error("[ai] trading signal failed: %s", e)
            return AITradingSignal(
                action="hold",
                confidence=0,
                reasoning="Trading signal generation failed due to error",
                timeframe="unknown",
            )
        action = result.get("action")
        target = _pick(result, "target_price", "targetPrice")
        stop = _pick(result, "stop_loss", "stopLoss")
        return AITradingSignal(
            action=action if action in ("buy", "sell", "hold") else "hold",
            confidence=_clamp(result.get("confidence", 0), 0, 1),
            reasoning=str(result.get("reasoning") or "No reasoning provided"),
            target_price=target if isinstance(target, (int, float)) else None,
            stop_loss=stop if isinstance(stop, (int, float)) else None,
            timeframe=str(result.get("timeframe") or "short-term"),
        )

    async def assess_risk(
        self,
        transaction_data: dict[str, Any],
        wallet_data: dict[str, Any],
        network_data: Optional[dict[str, Any]] = None,
    ) -> AIAnalysisResult:
        try:
            result = await self._json_call(
                prompts.ASSESS_RISK_SYSTEM,
                prompts.ASSESS_RISK_USER.format(
                    transaction_data=_dump(transaction_data),
                    wallet_data=_dump(wallet_data),
                    network_section=_section("Network Data", network_data),
                ),
                prompts.RISK_TEMPERATURE,
            )
        except LLMError as e:
            logger.error("[ai] risk assessment failed: %s", e)
            return AIAnalysisResult(
                decision=False,
                confidence=0,
                reasoning="Risk assessment failed due to error",
                suggested_action="Unable to assess risk at this time",
                data={"error": str(e)},
            )
        return AIAnalysisResult(
            decision=bool(result.get("decision", False)),
            confidence=_clamp(result.get("confidence", 0), 0, 1),
            reasoning=str(result.get("reasoning") or "No risk analysis provided"),
            suggested_action=_pick(result, "suggested_action", "suggestedAction", default="Monitor closely"),
            data=result,
        )

    async def process_query(
        self,
        query: str,
        available_data: dict[str, Any],
        supported_operations: Optional[list[str]] = None,
    ) -> dict:
        operations_section = (
            f"Supported operations: {', '.join(supported_operations)}\n" if supported_operations else ""
        )
        try:
            result = await self._json_call(
                prompts.PROCESS_QUERY_SYSTEM.format(
                    data_keys=", ".join(available_data.keys()),
                    operations_section=operations_section,
                ),
                prompts.PROCESS_QUERY_USER.format(query=query, available_data=_dump(available_data)),
                prompts.QUERY_TEMPERATURE,
            )
        except LLMError as e:
            logger.error("[ai] query processing failed: %s", e)
            return {
                "answer": "Query processing failed due to error",
                "insights": [],
                "suggested_actions": [],
                "data_used": [],
                "error": str(e),
            }
        return {
            "answer": result.get("answer") or "Unable to process query",
            "insights": result.get("insights") or [],
            "suggested_actions": _pick(result, "suggested_actions", "suggestedActions", default=[]),
            "data_used": _pick(result, "data_used", "dataUsed", default=[]),
            "raw_result": result,
        }

    async def get_available_models(self) -> list[str]:
        return available_models()
