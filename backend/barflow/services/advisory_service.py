"""
Advisory Layer (AI)

Read-only observations over closed-shift aggregates. Nothing here writes
business data; the only writes are to the AI section of app_config.

ADVISORS:
- BasicAdvisor: deterministic summary of the insights window
- LiveAdvisor: same inputs sent to OpenAI or Gemini with the configured prompt

A live failure raises DependencyUnavailable inside this module and is
answered with the basic result, tagged BASIC. Callers never see it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Protocol

import httpx
from flask import current_app

from ..extensions import db
from ..models import AppConfig
from ..models.settings import AI_PROVIDER_OPENAI, AI_PROVIDERS, DEFAULT_AI_PROMPT
from ..validation import DependencyUnavailable, ValidationError, optional_text
from barflow.time_utils import utcnow
from . import reporting_service, settings_service
from .reporting_service import SalesAggregates

SOURCE_AI = "AI"
SOURCE_BASIC = "BASIC"

DEFAULT_CHAT_MESSAGE = "Give me a quick summary"


@dataclass
class Insights:
    title: str
    summary: str
    suggestions: list[str] = field(default_factory=list)
    top_products: list[dict] = field(default_factory=list)
    source: str = SOURCE_BASIC

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "summary": self.summary,
            "suggestions": list(self.suggestions),
            "top_products": list(self.top_products),
            "source": self.source,
        }


class Advisor(Protocol):
    source: str

    def insights(self, aggregates: SalesAggregates) -> Insights: ...

    def chat(self, message: str, aggregates: SalesAggregates) -> str: ...


def _basic_suggestions(aggregates: SalesAggregates) -> list[str]:
    suggestions = []
    top = aggregates.top_products
    if top:
        suggestions.append(f"Keep stock of the best seller covered: {top[0].name}.")
        if len(top) > 1 and top[-1].revenue_cents * 10 < top[0].revenue_cents:
            suggestions.append("Review slow sellers and consider promotions or replacements.")
    else:
        suggestions.append("Close shifts with counted inventory to get more precise recommendations.")

    if aggregates.total_difference_cents < 0:
        suggestions.append(
            f"Cash shortages add up to {-aggregates.total_difference_cents} over the window; review closing counts."
        )
    if aggregates.outstanding_credit_cents > 0:
        suggestions.append(
            f"Outstanding customer credit is {aggregates.outstanding_credit_cents}; follow up on balances near their limit."
        )
    suggestions.append("Try combos and upselling during the shift to raise the average ticket.")
    return suggestions


class BasicAdvisor:
    """Deterministic advice; needs no network."""
    source = SOURCE_BASIC

    def insights(self, aggregates: SalesAggregates) -> Insights:
        if aggregates.shift_count:
            summary = (
                f"{aggregates.shift_count} closed shifts: revenue {aggregates.total_revenue_cents}, "
                f"profit {aggregates.total_profit_cents}, cash difference {aggregates.total_difference_cents}."
            )
        else:
            summary = "No closed shifts in the window. Use the shift history and reports to review performance."
        return Insights(
            title=f"Quick view ({aggregates.window_days} days)",
            summary=summary,
            suggestions=_basic_suggestions(aggregates),
            top_products=[p.to_dict() for p in aggregates.top_products],
            source=SOURCE_BASIC,
        )

    def chat(self, message: str, aggregates: SalesAggregates) -> str:
        lines = ["The assistant is in basic mode. Quick ideas:"]
        lines.extend(f"- {s}" for s in _basic_suggestions(aggregates))
        return "\n".join(lines)


class LiveAdvisor:
    """
    Provider-backed advice.

    Raises DependencyUnavailable on any transport or response problem.
    """
    source = SOURCE_AI

    def __init__(
        self,
        provider: str,
        api_key: str,
        prompt: str,
        *,
        timeout: float = 10.0,
        openai_url: str | None = None,
        openai_model: str | None = None,
        gemini_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        if provider not in AI_PROVIDERS:
            raise ValidationError(f"provider must be one of: {', '.join(AI_PROVIDERS)}")
        self.provider = provider
        self.api_key = api_key
        self.prompt = prompt or DEFAULT_AI_PROMPT
        self.timeout = timeout
        self.openai_url = openai_url or "https://api.openai.com/v1/chat/completions"
        self.openai_model = openai_model or "gpt-4o-mini"
        self.gemini_url = gemini_url or (
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
        )
        self.transport = transport

    def _complete(self, question: str, aggregates: SalesAggregates) -> str:
        context = json.dumps(aggregates.to_dict())
        user_text = f"{question}\n\nData (amounts in minor units):\n{context}"

        if self.provider == AI_PROVIDER_OPENAI:
            url = self.openai_url
            headers = {"Authorization": f"Bearer {self.api_key}"}
            payload = {
                "model": self.openai_model,
                "messages": [
                    {"role": "system", "content": self.prompt},
                    {"role": "user", "content": user_text},
                ],
            }
        else:
            url = self.gemini_url
            headers = {"x-goog-api-key": self.api_key}
            payload = {
                "system_instruction": {"parts": [{"text": self.prompt}]},
                "contents": [{"role": "user", "parts": [{"text": user_text}]}],
            }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DependencyUnavailable(f"{self.provider} request failed: {e}") from e

        try:
            if self.provider == AI_PROVIDER_OPENAI:
                text = body["choices"][0]["message"]["content"]
            else:
                text = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise DependencyUnavailable(f"{self.provider} returned an unexpected response") from e

        if not text or not str(text).strip():
            raise DependencyUnavailable(f"{self.provider} returned an empty answer")
        return str(text).strip()

    def insights(self, aggregates: SalesAggregates) -> Insights:
        summary = self._complete(
            "Summarize the bar's recent performance in a few sentences and give concrete recommendations.",
            aggregates,
        )
        return Insights(
            title="Agent suggestions",
            summary=summary,
            suggestions=_basic_suggestions(aggregates),
            top_products=[p.to_dict() for p in aggregates.top_products],
            source=SOURCE_AI,
        )

    def chat(self, message: str, aggregates: SalesAggregates) -> str:
        return self._complete(message, aggregates)


def select_advisor(cfg: AppConfig, *, transport: httpx.BaseTransport | None = None) -> Advisor:
    """Live advisor only for a validated provider with a stored key."""
    if not (cfg.ai_validated and cfg.ai_api_key and cfg.ai_provider):
        return BasicAdvisor()
    config = current_app.config
    return LiveAdvisor(
        cfg.ai_provider,
        cfg.ai_api_key,
        cfg.ai_prompt,
        timeout=config.get("AI_REQUEST_TIMEOUT_SECONDS", 10.0),
        openai_url=config.get("OPENAI_API_URL"),
        openai_model=config.get("OPENAI_MODEL"),
        gemini_url=config.get("GEMINI_API_URL"),
        transport=transport,
    )


def _aggregates() -> SalesAggregates:
    return reporting_service.sales_aggregates(current_app.config.get("INSIGHTS_WINDOW_DAYS", 30))


def get_insights(*, transport: httpx.BaseTransport | None = None) -> Insights:
    aggregates = _aggregates()
    advisor = select_advisor(settings_service.get_config(), transport=transport)
    try:
        return advisor.insights(aggregates)
    except DependencyUnavailable as e:
        current_app.logger.warning("AI insights unavailable, using basic mode: %s", e)
        return BasicAdvisor().insights(aggregates)


def chat(message: str | None, *, transport: httpx.BaseTransport | None = None) -> dict:
    """Answer one question. Returns {"reply", "source", "config"}."""
    question = optional_text(message) or DEFAULT_CHAT_MESSAGE
    cfg = settings_service.get_config()
    aggregates = _aggregates()
    advisor = select_advisor(cfg, transport=transport)
    try:
        reply = advisor.chat(question, aggregates)
        source = advisor.source
    except DependencyUnavailable as e:
        current_app.logger.warning("AI chat unavailable, using basic mode: %s", e)
        reply = BasicAdvisor().chat(question, aggregates)
        source = SOURCE_BASIC
    return {"reply": reply, "source": source, "config": cfg.ai_dict()}


def key_looks_valid(provider: str, api_key: str) -> bool:
    if provider == AI_PROVIDER_OPENAI:
        return api_key.startswith("sk-") and len(api_key) > 20
    return len(api_key) > 10


def validate_connection(provider: str | None = None, api_key: str | None = None) -> AppConfig:
    """
    Check the key format for the provider and mark the config validated.

    Missing values fall back to what is stored.

    Raises:
        ValidationError: no provider, no key, unknown provider or malformed key
    """
    cfg = settings_service.get_config()
    provider = provider or cfg.ai_provider
    api_key = optional_text(api_key) or cfg.ai_api_key

    if not provider:
        raise ValidationError("Select a provider")
    if provider not in AI_PROVIDERS:
        raise ValidationError(f"provider must be one of: {', '.join(AI_PROVIDERS)}")
    if not api_key:
        raise ValidationError("An API key is required to test the connection")
    if not key_looks_valid(provider, api_key):
        raise ValidationError("The API key does not look valid for the selected provider")

    cfg.ai_provider = provider
    cfg.ai_api_key = api_key
    if not cfg.ai_prompt:
        cfg.ai_prompt = DEFAULT_AI_PROMPT
    cfg.ai_validated = True
    cfg.ai_last_tested_at = utcnow()
    db.session.commit()
    current_app.logger.info("AI provider %s validated", provider)
    return cfg
