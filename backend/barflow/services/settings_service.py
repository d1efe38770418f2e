# Overview: Single-row runtime configuration (bar name, stock threshold, AI provider settings).

from __future__ import annotations

from ..extensions import db
from ..models import AppConfig
from ..models.settings import AI_PROVIDERS, DEFAULT_AI_PROMPT, DEFAULT_BAR_NAME, DEFAULT_LOW_STOCK_THRESHOLD
from ..validation import ValidationError, coerce_int, optional_text, parse_datetime_arg
from barflow.time_utils import utcnow


def get_config() -> AppConfig:
    """Return the config row, creating it with defaults on first access."""
    cfg = db.session.query(AppConfig).order_by(AppConfig.id).first()
    if cfg:
        return cfg

    cfg = AppConfig(
        bar_name=DEFAULT_BAR_NAME,
        low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD,
        ai_prompt=DEFAULT_AI_PROMPT,
        ai_validated=False,
    )
    db.session.add(cfg)
    db.session.commit()
    return cfg


def update_config(
    *,
    bar_name: str | None = None,
    last_export_date: str | None = None,
    low_stock_threshold=None,
) -> AppConfig:
    cfg = get_config()

    if bar_name is not None:
        name = optional_text(bar_name, max_length=128)
        if not name:
            raise ValidationError("bar_name cannot be blank")
        cfg.bar_name = name
    if last_export_date is not None:
        cfg.last_export_date = parse_datetime_arg("last_export_date", last_export_date)
    if low_stock_threshold is not None:
        threshold = coerce_int("low_stock_threshold", low_stock_threshold)
        if threshold < 0:
            raise ValidationError("low_stock_threshold cannot be negative")
        cfg.low_stock_threshold = threshold

    db.session.commit()
    return cfg


def mark_exported(*, commit: bool = True) -> AppConfig:
    cfg = get_config()
    cfg.last_export_date = utcnow()
    if commit:
        db.session.commit()
    return cfg


def update_ai_config(
    *,
    provider: str | None = None,
    prompt: str | None = None,
    api_key: str | None = None,
    clear_provider: bool = False,
) -> AppConfig:
    """
    Update AI settings.

    A new key or a provider change invalidates the previous connection test.
    """
    cfg = get_config()

    if provider is not None and provider not in AI_PROVIDERS:
        raise ValidationError(f"provider must be one of: {', '.join(AI_PROVIDERS)}")

    new_provider = None if clear_provider else (provider or cfg.ai_provider)
    if api_key is not None or new_provider != cfg.ai_provider:
        cfg.ai_validated = False

    cfg.ai_provider = new_provider
    if prompt is not None:
        cfg.ai_prompt = optional_text(prompt) or DEFAULT_AI_PROMPT
    if api_key is not None:
        cfg.ai_api_key = optional_text(api_key)

    db.session.commit()
    return cfg
