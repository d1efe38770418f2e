from __future__ import annotations

from ..extensions import db
from barflow.time_utils import to_utc_z

DEFAULT_BAR_NAME = "BarFlow"
DEFAULT_LOW_STOCK_THRESHOLD = 3
DEFAULT_AI_PROMPT = (
    "Act as the financial and operations analyst of a bar. Summarize sales, inventory, "
    "shift closes, credit balances and profit. Give short, clear observations, alerts "
    "or recommendations. If data is missing, say there is not enough information."
)

AI_PROVIDER_OPENAI = "OPENAI"
AI_PROVIDER_GEMINI = "GEMINI"
AI_PROVIDERS = (AI_PROVIDER_OPENAI, AI_PROVIDER_GEMINI)


class AppConfig(db.Model):
    """
    Single-row runtime configuration edited by admins.

    SECURITY: ai_api_key is never serialized; to_dict exposes has_api_key.
    """
    __tablename__ = "app_config"

    id = db.Column(db.Integer, primary_key=True)
    bar_name = db.Column(db.String(128), nullable=False, default=DEFAULT_BAR_NAME)
    last_export_date = db.Column(db.DateTime(timezone=True), nullable=True)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=DEFAULT_LOW_STOCK_THRESHOLD)

    ai_provider = db.Column(db.String(16), nullable=True)  # OPENAI, GEMINI
    ai_api_key = db.Column(db.Text, nullable=True)
    ai_prompt = db.Column(db.Text, nullable=True)
    ai_validated = db.Column(db.Boolean, nullable=False, default=False)
    ai_last_tested_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "bar_name": self.bar_name,
            "last_export_date": to_utc_z(self.last_export_date),
            "low_stock_threshold": self.low_stock_threshold,
        }

    def ai_dict(self) -> dict:
        return {
            "provider": self.ai_provider,
            "prompt": self.ai_prompt or DEFAULT_AI_PROMPT,
            "has_api_key": bool(self.ai_api_key),
            "validated": bool(self.ai_validated),
            "last_tested_at": to_utc_z(self.ai_last_tested_at),
        }
