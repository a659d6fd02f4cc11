# ledger/services/ai.py
"""
Thin client for an OpenAI-compatible chat-completions API (DeepSeek or OpenAI).

Plain words:
- provider comes from AI_PROVIDER; base URL / model / key from the matching settings
- no API key configured -> a placeholder text comes back and no request is made
- any non-2xx answer (or network error) -> UpstreamError
- prompts live in ledger/prompts/*.j2 (Jinja2)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from jinja2 import Environment, FileSystemLoader

from ledger.config import Settings, get_settings
from ledger.errors import UpstreamError

logger = logging.getLogger("ledger.ai")

PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"  # ledger/prompts
PLACEHOLDER = "(development) No AI API key configured; this is a placeholder analysis."
TEMPERATURE = 0.3
MAX_PAYLOAD_CHARS = 4000

prompts = Environment(
    loader=FileSystemLoader(str(PROMPTS_DIR)),
    autoescape=False,  # plain text for the model, not HTML
    keep_trailing_newline=False,
)


class AIClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    # ---------- provider config ----------

    @property
    def provider(self) -> str:
        return (self.settings.ai_provider or "deepseek").lower()

    def _conf(self) -> Dict[str, Optional[str]]:
        s = self.settings
        if self.provider == "openai":
            return {"base": s.openai_api_base, "model": s.openai_model, "key": s.openai_api_key}
        return {"base": s.deepseek_api_base, "model": s.deepseek_model, "key": s.deepseek_api_key}

    # ---------- transport ----------

    def chat(self, messages: List[Dict[str, str]]) -> str:
        """One completion; returns the trimmed content of the first choice."""
        conf = self._conf()
        if not conf["key"]:
            return PLACEHOLDER

        url = f"{str(conf['base']).rstrip('/')}/chat/completions"
        body = {"model": conf["model"], "messages": messages, "temperature": TEMPERATURE}
        headers = {"Authorization": f"Bearer {conf['key']}"}
        client = self._client or httpx.Client(timeout=self.settings.ai_timeout_seconds)
        try:
            resp = client.post(url, json=body, headers=headers)
        except httpx.HTTPError as ex:
            raise UpstreamError(f"AI request failed: {ex}")
        finally:
            if self._client is None:
                client.close()

        if resp.status_code >= 300:
            logger.warning("AI provider %s answered %s", self.provider, resp.status_code)
            raise UpstreamError(f"AI request failed: {resp.status_code} {resp.text[:500]}")
        try:
            data = resp.json()
        except ValueError:
            raise UpstreamError("AI response is not JSON")
        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content") or ""
        return content.strip()

    # ---------- use cases ----------

    def analyze_month(self, month: str, transactions: List[Dict[str, Any]]) -> str:
        """Markdown overview / top categories / change / advice for one month."""
        currency = (transactions[0].get("currency") if transactions else None) or (
            self.settings.default_currency
        )
        payload = json.dumps(transactions, default=str, ensure_ascii=False)[:MAX_PAYLOAD_CHARS]
        messages = [
            {"role": "system", "content": prompts.get_template("month_analysis_system.j2").render()},
            {
                "role": "user",
                "content": prompts.get_template("month_analysis_user.j2").render(
                    currency=currency, month=month, payload=payload
                ),
            },
        ]
        return self.chat(messages)

    def report_insights(self, kind: str, values: Dict[str, Any]) -> str:
        """Short narrative for a weekly / monthly report about to be stored."""
        if kind == "weekly":
            period = f"{values['week_start_date']} to {values['week_end_date']}"
            change = values.get("week_over_week_change")
            change_pct = values.get("week_over_week_percentage")
        else:
            period = f"{values['year']:04d}-{values['month']:02d}"
            change = values.get("month_over_month_change")
            change_pct = values.get("month_over_month_percentage")

        text = prompts.get_template("report_insights.j2").render(
            kind=kind,
            period=period,
            currency=self.settings.default_currency,
            total=values["total_expenses"],
            count=values["transaction_count"],
            change=change,
            change_pct=change_pct,
            fixed=values.get("fixed_expenses"),
            variable=values.get("variable_expenses"),
            categories=json.dumps(values["category_breakdown"], ensure_ascii=False),
            merchants=json.dumps(values["top_merchants"], ensure_ascii=False),
        )
        return self.chat([{"role": "user", "content": text[:MAX_PAYLOAD_CHARS]}])
