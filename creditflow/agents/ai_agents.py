"""
AI Advisor for CreditFlow

DESIGN DECISION: The advisor only ever sees the projection the user is
looking at. It does not read storage and it does not change anything.

CRITICAL BOUNDARIES:

1. ADVISOR AGENT:
   - CAN: Summarize the debt curve, rate the risk, suggest practical tips
   - CANNOT: Invent amounts that are not in the projection
   - CANNOT: Modify cards, purchases or payment flags

The advice is optional. A missing API key, a network failure or an answer
that doesn't parse all end up as None, and the UI shows "advice unavailable".
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import structlog

from creditflow.config import get_settings
from creditflow.models.finance import FinancialAdvice, MonthlyProjection, RiskLevel


logger = structlog.get_logger(__name__)


TOP_ITEMS_PER_MONTH = 3

SYSTEM_INSTRUCTION = (
    "Você é um consultor financeiro pessoal experiente, especialista em gestão "
    "de dívidas e fluxo de caixa no Brasil. Seja direto, prático e empático."
)

# The model answers in Portuguese more often than not
RISK_LABELS = {
    "low": RiskLevel.LOW,
    "baixo": RiskLevel.LOW,
    "medium": RiskLevel.MEDIUM,
    "médio": RiskLevel.MEDIUM,
    "medio": RiskLevel.MEDIUM,
    "high": RiskLevel.HIGH,
    "alto": RiskLevel.HIGH,
}


def summarize_projection(projection: list[MonthlyProjection]) -> list[dict[str, Any]]:
    """
    Compact view of the projection sent to the model.

    Months with nothing due are dropped; each remaining month keeps its
    first three items as "title (Nx)".
    """
    return [
        {
            "month": entry.month,
            "totalDue": float(entry.total_due),
            "topItems": [
                f"{item.title} ({item.installment_number}x)"
                for item in entry.items[:TOP_ITEMS_PER_MONTH]
            ],
        }
        for entry in projection
        if entry.total_due > 0
    ]


def parse_risk_level(value: Any) -> Optional[RiskLevel]:
    if not isinstance(value, str):
        return None
    return RISK_LABELS.get(value.strip().lower())


def parse_advice(text: str) -> Optional[FinancialAdvice]:
    """Read the model's JSON answer; None if it isn't usable."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None

    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    summary = data.get("summary")
    risk_level = parse_risk_level(data.get("riskLevel", data.get("risk_level")))
    tips = data.get("tips", [])
    if not isinstance(summary, str) or not summary.strip() or risk_level is None:
        return None
    if not isinstance(tips, list):
        return None

    return FinancialAdvice(
        summary=summary.strip(),
        risk_level=risk_level,
        tips=[str(tip).strip() for tip in tips if str(tip).strip()],
    )


class AdvisorAgent:
    """
    AI agent that reviews the installment projection.

    RESPONSIBILITIES:
    - Build a small, data-only prompt from the projection
    - Return structured advice the UI can render

    BOUNDARIES:
    - NEVER raises for model or network problems
    - NEVER sees purchases outside the current filter
    """

    def __init__(self, model=None):
        self._settings = get_settings().gemini
        self._model = model
        if self._model is None and self._settings.api_key:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            system_instruction=SYSTEM_INSTRUCTION,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            },
        )

    @property
    def is_available(self) -> bool:
        return self._model is not None

    def build_prompt(self, projection: list[MonthlyProjection]) -> str:
        data = json.dumps(summarize_projection(projection), ensure_ascii=False)
        return f"""Analise a seguinte projeção de gastos de cartão de crédito para os próximos meses.
Dados: {data}

Forneça uma análise financeira breve, nível de risco e dicas práticas para amortização ou controle.

Responda APENAS com um objeto JSON neste formato:
{{"summary": "resumo da situação baseado na curva de gastos", "riskLevel": "Baixo" | "Médio" | "Alto", "tips": ["dica 1", "dica 2", "dica 3"]}}

Use SOMENTE os valores dos dados acima. Não invente valores."""

    async def generate_advice(
        self,
        projection: list[MonthlyProjection],
    ) -> Optional[FinancialAdvice]:
        """
        Ask the model for a risk summary of the projection.

        Returns None when the advisor is not configured, when there is
        nothing due in the projection, or when the call or its answer fails.
        """
        if self._model is None:
            logger.warning("advisor_not_configured")
            return None

        if not any(entry.total_due > 0 for entry in projection):
            return None

        try:
            response = await self._model.generate_content_async(
                self.build_prompt(projection)
            )
            text = (response.text or "").strip()
        except Exception as e:
            logger.warning("advisor_request_failed", error=str(e))
            return None

        advice = parse_advice(text)
        if advice is None:
            logger.warning("advisor_response_unparseable", response=text[:200])
        return advice
