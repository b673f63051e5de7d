# cost.py
# Aggregates recorded model calls into a cost figure.
# Pure functions over the ledger; every recorded attempt counts exactly once.

from typing import Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from stepwise.errors import UnknownModelRateError
from stepwise.models import RecordedCall


class ModelRates(BaseModel):
    """Price per token for one model id."""

    model_config = ConfigDict(frozen=True)

    input_per_token: float = Field(..., ge=0.0)
    output_per_token: float = Field(..., ge=0.0)

    @classmethod
    def per_million(cls, input_usd: float, output_usd: float) -> "ModelRates":
        return cls(input_per_token=input_usd / 1_000_000.0, output_per_token=output_usd / 1_000_000.0)


class CostSummary(BaseModel):
    total_cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    calls: int = 0
    failed_calls: int = 0
    cost_by_model: dict[str, float] = Field(default_factory=dict)


class CostCalculator:
    def __init__(self, rates: Mapping[str, ModelRates]) -> None:
        self._rates = dict(rates)

    def rates_for(self, model: str) -> ModelRates:
        try:
            return self._rates[model]
        except KeyError:
            raise UnknownModelRateError(model) from None

    def cost_of(self, call: RecordedCall) -> float:
        rates = self.rates_for(call.model)
        return (
            call.usage.input_tokens * rates.input_per_token
            + call.usage.output_tokens * rates.output_per_token
        )

    def total(self, calls: Iterable[RecordedCall]) -> float:
        return sum((self.cost_of(call) for call in calls), 0.0)

    def summarize(self, calls: Iterable[RecordedCall]) -> CostSummary:
        summary = CostSummary()
        for call in calls:
            cost = self.cost_of(call)
            summary.total_cost += cost
            summary.input_tokens += call.usage.input_tokens
            summary.output_tokens += call.usage.output_tokens
            summary.calls += 1
            if not call.success:
                summary.failed_calls += 1
            summary.cost_by_model[call.model] = summary.cost_by_model.get(call.model, 0.0) + cost
        return summary
