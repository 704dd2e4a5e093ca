"""Per-model token pricing.

Costs are in credits per 1,000,000 tokens. One credit is bought for $1, so
the numbers read as USD list prices. An unknown model is a configuration
error: it is detected by ``validate_pricing_table`` at startup and raised by
``get_pricing`` at request time, never replaced by a default.
"""

from dataclasses import dataclass
from decimal import Decimal

from src.el_common.credits import ONE_MILLION, quantize_credits
from src.el_common.enums import AIModel
from src.el_common.errors import ConfigurationError


@dataclass(frozen=True)
class ModelPricing:
    provider_model: str              # model name sent to the provider API
    prompt_token_cost: Decimal       # per 1M prompt tokens
    completion_token_cost: Decimal   # per 1M completion tokens


PRICING_TABLE: dict[str, ModelPricing] = {
    AIModel.GPT_4O.value: ModelPricing(
        provider_model="gpt-4o",
        prompt_token_cost=Decimal("2.5"),
        completion_token_cost=Decimal("10.0"),
    ),
    AIModel.GPT_4O_MINI.value: ModelPricing(
        provider_model="gpt-4o-mini",
        prompt_token_cost=Decimal("0.15"),
        completion_token_cost=Decimal("0.6"),
    ),
}


def get_pricing(model: str) -> ModelPricing:
    pricing = PRICING_TABLE.get(model)
    if pricing is None:
        raise ConfigurationError(f"no pricing for model {model!r}")
    return pricing


def is_supported_model(model: str) -> bool:
    return model in PRICING_TABLE


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> Decimal:
    """cost = prompt * prompt_cost / 1e6 + completion * completion_cost / 1e6.

    Exact decimal arithmetic, quantized to the ledger's storage scale.
    """
    if prompt_tokens < 0 or completion_tokens < 0:
        raise ValueError(
            f"token counts must be non-negative: prompt={prompt_tokens}, "
            f"completion={completion_tokens}"
        )
    pricing = get_pricing(model)
    cost = (
        Decimal(prompt_tokens) * pricing.prompt_token_cost / ONE_MILLION
        + Decimal(completion_tokens) * pricing.completion_token_cost / ONE_MILLION
    )
    return quantize_credits(cost)


def validate_pricing_table(default_model: str) -> None:
    """Startup check: every AIModel is priced and the configured default exists."""
    missing = [m.value for m in AIModel if m.value not in PRICING_TABLE]
    if missing:
        raise ConfigurationError(f"models without pricing: {', '.join(missing)}")
    for model, pricing in PRICING_TABLE.items():
        if not pricing.provider_model:
            raise ConfigurationError(f"model {model!r} has no provider model name")
        if pricing.prompt_token_cost < 0 or pricing.completion_token_cost < 0:
            raise ConfigurationError(f"model {model!r} has a negative token cost")
    if default_model not in PRICING_TABLE:
        raise ConfigurationError(f"DEFAULT_AI_MODEL {default_model!r} is not priced")
