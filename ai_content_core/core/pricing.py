"""
Pricing calculations and model descriptors.

Holds the static per-provider model tables (API kind, prices, capabilities)
and the pure cost functions built on them.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, FrozenSet, Iterator, Optional

from .errors import UnsupportedModelError
from .models import ProviderName
from .token_counter import TokenUsage

COST_PRECISION = Decimal("0.000001")
ONE_THOUSAND = Decimal("1000")


class ApiKind(Enum):
    """Vendor API family a model is served through."""
    RESPONSES = "responses"
    CHAT = "chat"
    IMAGES = "images"
    SEARCH = "search"


class Capability(Enum):
    """Optional model features checked before a request is sent."""
    VISION = "vision"
    WEB_SEARCH = "web_search"
    STREAMING = "streaming"
    REASONING = "reasoning"
    THINKING = "thinking"
    THINKING_BUDGET = "thinking_budget"
    ACADEMIC = "academic"
    ADVANCED_FILTERS = "advanced_filters"


@dataclass(frozen=True)
class ModelDescriptor:
    """Static metadata for one vendor model."""
    model_id: str
    provider: ProviderName
    api_kind: ApiKind
    input_cost_per_1k: Decimal = Decimal("0")
    output_cost_per_1k: Decimal = Decimal("0")
    reasoning_cost_per_1k: Optional[Decimal] = None
    per_image_cost: Optional[Decimal] = None
    max_tokens: Optional[int] = None
    context_window: Optional[int] = None
    max_images: Optional[int] = None
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)

    def __post_init__(self):
        """Validate prices are non-negative and image models carry a price."""
        for name in ("input_cost_per_1k", "output_cost_per_1k", "reasoning_cost_per_1k", "per_image_cost"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.api_kind == ApiKind.IMAGES and self.per_image_cost is None:
            raise ValueError(f"image model {self.model_id} requires per_image_cost")

    def supports(self, capability: Capability) -> bool:
        """Check whether the model declares a capability."""
        return capability in self.capabilities


@dataclass(frozen=True)
class ModelRegistry:
    """Read-only table of the models one provider serves."""
    provider: ProviderName
    models: Dict[str, ModelDescriptor]

    def get(self, model: str) -> ModelDescriptor:
        """Get the descriptor for a model.

        Args:
            model: Model identifier

        Returns:
            ModelDescriptor for the model

        Raises:
            UnsupportedModelError: If the provider does not serve the model
        """
        descriptor = self.models.get(model)
        if descriptor is None:
            raise UnsupportedModelError(model, self.provider.value)
        return descriptor

    def __contains__(self, model: object) -> bool:
        return model in self.models

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self.models.values())

    def __len__(self) -> int:
        return len(self.models)


def _registry(provider: ProviderName, *descriptors: ModelDescriptor) -> ModelRegistry:
    return ModelRegistry(provider=provider, models={d.model_id: d for d in descriptors})


_STREAMING = frozenset({Capability.STREAMING})


OPENAI_MODELS = _registry(
    ProviderName.OPENAI,
    # GPT-5 series (Responses API)
    ModelDescriptor(
        model_id="gpt-5",
        provider=ProviderName.OPENAI,
        api_kind=ApiKind.RESPONSES,
        input_cost_per_1k=Decimal("0.005"),
        output_cost_per_1k=Decimal("0.015"),
        reasoning_cost_per_1k=Decimal("0.06"),
        capabilities=_STREAMING | {Capability.REASONING, Capability.WEB_SEARCH, Capability.VISION},
    ),
    ModelDescriptor(
        model_id="gpt-5-mini",
        provider=ProviderName.OPENAI,
        api_kind=ApiKind.RESPONSES,
        input_cost_per_1k=Decimal("0.001"),
        output_cost_per_1k=Decimal("0.004"),
        reasoning_cost_per_1k=Decimal("0.02"),
        capabilities=_STREAMING | {Capability.REASONING, Capability.WEB_SEARCH, Capability.VISION},
    ),
    ModelDescriptor(
        model_id="gpt-5-nano",
        provider=ProviderName.OPENAI,
        api_kind=ApiKind.RESPONSES,
        input_cost_per_1k=Decimal("0.0005"),
        output_cost_per_1k=Decimal("0.002"),
        reasoning_cost_per_1k=Decimal("0.01"),
        capabilities=_STREAMING | {Capability.REASONING},
    ),
    # GPT-4.1 series (Chat Completions API)
    ModelDescriptor(
        model_id="gpt-4.1",
        provider=ProviderName.OPENAI,
        api_kind=ApiKind.CHAT,
        input_cost_per_1k=Decimal("0.003"),
        output_cost_per_1k=Decimal("0.01"),
        capabilities=_STREAMING | {Capability.VISION},
    ),
    ModelDescriptor(
        model_id="gpt-4.1-mini",
        provider=ProviderName.OPENAI,
        api_kind=ApiKind.CHAT,
        input_cost_per_1k=Decimal("0.0015"),
        output_cost_per_1k=Decimal("0.006"),
        capabilities=_STREAMING | {Capability.VISION},
    ),
    ModelDescriptor(
        model_id="o1",
        provider=ProviderName.OPENAI,
        api_kind=ApiKind.RESPONSES,
        input_cost_per_1k=Decimal("0.015"),
        output_cost_per_1k=Decimal("0.06"),
        reasoning_cost_per_1k=Decimal("0.06"),
        capabilities=_STREAMING | {Capability.REASONING},
    ),
    ModelDescriptor(
        model_id="dall-e-3",
        provider=ProviderName.OPENAI,
        api_kind=ApiKind.IMAGES,
        per_image_cost=Decimal("0.04"),  # 1024x1024
        max_images=1,
    ),
)


# Thinking tokens are billed at the input rate
GOOGLE_MODELS = _registry(
    ProviderName.GOOGLE,
    ModelDescriptor(
        model_id="gemini-2.5-pro",
        provider=ProviderName.GOOGLE,
        api_kind=ApiKind.CHAT,
        input_cost_per_1k=Decimal("0.003"),
        output_cost_per_1k=Decimal("0.012"),
        reasoning_cost_per_1k=Decimal("0.003"),
        max_tokens=8000,
        context_window=1000000,
        capabilities=_STREAMING | {Capability.VISION, Capability.THINKING, Capability.WEB_SEARCH},
    ),
    ModelDescriptor(
        model_id="gemini-2.5-flash",
        provider=ProviderName.GOOGLE,
        api_kind=ApiKind.CHAT,
        input_cost_per_1k=Decimal("0.00075"),
        output_cost_per_1k=Decimal("0.003"),
        reasoning_cost_per_1k=Decimal("0.00075"),
        max_tokens=8000,
        context_window=1000000,
        capabilities=_STREAMING | {
            Capability.VISION,
            Capability.THINKING,
            Capability.THINKING_BUDGET,
            Capability.WEB_SEARCH,
        },
    ),
    ModelDescriptor(
        model_id="gemini-2.5-flash-lite",
        provider=ProviderName.GOOGLE,
        api_kind=ApiKind.CHAT,
        input_cost_per_1k=Decimal("0.000375"),
        output_cost_per_1k=Decimal("0.0015"),
        reasoning_cost_per_1k=Decimal("0.000375"),
        max_tokens=8000,
        context_window=1000000,
        capabilities=_STREAMING | {Capability.VISION},
    ),
    ModelDescriptor(
        model_id="imagen-4.0-generate-001",
        provider=ProviderName.GOOGLE,
        api_kind=ApiKind.IMAGES,
        per_image_cost=Decimal("0.04"),
        max_images=4,
    ),
    ModelDescriptor(
        model_id="imagen-4.0-ultra-generate-001",
        provider=ProviderName.GOOGLE,
        api_kind=ApiKind.IMAGES,
        per_image_cost=Decimal("0.06"),
        max_images=2,
    ),
    ModelDescriptor(
        model_id="imagen-4.0-fast-generate-001",
        provider=ProviderName.GOOGLE,
        api_kind=ApiKind.IMAGES,
        per_image_cost=Decimal("0.02"),
        max_images=4,
    ),
)


PERPLEXITY_MODELS = _registry(
    ProviderName.PERPLEXITY,
    ModelDescriptor(
        model_id="sonar",
        provider=ProviderName.PERPLEXITY,
        api_kind=ApiKind.SEARCH,
        input_cost_per_1k=Decimal("0.0002"),  # $0.2 per 1M
        output_cost_per_1k=Decimal("0.0008"),
        context_window=127000,
        capabilities=_STREAMING | {Capability.WEB_SEARCH},
    ),
    ModelDescriptor(
        model_id="sonar-pro",
        provider=ProviderName.PERPLEXITY,
        api_kind=ApiKind.SEARCH,
        input_cost_per_1k=Decimal("0.003"),
        output_cost_per_1k=Decimal("0.015"),
        context_window=127000,
        capabilities=_STREAMING | {
            Capability.WEB_SEARCH,
            Capability.ACADEMIC,
            Capability.ADVANCED_FILTERS,
        },
    ),
    ModelDescriptor(
        model_id="sonar-deep-research",
        provider=ProviderName.PERPLEXITY,
        api_kind=ApiKind.SEARCH,
        input_cost_per_1k=Decimal("0.005"),
        output_cost_per_1k=Decimal("0.025"),
        reasoning_cost_per_1k=Decimal("0.05"),
        context_window=127000,
        capabilities=_STREAMING | {Capability.WEB_SEARCH, Capability.REASONING},
    ),
    ModelDescriptor(
        model_id="sonar-reasoning-pro",
        provider=ProviderName.PERPLEXITY,
        api_kind=ApiKind.SEARCH,
        input_cost_per_1k=Decimal("0.008"),  # can vary 3-8 per 1M
        output_cost_per_1k=Decimal("0.04"),
        reasoning_cost_per_1k=Decimal("0.06"),
        context_window=127000,
        capabilities=_STREAMING | {Capability.WEB_SEARCH, Capability.REASONING},
    ),
)


REGISTRIES: Dict[ProviderName, ModelRegistry] = {
    ProviderName.OPENAI: OPENAI_MODELS,
    ProviderName.GOOGLE: GOOGLE_MODELS,
    ProviderName.PERPLEXITY: PERPLEXITY_MODELS,
}

# Share of an estimated token budget assumed to be input
ESTIMATE_INPUT_SHARE: Dict[ProviderName, Decimal] = {
    ProviderName.OPENAI: Decimal("0.7"),
    ProviderName.GOOGLE: Decimal("0.7"),
    ProviderName.PERPLEXITY: Decimal("0.8"),  # research is input-heavy
}


def get_registry(provider: ProviderName) -> ModelRegistry:
    """Get the model registry of a provider."""
    return REGISTRIES[ProviderName(provider)]


def _per_1k(tokens: int, rate: Decimal) -> Decimal:
    return (Decimal(tokens) / ONE_THOUSAND) * rate


def calculate_cost(usage: TokenUsage, descriptor: ModelDescriptor) -> float:
    """Calculate the cost of one call.

    Token models: input/1000 * input rate + output/1000 * output rate,
    plus reasoning/1000 * reasoning rate when the model prices reasoning.
    Image models: images generated * per-image price.

    Args:
        usage: Token usage reported by the vendor
        descriptor: Descriptor of the model that served the call

    Returns:
        Cost rounded half-up to 6 decimal places
    """
    if descriptor.api_kind == ApiKind.IMAGES:
        total = Decimal(usage.images_generated) * (descriptor.per_image_cost or Decimal("0"))
    else:
        total = _per_1k(usage.input_tokens, descriptor.input_cost_per_1k)
        total += _per_1k(usage.output_tokens, descriptor.output_cost_per_1k)
        if descriptor.reasoning_cost_per_1k is not None:
            total += _per_1k(usage.reasoning_tokens, descriptor.reasoning_cost_per_1k)

    return float(total.quantize(COST_PRECISION, rounding=ROUND_HALF_UP))


def estimate_cost(tokens: int, descriptor: ModelDescriptor) -> float:
    """Rough pre-flight cost estimate for a token budget.

    Splits the budget between input and output using the provider's usual
    ratio. Image models return the price of a single image.
    """
    if tokens < 0:
        raise ValueError("tokens cannot be negative")
    if descriptor.api_kind == ApiKind.IMAGES:
        return calculate_cost(TokenUsage(images_generated=1), descriptor)

    share = ESTIMATE_INPUT_SHARE.get(descriptor.provider, Decimal("0.7"))
    input_tokens = int(Decimal(tokens) * share)
    output_tokens = int(Decimal(tokens) * (Decimal("1") - share))
    return calculate_cost(TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens), descriptor)
