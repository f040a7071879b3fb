"""
Unit tests for pricing calculations.

Tests cost accuracy, rounding behavior, model registries and error handling.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from ai_content_core.core.errors import UnsupportedModelError
from ai_content_core.core.models import ProviderName
from ai_content_core.core.pricing import (
    GOOGLE_MODELS,
    OPENAI_MODELS,
    PERPLEXITY_MODELS,
    ApiKind,
    Capability,
    ModelDescriptor,
    calculate_cost,
    estimate_cost,
    get_registry,
)
from ai_content_core.core.token_counter import TokenUsage

ALL_MODELS = [*OPENAI_MODELS, *GOOGLE_MODELS, *PERPLEXITY_MODELS]
USAGE_FIELDS = ("input_tokens", "output_tokens", "reasoning_tokens", "images_generated")


class TestTokenUsage:
    """Test TokenUsage dataclass."""

    def test_total_tokens_calculation(self):
        """Verify total_tokens adds input, output and reasoning."""
        usage = TokenUsage(input_tokens=100, output_tokens=50, reasoning_tokens=25)
        assert usage.total_tokens == 175

    def test_zero_tokens(self):
        """Verify an empty usage reports nothing billable."""
        usage = TokenUsage()
        assert usage.total_tokens == 0
        assert usage.is_empty

    def test_images_are_billable(self):
        """Verify image-only usage is not empty."""
        assert not TokenUsage(images_generated=1).is_empty

    def test_negative_counts_rejected(self):
        """Verify negative counts raise."""
        with pytest.raises(ValueError, match="input_tokens cannot be negative"):
            TokenUsage(input_tokens=-1)


class TestModelRegistry:
    """Test model registry lookups."""

    def test_get_supported_model(self):
        """Verify descriptor retrieval for a known model."""
        descriptor = OPENAI_MODELS.get("gpt-5")
        assert descriptor.api_kind == ApiKind.RESPONSES
        assert descriptor.input_cost_per_1k == Decimal("0.005")
        assert descriptor.supports(Capability.REASONING)

    def test_unsupported_model_raises_error(self):
        """Verify unknown model ids raise with the id in the message."""
        with pytest.raises(UnsupportedModelError, match="unknown-model-xyz") as exc_info:
            OPENAI_MODELS.get("unknown-model-xyz")
        assert exc_info.value.model == "unknown-model-xyz"
        assert exc_info.value.provider == "openai"

    def test_unsupported_model_is_value_error(self):
        """Verify callers catching ValueError also catch unknown models."""
        with pytest.raises(ValueError):
            PERPLEXITY_MODELS.get("gpt-5")

    def test_registry_per_provider(self):
        """Verify get_registry accepts enum and string names."""
        assert get_registry(ProviderName.GOOGLE) is GOOGLE_MODELS
        assert get_registry("perplexity") is PERPLEXITY_MODELS
        assert "sonar-pro" in get_registry("perplexity")
        assert "sonar-pro" not in get_registry("openai")

    def test_every_descriptor_belongs_to_its_registry(self):
        """Verify descriptors name the provider of the registry holding them."""
        for registry in (OPENAI_MODELS, GOOGLE_MODELS, PERPLEXITY_MODELS):
            assert len(registry) > 0
            for descriptor in registry:
                assert descriptor.provider == registry.provider

    def test_image_models_require_price(self):
        """Verify image descriptors without a per-image price are rejected."""
        with pytest.raises(ValueError, match="requires per_image_cost"):
            ModelDescriptor(model_id="img", provider=ProviderName.OPENAI, api_kind=ApiKind.IMAGES)

    def test_negative_price_rejected(self):
        """Verify negative prices are rejected."""
        with pytest.raises(ValueError, match="input_cost_per_1k cannot be negative"):
            ModelDescriptor(
                model_id="bad",
                provider=ProviderName.OPENAI,
                api_kind=ApiKind.CHAT,
                input_cost_per_1k=Decimal("-1"),
            )


class TestCostCalculation:
    """Test cost calculation accuracy and rounding."""

    def test_reasoning_model_cost(self):
        """Verify reasoning tokens are billed on top of output."""
        usage = TokenUsage(input_tokens=1000, output_tokens=2000, reasoning_tokens=500)
        cost = calculate_cost(usage, OPENAI_MODELS.get("gpt-5"))
        # Input: 1000/1000 * $0.005 = $0.005
        # Output: 2000/1000 * $0.015 = $0.030
        # Reasoning: 500/1000 * $0.06 = $0.030
        assert cost == 0.065

    def test_chat_model_cost(self):
        """Verify exact cost for a chat model."""
        usage = TokenUsage(input_tokens=1000, output_tokens=500)
        assert calculate_cost(usage, OPENAI_MODELS.get("gpt-4.1-mini")) == 0.0045

    def test_reasoning_ignored_without_rate(self):
        """Verify reasoning tokens are free when the model has no reasoning price."""
        usage = TokenUsage(reasoning_tokens=1000)
        assert calculate_cost(usage, OPENAI_MODELS.get("gpt-4.1")) == 0.0

    def test_google_thinking_tokens(self):
        """Verify Gemini thinking tokens are billed at the input rate."""
        usage = TokenUsage(input_tokens=1000, output_tokens=1000, reasoning_tokens=1000)
        cost = calculate_cost(usage, GOOGLE_MODELS.get("gemini-2.5-flash"))
        assert cost == pytest.approx(0.00075 + 0.003 + 0.00075)

    def test_image_model_cost(self):
        """Verify image models charge per image and ignore tokens."""
        usage = TokenUsage(input_tokens=5000, output_tokens=5000, images_generated=2)
        assert calculate_cost(usage, OPENAI_MODELS.get("dall-e-3")) == 0.08

    def test_zero_usage(self):
        """Verify zero usage costs nothing."""
        assert calculate_cost(TokenUsage(), PERPLEXITY_MODELS.get("sonar")) == 0.0

    def test_rounding_half_up(self):
        """Verify half a millionth rounds up rather than to even."""
        usage = TokenUsage(input_tokens=1)
        # 1/1000 * $0.0005 = $0.0000005
        assert calculate_cost(usage, OPENAI_MODELS.get("gpt-5-nano")) == 0.000001

    def test_rounding_to_six_places(self):
        """Verify results never carry more than six decimals."""
        usage = TokenUsage(input_tokens=1234, output_tokens=567)
        cost = calculate_cost(usage, PERPLEXITY_MODELS.get("sonar-pro"))
        assert cost == round(cost, 6)
        # 1.234 * 0.003 + 0.567 * 0.015 = 0.003702 + 0.008505
        assert cost == 0.012207

    @pytest.mark.parametrize("descriptor", ALL_MODELS, ids=lambda d: d.model_id)
    def test_non_negative_and_monotonic(self, descriptor):
        """Verify no model charges less when any usage field grows."""
        base = TokenUsage(input_tokens=750, output_tokens=320, reasoning_tokens=140, images_generated=1)
        base_cost = calculate_cost(base, descriptor)
        assert calculate_cost(TokenUsage(), descriptor) == 0.0
        assert base_cost >= 0

        for field in USAGE_FIELDS:
            previous = base_cost
            for step in (1, 999, 100_000):
                grown = replace(base, **{field: getattr(base, field) + step})
                cost = calculate_cost(grown, descriptor)
                assert cost >= previous, f"{field} +{step}"
                previous = cost


class TestCostEstimate:
    """Test pre-flight cost estimates."""

    def test_openai_split(self):
        """Verify OpenAI budgets split 70/30 between input and output."""
        # 700 input * 0.0015/1K + 300 output * 0.006/1K
        assert estimate_cost(1000, OPENAI_MODELS.get("gpt-4.1-mini")) == 0.00285

    def test_perplexity_split(self):
        """Verify Perplexity budgets are input-heavy."""
        # 800 input * 0.0002/1K + 200 output * 0.0008/1K
        assert estimate_cost(1000, PERPLEXITY_MODELS.get("sonar")) == 0.00032

    def test_image_estimate_is_one_image(self):
        """Verify image estimates price a single image."""
        assert estimate_cost(1000, GOOGLE_MODELS.get("imagen-4.0-fast-generate-001")) == 0.02

    def test_negative_budget_rejected(self):
        """Verify negative budgets raise."""
        with pytest.raises(ValueError, match="tokens cannot be negative"):
            estimate_cost(-1, OPENAI_MODELS.get("gpt-5"))
