"""
Token counting and usage tracking.

Normalizes token usage reported by the different vendor APIs.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.
    
    Contains exact counts as reported by the vendor, without estimation.
    Image models report ``images_generated`` instead of tokens.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    images_generated: int = 0
    
    def __post_init__(self):
        """Validate counts are non-negative."""
        for name in ("input_tokens", "output_tokens", "reasoning_tokens", "images_generated"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
    
    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output + reasoning)."""
        return self.input_tokens + self.output_tokens + self.reasoning_tokens
    
    @property
    def is_empty(self) -> bool:
        """True when nothing billable was consumed."""
        return self.total_tokens == 0 and self.images_generated == 0
