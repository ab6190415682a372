"""A/B test schemas."""
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class ABTestVariant(BaseModel):
    id: str
    name: str = ""
    visitors: int = Field(default=0, ge=0)
    conversions: int = Field(default=0, ge=0)
    revenue: float = 0.0

    @model_validator(mode="after")
    def conversions_within_visitors(self) -> "ABTestVariant":
        if self.conversions > self.visitors:
            raise ValueError(
                f"Variant {self.id!r} has {self.conversions} conversions "
                f"but only {self.visitors} visitors"
            )
        return self

    @property
    def conversion_rate(self) -> float:
        if self.visitors == 0:
            return 0.0
        return self.conversions / self.visitors


class SignificanceResult(BaseModel):
    control_rate: float
    variant_rate: float
    z_score: float
    p_value: float
    confidence_level: float
    statistically_significant: bool
    uplift: float
    winning_variant: Optional[str] = None


class ABTestResults(BaseModel):
    test_id: str
    name: str
    hypothesis: str = ""
    variants: List[ABTestVariant]
    winning_variant: Optional[str] = None
    confidence_level: float = 0.0
    statistically_significant: bool = False
    uplift: float = 0.0
    p_value: float = 1.0
    sample_size: int = 0
