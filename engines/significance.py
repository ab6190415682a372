"""Two-proportion z-test for two-variant conversion experiments."""
import math
from typing import Sequence

from engines.errors import UnsupportedExperimentError
from schemas.experiment import ABTestVariant, SignificanceResult

SIGNIFICANCE_THRESHOLD = 0.05

# Abramowitz & Stegun 7.1.26, |error| < 1.5e-7
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911


def erf(x: float) -> float:
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + _P * x)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-x * x)
    return sign * y


def normal_cdf(z: float) -> float:
    return 0.5 * (1.0 + erf(z / math.sqrt(2.0)))


def two_tailed_p_value(z: float) -> float:
    return 2.0 * (1.0 - normal_cdf(abs(z)))


def evaluate(variants: Sequence[ABTestVariant]) -> SignificanceResult:
    """Compare variants[0] (control) against variants[1].

    Raises UnsupportedExperimentError unless exactly two variants are given.
    """
    if len(variants) != 2:
        raise UnsupportedExperimentError(
            f"Significance evaluation requires exactly 2 variants, got {len(variants)}",
            {"variant_count": len(variants)},
        )
    control, variant = variants
    control_rate = control.conversion_rate
    variant_rate = variant.conversion_rate

    total_visitors = control.visitors + variant.visitors
    z_score = 0.0
    if control.visitors > 0 and variant.visitors > 0:
        pooled = (control.conversions + variant.conversions) / total_visitors
        standard_error = math.sqrt(
            pooled * (1 - pooled) * (1 / control.visitors + 1 / variant.visitors)
        )
        if standard_error > 0:
            z_score = abs(control_rate - variant_rate) / standard_error

    p_value = min(max(two_tailed_p_value(z_score), 0.0), 1.0)
    significant = p_value < SIGNIFICANCE_THRESHOLD

    winning_variant = None
    if significant:
        winning_variant = variant.id if variant_rate > control_rate else control.id

    uplift = 0.0
    if control_rate > 0:
        uplift = (variant_rate - control_rate) / control_rate * 100.0

    return SignificanceResult(
        control_rate=control_rate,
        variant_rate=variant_rate,
        z_score=z_score,
        p_value=p_value,
        confidence_level=(1.0 - p_value) * 100.0,
        statistically_significant=significant,
        uplift=uplift,
        winning_variant=winning_variant,
    )
