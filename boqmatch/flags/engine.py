"""Rate anomaly detection for extracted BOQ items.

Evaluates every rule independently and concatenates the reasons with "; ".
Math validation and outlier status are separate axes: a row can be an outlier
with valid arithmetic, and vice versa.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from boqmatch.config import OutlierConfig

CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("containment", ("trunking", "tray", "ladder", "conduit")),
    ("cable", ("cable", "xlpe", "pvc", "conductor")),
    ("db", ("db", "distribution", "board", "panel")),
    ("light", ("light", "led", "luminaire", "fitting")),
)
LABOUR_ONLY_MARKERS = ("labour", "labor", "installation only")
SPECIAL_EQUIPMENT_MARKERS = ("transformer", "generator", "switchgear", "mdb", "substation", "ups")


@dataclass
class OutlierResult:
    """Outcome of anomaly checks for one item."""

    is_outlier: bool = False
    outlier_reason: str | None = None
    is_rate_only: bool = False
    math_validated: bool = True
    category: str = "general"


def detect_item_category(description: str) -> str:
    """Infer the benchmark category from description keywords."""
    text = description.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "general"


def detect_outliers(
    item: Any,
    master: Any | None = None,
    confidence: float = 0.0,
    config: OutlierConfig | None = None,
) -> OutlierResult:
    """Run anomaly checks on one item.

    Args:
        item: ExtractedItem, dict, or object with description/quantity/rates/amount
        master: Matched master material (dict or object with standard costs), if any
        confidence: Match confidence for the master material
        config: Thresholds and benchmarks (defaults if omitted)

    Returns:
        OutlierResult with flags and concatenated reasons
    """
    cfg = config or OutlierConfig()
    symbol = cfg.currency_symbol

    description = str(_get(item, "item_description") or _get(item, "description") or "")
    text = description.lower()
    quantity = _to_float(_get(item, "quantity")) or 0.0
    total_rate = _to_float(_get(item, "total_rate")) or 0.0
    amount = _to_float(_get(item, "amount")) or 0.0

    category = detect_item_category(description)
    result = OutlierResult(category=category)
    result.is_rate_only = quantity <= 0 and total_rate > 0

    if total_rate <= 0:
        return result

    reasons: list[str] = []
    low, high = cfg.benchmarks.get(category, cfg.benchmarks["general"])

    # Master variance
    if master is not None and confidence >= cfg.master_min_confidence:
        master_total = (_to_float(_get(master, "standard_supply_cost")) or 0.0) + (
            _to_float(_get(master, "standard_install_cost")) or 0.0
        )
        if master_total > 0:
            variance = abs(total_rate - master_total) / master_total
            if variance > cfg.master_variance_threshold:
                direction = "higher" if total_rate > master_total else "lower"
                reasons.append(
                    f"Rate {variance * 100:.0f}% {direction} than master ({symbol}{master_total:.2f})"
                )

    # Suspiciously low
    is_labour_only = any(marker in text for marker in LABOUR_ONLY_MARKERS)
    if total_rate < cfg.low_rate_threshold and not result.is_rate_only and not is_labour_only:
        reasons.append(f"Suspiciously low rate (< {symbol}{cfg.low_rate_threshold:g})")

    # Suspiciously high
    is_special = any(marker in text for marker in SPECIAL_EQUIPMENT_MARKERS)
    if (
        total_rate > cfg.high_rate_threshold
        and not is_special
        and total_rate > high * cfg.benchmark_max_multiplier
    ):
        reasons.append(
            f"Rate {symbol}{total_rate:.2f} exceeds benchmark ({symbol}{high:g}) for {category}"
        )

    # Math validation
    if quantity > 0 and amount > 0:
        calculated = quantity * total_rate
        variance = abs(calculated - amount) / amount
        if variance > cfg.math_tolerance:
            result.math_validated = False
            reasons.append(
                f"Math validation failed: {quantity:g} x {symbol}{total_rate:.2f} = "
                f"{symbol}{calculated:.2f}, BOQ shows {symbol}{amount:.2f}"
            )

    # Benchmark floor
    if not reasons and total_rate < low * cfg.benchmark_min_ratio:
        reasons.append(
            f"Low rate {symbol}{total_rate:.2f} below market minimum ({symbol}{low:g}) for {category}"
        )

    if reasons:
        result.is_outlier = True
        result.outlier_reason = "; ".join(reasons)
    return result


def _get(source: Any, key: str) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
