"""
Weighted averages shared by every "all rooms" view.

The allocator, the breakdown reconciler and the sensitivity sweep all
collapse per-room figures through these helpers so the three views agree.
"""

from typing import Dict, Hashable, Iterable, Mapping, Sequence, Tuple

import numpy as np


def weighted_average(
    values: Sequence[float],
    weights: Sequence[float],
    default: float = 0.0,
) -> float:
    """
    sum(value x weight) / sum(weight), or `default` when the weights sum to 0.

    Example:
        >>> weighted_average([2500, 3000], [42, 20])
        2661.29...
    """
    values_arr = np.asarray(values, dtype=float)
    weights_arr = np.asarray(weights, dtype=float)
    if values_arr.shape != weights_arr.shape:
        raise ValueError(
            f"values and weights differ in length: {values_arr.shape} vs {weights_arr.shape}"
        )
    total_weight = weights_arr.sum()
    if values_arr.size == 0 or total_weight <= 0:
        return float(default)
    return float((values_arr * weights_arr).sum() / total_weight)


def revenue_weighted_pct(
    entries: Iterable[Tuple[float, Mapping[Hashable, float]]],
) -> Dict[Hashable, float]:
    """
    Revenue-weighted share of each key across rooms.

    Args:
        entries: (target_revenue, {key: pct}) per room with a target. A room
            whose mapping lacks a key contributes 0 for that key.

    Returns:
        {key: weighted pct}, keys in first-seen order
    """
    entries = list(entries)
    keys = []
    for _, pcts in entries:
        for key in pcts:
            if key not in keys:
                keys.append(key)

    weights = [revenue for revenue, _ in entries]
    return {
        key: weighted_average([pcts.get(key, 0.0) for _, pcts in entries], weights)
        for key in keys
    }
