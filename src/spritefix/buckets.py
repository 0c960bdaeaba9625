"""Color bucket rules for pixel histogram analysis.

Buckets are calibration data, not algorithm: each animation (or art style)
brings its own ordered list of rules. A rule pairs a label with a predicate
over the r, g, b channels. Predicates are evaluated on whole ``int16`` channel
arrays and must return a boolean mask, so plain elementwise expressions work::

    BucketRule("skin", lambda r, g, b: (r > 180) & (g > 120) & (b < 140))

Rules are applied in order and the first match wins. Pixels matching no rule
are counted in the reserved ``"other"`` bucket.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import yaml

OTHER_BUCKET = "other"

ChannelPredicate = Callable[[np.ndarray, np.ndarray, np.ndarray], np.ndarray]
Bounds = tuple[int | None, int | None]

_CHANNELS = ("r", "g", "b")


@dataclass(frozen=True)
class BucketRule:
    """A labelled pixel classification rule."""

    label: str
    predicate: ChannelPredicate

    def matches(self, r: np.ndarray, g: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Evaluate the predicate and coerce the result to a boolean mask."""
        mask = np.asarray(self.predicate(r, g, b), dtype=bool)
        if mask.shape != r.shape:
            mask = np.broadcast_to(mask, r.shape)
        return mask


def _within(channel: np.ndarray, bounds: Bounds | None) -> np.ndarray:
    if bounds is None:
        return np.ones(channel.shape, dtype=bool)
    low, high = bounds
    mask = np.ones(channel.shape, dtype=bool)
    if low is not None:
        mask &= channel > low
    if high is not None:
        mask &= channel < high
    return mask


def range_rule(
    label: str,
    r: Bounds | None = None,
    g: Bounds | None = None,
    b: Bounds | None = None,
    dominant: str | None = None,
    max_rg_diff: int | None = None,
) -> BucketRule:
    """Build a rule from exclusive per-channel bounds.

    Args:
        label: Bucket label
        r: (low, high) exclusive bounds for red, either end may be None
        g: Bounds for green
        b: Bounds for blue
        dominant: Channel ("r", "g" or "b") that must be strictly greater
            than the other two
        max_rg_diff: Maximum absolute difference between red and green

    Returns:
        BucketRule evaluating the combined condition
    """
    if dominant is not None and dominant not in _CHANNELS:
        raise ValueError(f"dominant must be one of {_CHANNELS}, got {dominant!r}")

    def predicate(rc: np.ndarray, gc: np.ndarray, bc: np.ndarray) -> np.ndarray:
        mask = _within(rc, r) & _within(gc, g) & _within(bc, b)
        if dominant is not None:
            channels = {"r": rc, "g": gc, "b": bc}
            lead = channels.pop(dominant)
            for other in channels.values():
                mask &= lead > other
        if max_rg_diff is not None:
            mask &= np.abs(rc - gc) < max_rg_diff
        return mask

    return BucketRule(label, predicate)


# Reference calibration for a green-headed character on a brown body holding
# a dark prop. Order matters: green is tested before brown.
BUCKET_PRESETS: dict[str, dict[str, Any]] = {
    "green_subject": {
        "primary": "dark_green",
        "buckets": [
            {"label": "dark_green", "r": [None, 130], "g": [80, 180], "b": [None, 110], "dominant": "g"},
            {"label": "brown", "r": [70, 190], "g": [50, 150], "b": [30, 130], "max_rg_diff": 60},
            {"label": "dark", "r": [None, 90], "g": [None, 90], "b": [None, 90]},
        ],
    },
}


def _parse_bounds(value: Any, label: str, channel: str) -> Bounds | None:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(
            f"Bucket '{label}': channel '{channel}' must be a [low, high] pair, got {value!r}"
        )
    low, high = value
    return (None if low is None else int(low), None if high is None else int(high))


def rules_from_spec(spec: dict[str, Any]) -> tuple[list[BucketRule], str | None]:
    """Build rules from a palette mapping.

    Expected format::

        primary: dark_green          # optional
        buckets:
          - label: dark_green
            r: [null, 130]
            g: [80, 180]
            dominant: g

    Returns:
        Tuple of (ordered rules, primary bucket label or None)
    """
    if not isinstance(spec, dict) or not isinstance(spec.get("buckets"), list):
        raise ValueError("Invalid palette format – expected key 'buckets: [list]'")

    rules = []
    for entry in spec["buckets"]:
        if not isinstance(entry, dict) or "label" not in entry:
            raise ValueError(f"Every bucket needs a 'label', got {entry!r}")
        label = str(entry["label"])
        rules.append(
            range_rule(
                label,
                r=_parse_bounds(entry.get("r"), label, "r"),
                g=_parse_bounds(entry.get("g"), label, "g"),
                b=_parse_bounds(entry.get("b"), label, "b"),
                dominant=entry.get("dominant"),
                max_rg_diff=entry.get("max_rg_diff"),
            )
        )

    primary = spec.get("primary")
    return rules, None if primary is None else str(primary)


def get_preset(name: str) -> tuple[list[BucketRule], str | None]:
    """Return the rules and primary bucket of a named preset."""
    if name not in BUCKET_PRESETS:
        raise ValueError(
            f"Unknown bucket preset '{name}' (available: {', '.join(sorted(BUCKET_PRESETS))})"
        )
    return rules_from_spec(BUCKET_PRESETS[name])


def load_bucket_rules(path: Path) -> tuple[list[BucketRule], str | None]:
    """Load bucket rules from a YAML or JSON palette file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    return rules_from_spec(data)
