"""
Aggregation of grouped cost results into gauge snapshots.

Raw groups come straight from the billing source and are not trusted:
anything without two group keys or a parseable amount is dropped rather
than defaulted, so bad upstream data lowers coverage instead of failing the
refresh.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger(__name__)

UNBLENDED_COST = "UnblendedCost"

# (service, region) -> amount
GaugeSnapshot = dict[tuple[str, str], float]


class MalformedRecordError(ValueError):
    """A cost group is missing dimensions or carries an unusable amount."""

    pass


class CostRecord(BaseModel):
    """Cost of one service in one region for a billing window."""

    model_config = {"frozen": True}

    service: str
    region: str
    amount: float

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        """Reject non-finite amounts; credits and refunds are negative."""
        if not math.isfinite(v):
            raise ValueError(f"Cost amount {v} is not a finite number")
        return v

    @property
    def key(self) -> tuple[str, str]:
        return (self.service, self.region)


def _parse_amount(raw: Any) -> float:
    if isinstance(raw, bool) or raw is None:
        raise MalformedRecordError(f"Amount is missing or not numeric: {raw!r}")
    if isinstance(raw, str):
        raw = raw.strip()
        # float() accepts digit separators such as "1_000"; billing amounts never carry them
        if "_" in raw:
            raise MalformedRecordError(f"Unparsable amount: {raw!r}")
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise MalformedRecordError(f"Unparsable amount: {raw!r}") from None


def parse_cost_group(group: Mapping[str, Any], metric: str = UNBLENDED_COST) -> CostRecord:
    """
    Convert one raw cost group into a CostRecord.

    Args:
        group: Cost Explorer style group with ``Keys`` and ``Metrics``
        metric: Name of the cost metric to read

    Returns:
        Parsed CostRecord

    Raises:
        MalformedRecordError: If the group cannot be used
    """
    if not isinstance(group, Mapping):
        raise MalformedRecordError(f"Group is not a mapping: {type(group).__name__}")

    keys = group.get("Keys") or []
    if len(keys) < 2:
        raise MalformedRecordError(f"Expected service and region keys, got {keys!r}")

    service, region = keys[0], keys[1]
    if not isinstance(service, str) or not isinstance(region, str):
        raise MalformedRecordError(f"Group keys must be strings, got {keys!r}")

    metric_data = (group.get("Metrics") or {}).get(metric)
    if not isinstance(metric_data, Mapping):
        raise MalformedRecordError(f"Metric {metric} missing for {service}/{region}")

    amount = _parse_amount(metric_data.get("Amount"))

    try:
        return CostRecord(service=service, region=region, amount=amount)
    except ValidationError as e:
        raise MalformedRecordError(str(e)) from None


def aggregate_cost_groups(
    groups: Iterable[Mapping[str, Any]], metric: str = UNBLENDED_COST
) -> GaugeSnapshot:
    """
    Build a gauge snapshot from raw cost groups.

    Duplicate (service, region) keys collapse to the last value seen.
    Malformed groups are skipped.
    """
    snapshot: GaugeSnapshot = {}
    skipped = 0

    for group in groups:
        try:
            record = parse_cost_group(group, metric)
        except MalformedRecordError as e:
            skipped += 1
            logger.debug(f"Skipping cost group: {e}")
            continue

        snapshot[record.key] = record.amount

    if skipped:
        logger.debug(f"Skipped {skipped} malformed cost groups")

    return snapshot
