"""
Status & Rollup Calculator -- derived contract fields.

Responsibility:
    Pure functions computing a contract's lifecycle status and its
    financial/volume rollups from stored attributes, accumulated usage and
    the current time.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ``now`` is always
    passed in; nothing here reads a clock.

Invariants enforced:
    - Status precedence, first match wins:
        1. ARCHIVED  if the active flag is false (dates are not consulted)
        2. PLANNED   if now < start_at
        3. EXPIRED   if now > end_at
        4. ACTIVE    otherwise (start_at <= now <= end_at)
    - payable = min(accumulated cost, budget); exceeded = cost > budget.
    - progress = accumulated volume / minimal volume (None if minimal is 0).
    - result is NONE unless status is EXPIRED; when EXPIRED it is SUCCESS if
      accumulated volume >= minimal volume, else FAIL.  Budget overrun does
      not affect the result.
    - Nothing computed here is ever persisted.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from contract_kernel.domain.dtos import (
    ContractInfo,
    ContractResult,
    ContractRollup,
    ContractStatus,
    ContractView,
    UsageInfo,
)


def derive_status(
    is_active: bool,
    start_at: datetime,
    end_at: datetime,
    now: datetime,
) -> ContractStatus:
    """Lifecycle status as a pure function of (is_active, start_at, end_at, now)."""
    if not is_active:
        return ContractStatus.ARCHIVED
    if now < start_at:
        return ContractStatus.PLANNED
    if now > end_at:
        return ContractStatus.EXPIRED
    return ContractStatus.ACTIVE


def derive_result(
    status: ContractStatus,
    accumulated_volume: Decimal,
    minimal_volume: Decimal,
) -> ContractResult:
    if status != ContractStatus.EXPIRED:
        return ContractResult.NONE
    if accumulated_volume >= minimal_volume:
        return ContractResult.SUCCESS
    return ContractResult.FAIL


def derive(contract: ContractInfo, usage: UsageInfo | None, now: datetime) -> ContractRollup:
    """
    Derive the read-time rollup of a contract.

    Args:
        contract: Stored contract snapshot.
        usage: Accumulated usage; None is treated as zero usage.
        now: Current time (timezone-aware).

    Returns:
        ContractRollup with status, payable amount, budget-exceeded flag,
        volume progress and result.
    """
    volume = usage.total_volume_m3 if usage is not None else Decimal("0")
    cost = usage.total_cost if usage is not None else Decimal("0")

    status = derive_status(contract.is_active, contract.start_at, contract.end_at, now)

    progress: Decimal | None = None
    if contract.minimal_volume_m3 > 0:
        progress = volume / contract.minimal_volume_m3

    return ContractRollup(
        status=status,
        payable_amount=min(cost, contract.budget_total),
        budget_exceeded=cost > contract.budget_total,
        volume_progress=progress,
        result=derive_result(status, volume, contract.minimal_volume_m3),
    )


def build_view(
    contract: ContractInfo,
    usage: UsageInfo | None,
    now: datetime,
    polygon_ids: tuple = (),
) -> ContractView:
    """Layer the derived rollup on top of stored contract and usage."""
    effective_usage = usage if usage is not None else UsageInfo.zero(contract.id)
    return ContractView(
        contract=contract,
        usage=effective_usage,
        rollup=derive(contract, effective_usage, now),
        polygon_ids=tuple(polygon_ids),
    )
