"""Split cart lines between vendor accounts and immediate payment."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CartLine:
    """One cart line enriched with its vendor and account eligibility."""

    product_id: str
    quantity: int = 1
    variant_id: str | None = None
    vendor_id: str | None = None
    account_eligible: bool = False
    title: str | None = None

    @property
    def on_account(self) -> bool:
        return bool(self.vendor_id) and self.account_eligible


@dataclass
class VendorGroup:
    """Lines billed together on one vendor account."""

    vendor_id: str
    lines: list[CartLine] = field(default_factory=list)


@dataclass
class CartPartition:
    """Result of :func:`partition`."""

    vendor_groups: list[VendorGroup] = field(default_factory=list)
    pay_now: list[CartLine] = field(default_factory=list)

    def all_lines(self) -> list[CartLine]:
        """Return every line, vendor groups first, then pay-now lines."""
        grouped = [line for group in self.vendor_groups for line in group.lines]
        return grouped + list(self.pay_now)


def partition(lines: Iterable[CartLine]) -> CartPartition:
    """Group account-eligible lines by vendor; everything else is paid now.

    Vendor groups appear in first-seen order and each output list keeps the
    input's relative order.
    """
    groups: dict[str, VendorGroup] = {}
    pay_now: list[CartLine] = []
    for line in lines:
        vendor = line.vendor_id
        if vendor and line.account_eligible:
            group = groups.get(vendor)
            if group is None:
                group = groups[vendor] = VendorGroup(vendor_id=vendor)
            group.lines.append(line)
        else:
            pay_now.append(line)
    return CartPartition(vendor_groups=list(groups.values()), pay_now=pay_now)
