from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from groupledger.models.member import GroupMember
from groupledger.models.split import TransactionSplit

CENTS = Decimal("0.01")


def qround(d: Decimal) -> Decimal:
    return d.quantize(CENTS, rounding=ROUND_HALF_UP)


def equal_share(amount: Decimal, count: int) -> Decimal:
    # Each share is rounded independently; the remainder is not redistributed
    return qround(Decimal(amount) / count)


def build_equal_splits(
    transaction_id: int,
    amount: Decimal,
    members: Iterable[GroupMember],
    paid_by: str,
) -> List[TransactionSplit]:
    members = list(members)
    if not members:
        return []

    share = equal_share(amount, len(members))
    return [
        TransactionSplit(
            transaction_id=transaction_id,
            member_name=m.name,
            amount=share,
            is_paid=(m.name == paid_by),
        )
        for m in members
    ]


def redivide(splits: List[TransactionSplit], amount: Decimal) -> None:
    """Spread a new total equally over existing split rows, keeping names and paid flags."""
    if not splits:
        return
    share = equal_share(amount, len(splits))
    for s in splits:
        s.amount = share
