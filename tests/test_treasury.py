"""
Treasury custody: deposits, payouts and transfer hook failures.
"""

import os
import sys
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from daotreasury.treasury import (
    DepositEvent,
    InsufficientFundsError,
    InvalidFundsAmountError,
    PayoutEvent,
    TransferFailedError,
    Treasury,
    TreasuryError,
)

FUNDER = "0x" + "11" * 20
GRANTEE = "0x" + "22" * 20


class TestDeposits:

    def test_initial_balance(self):
        assert Treasury(Decimal("5")).balance == Decimal("5")

    def test_negative_initial_balance(self):
        with pytest.raises(TreasuryError):
            Treasury(Decimal("-1"))

    def test_deposit_increases_balance(self):
        treasury = Treasury()
        event = treasury.deposit(FUNDER, Decimal("25"))
        assert isinstance(event, DepositEvent)
        assert event.balance_after == Decimal("25")
        assert treasury.balance == Decimal("25")
        assert event.to_dict()["from"] == FUNDER

    def test_zero_deposit_allowed(self):
        treasury = Treasury(Decimal("1"))
        treasury.deposit(FUNDER, Decimal("0"))
        assert treasury.balance == Decimal("1")

    def test_negative_deposit_rejected(self):
        treasury = Treasury(Decimal("1"))
        with pytest.raises(TreasuryError, match="negative"):
            treasury.deposit(FUNDER, Decimal("-1"))
        assert treasury.balance == Decimal("1")

    @pytest.mark.parametrize("amount", [Decimal("Infinity"), Decimal("-Infinity"), Decimal("NaN"), "Infinity", True, "lots", None])
    def test_malformed_deposit_rejected(self, amount):
        treasury = Treasury(Decimal("1"))
        with pytest.raises(InvalidFundsAmountError) as exc:
            treasury.deposit(FUNDER, amount)
        assert exc.value.kind == "InvalidAmount"
        assert treasury.balance == Decimal("1")
        assert treasury.events == []

    @pytest.mark.parametrize("amount", [Decimal("Infinity"), "NaN", False])
    def test_malformed_initial_balance(self, amount):
        with pytest.raises(InvalidFundsAmountError):
            Treasury(amount)

    def test_large_deposits_are_exact(self):
        treasury = Treasury()
        treasury.deposit(FUNDER, Decimal(10**28 + 1))
        treasury.deposit(FUNDER, Decimal(1))
        assert treasury.balance == Decimal(10**28 + 2)

    @pytest.mark.asyncio
    async def test_large_payout_is_exact(self):
        treasury = Treasury(Decimal(10**30 + 3))
        await treasury.pay(GRANTEE, Decimal(10**30 + 1))
        assert treasury.balance == Decimal(2)
        assert treasury.total_paid == Decimal(10**30 + 1)

    def test_can_cover(self):
        treasury = Treasury(Decimal("10"))
        assert treasury.can_cover(Decimal("10"))
        assert not treasury.can_cover(Decimal("10.01"))


class TestPayouts:

    @pytest.mark.asyncio
    async def test_pay_without_hook(self):
        treasury = Treasury(Decimal("10"))
        event = await treasury.pay(GRANTEE, Decimal("4"), proposal_id=3)
        assert isinstance(event, PayoutEvent)
        assert event.proposal_id == 3
        assert treasury.balance == Decimal("6")
        assert treasury.paid_to(GRANTEE) == Decimal("4")
        assert treasury.total_paid == Decimal("4")

    @pytest.mark.asyncio
    async def test_pay_calls_sync_hook(self):
        hook = MagicMock(return_value=True)
        treasury = Treasury(Decimal("10"), transfer_fn=hook)
        await treasury.pay(GRANTEE, Decimal("10"))
        hook.assert_called_once_with(GRANTEE, Decimal("10"))
        assert treasury.balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_pay_awaits_async_hook(self):
        hook = AsyncMock(return_value=None)
        treasury = Treasury(Decimal("10"), transfer_fn=hook)
        await treasury.pay(GRANTEE, Decimal("3"))
        hook.assert_awaited_once_with(GRANTEE, Decimal("3"))

    @pytest.mark.asyncio
    async def test_pay_more_than_balance(self):
        treasury = Treasury(Decimal("2"))
        with pytest.raises(InsufficientFundsError):
            await treasury.pay(GRANTEE, Decimal("3"))
        assert treasury.balance == Decimal("2")

    @pytest.mark.asyncio
    async def test_pay_non_positive(self):
        treasury = Treasury(Decimal("2"))
        with pytest.raises(TreasuryError):
            await treasury.pay(GRANTEE, Decimal("0"))

    @pytest.mark.asyncio
    async def test_hook_returning_false_restores_balance(self):
        treasury = Treasury(Decimal("10"), transfer_fn=lambda to, amount: False)
        with pytest.raises(TransferFailedError):
            await treasury.pay(GRANTEE, Decimal("10"))
        assert treasury.balance == Decimal("10")
        assert treasury.paid_to(GRANTEE) == Decimal("0")
        assert treasury.events == []

    @pytest.mark.asyncio
    async def test_hook_raising_restores_balance(self):
        def explode(to, amount):
            raise ConnectionError("node unreachable")

        treasury = Treasury(Decimal("10"), transfer_fn=explode)
        with pytest.raises(TransferFailedError) as exc:
            await treasury.pay(GRANTEE, Decimal("5"))
        assert isinstance(exc.value.__cause__, ConnectionError)
        assert treasury.balance == Decimal("10")

    @pytest.mark.asyncio
    async def test_hook_sees_reserved_balance(self):
        seen = []
        treasury = Treasury(Decimal("10"))
        treasury._transfer_fn = lambda to, amount: seen.append(treasury.balance)
        await treasury.pay(GRANTEE, Decimal("4"))
        assert seen == [Decimal("6")]

    @pytest.mark.asyncio
    async def test_events_and_to_dict(self):
        treasury = Treasury()
        treasury.deposit(FUNDER, Decimal("8"))
        await treasury.pay(GRANTEE, Decimal("8"))
        assert [type(e) for e in treasury.events] == [DepositEvent, PayoutEvent]
        assert treasury.to_dict() == {"balance": "0", "totalPaid": "8", "recipients": 1}
