"""Balance resolution package."""

from techvibes_wallet.balance.resolver import BalanceResolver, pick_balance_value

__all__ = ["BalanceResolver", "pick_balance_value"]
