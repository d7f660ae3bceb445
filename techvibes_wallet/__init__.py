"""
Techvibes Wallet - Session and Balance Layer

The account-bearing core of the Techvibes mobile client: which account is
current, what its balance is, and what its transaction history looks like,
across several fintech backends and several profiles on one device.

DESIGN PRINCIPLES:
1. The backend is loosely typed; the domain model is not
2. Failures degrade to empty/zero results, never to exceptions in the UI
3. The newest user intent wins, not the last network reply
4. Storage and transport are swappable
"""

__version__ = "1.0.0"
__author__ = "Techvibes Mobile Team"
