"""
DAO Treasury

Treasury-governed voting ledger: weight-holders propose spending from a
shared treasury, vote with their current holdings, and release or cancel
proposals once quorum is reached.
"""

__version__ = "1.0.0"

from .governance import GovernanceLedger, VoteChoice
from .tokens import GovernanceToken
from .treasury import Treasury

__all__ = ["GovernanceLedger", "GovernanceToken", "Treasury", "VoteChoice", "__version__"]
