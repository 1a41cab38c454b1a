"""
DAO Treasury Exceptions

Base exception classes shared across the package. Governance-specific
errors live next to the code that raises them (see daotreasury.governance).
"""


class DAOTreasuryException(Exception):
    """Base exception for the DAO treasury."""
    pass


class InvalidAddressError(DAOTreasuryException):
    """Invalid address format."""
    pass


class ConfigurationError(DAOTreasuryException):
    """Configuration error."""
    pass


class GovernanceError(DAOTreasuryException):
    """
    Base governance exception.

    Every rejection carries a stable ``kind`` that is surfaced to callers
    verbatim together with the human-readable message.
    """
    kind = "GovernanceError"

    def to_dict(self):
        return {"kind": self.kind, "message": str(self)}
