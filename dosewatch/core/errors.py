"""Domain exceptions raised by the dosage engine."""


class DosewatchError(Exception):
    """Base class for all engine errors."""


class InvalidAmount(DosewatchError, ValueError):
    """A dose amount that is not a finite positive number."""

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Dose amount must be a finite positive number, got {amount!r}")


class ConfigurationError(DosewatchError, ValueError):
    """Settings that violate the dosing policy invariants."""
