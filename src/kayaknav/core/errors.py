"""Exceptions raised by the planner."""


class KayakNavError(Exception):
    """Base class for planner errors."""


class InsufficientDataError(KayakNavError):
    """An input table or station set is empty or unusable.

    No simulation can proceed without the data, so this propagates as a
    hard failure. Running past the end of a forecast is not an error: it
    surfaces as ``None`` from the simulator.
    """


class StationDataError(KayakNavError):
    """Station metadata or predictions could not be fetched or parsed."""
