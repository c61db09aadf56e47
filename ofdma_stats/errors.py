class ConfigurationError(ValueError):
    """Invalid run configuration, detected before the simulation starts."""


class UnknownStationError(AssertionError):
    """An event referenced a station that was never set up.

    Onboarding creates a record for every station, so this is a broken
    invariant rather than a recoverable condition.
    """

    def __init__(self, station: str, context: str = ""):
        self.station = station
        where = f" ({context})" if context else ""
        super().__init__(f"No statistics record for station {station}{where}")
