class PredictionError(Exception):
    """Base class for prediction failures."""


class ValidationError(PredictionError):
    """The request cannot be predicted (bad start_time, bad date, no legs)."""


class DataFetchError(PredictionError):
    """A collaborator lookup for one leg failed."""

    def __init__(self, route_id: str, lookup: str, message: str = "") -> None:
        self.route_id = route_id
        self.lookup = lookup
        super().__init__(message or f"{lookup} lookup failed for route {route_id!r}")
