class CollaborationError(Exception):
    """Base class for collaboration graph errors."""


class TransientConflict(CollaborationError):
    """Another writer created the same canonical pair first."""

    def __init__(self, person_a_id: int, person_b_id: int):
        super().__init__(f"Concurrent insert for pair ({person_a_id}, {person_b_id})")
        self.person_a_id = person_a_id
        self.person_b_id = person_b_id


class MalformedObservation(CollaborationError):
    """A credit row or pair group that cannot be aggregated."""

    def __init__(self, message: str, movie_id=None, person_ids=()):
        super().__init__(message)
        self.movie_id = movie_id
        self.person_ids = tuple(person_ids)


class AggregationFailure(CollaborationError):
    """A full rebuild failed and was rolled back."""


class PathNotFound(CollaborationError):
    """No connection exists within the requested depth."""

    def __init__(self, from_person_id: int, to_person_id: int, max_depth: int):
        super().__init__(f"No path from {from_person_id} to {to_person_id} within {max_depth} degrees")
        self.from_person_id = from_person_id
        self.to_person_id = to_person_id
        self.max_depth = max_depth


class PathSearchTimeout(CollaborationError):
    """The search ran out of wall-clock budget before finishing."""

    def __init__(self, from_person_id: int, to_person_id: int, budget: float):
        super().__init__(f"Path search from {from_person_id} to {to_person_id} exceeded {budget:.2f}s budget")
        self.from_person_id = from_person_id
        self.to_person_id = to_person_id
        self.budget = budget


class StoreUnavailable(CollaborationError):
    """The underlying database could not be reached."""
