"""Abstract table boundary consumed by the sync orchestrator."""

from abc import ABC, abstractmethod
from typing import List, Sequence


class TableStore(ABC):
    """Read-all / append-batch access to the recorded saves table."""

    @abstractmethod
    def read_rows(self, range_spec: str) -> List[list]:
        """
        Return every row in *range_spec*.

        Each row is a list of cell values (str, number, or empty).
        Raises FetchError (or AuthError) on failure.
        """
        raise NotImplementedError

    @abstractmethod
    def append_rows(self, range_spec: str, rows: Sequence[Sequence]) -> int:
        """
        Append *rows* after the last row of *range_spec* in one call.

        Returns the number of rows appended.  Raises WriteError on failure.
        """
        raise NotImplementedError
