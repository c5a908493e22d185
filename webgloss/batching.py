"""Batching of collected text units."""

from __future__ import annotations

from typing import Iterable, List

from .structures import DEFAULT_DELIMITER, Batch, TextUnit


class BatchBuilder:
    """Aggregates text units into batches within a character budget.

    A batch is closed before appending a unit that would bring its running
    total to or past the budget. A unit that reaches the budget on its own
    always gets a batch of its own.
    """

    def __init__(self, budget: int, delimiter: str = DEFAULT_DELIMITER) -> None:
        self.budget = max(1, budget)
        self.delimiter = delimiter

    def build(self, units: Iterable[TextUnit]) -> List[Batch]:
        batches: List[Batch] = []
        batch_units: List[TextUnit] = []
        running_total = 0
        batch_id = 1

        for unit in units:
            size = len(unit.original_text)
            if not size:
                continue

            if size >= self.budget:
                if batch_units:
                    batches.append(self._close(batch_id, batch_units))
                    batch_id += 1
                    batch_units = []
                    running_total = 0
                batches.append(self._close(batch_id, [unit]))
                batch_id += 1
                continue

            if running_total + size >= self.budget and batch_units:
                batches.append(self._close(batch_id, batch_units))
                batch_id += 1
                batch_units = []
                running_total = 0

            batch_units.append(unit)
            running_total += size

        if batch_units:
            batches.append(self._close(batch_id, batch_units))

        return batches

    def _close(self, batch_id: int, units: List[TextUnit]) -> Batch:
        return Batch(batch_id=batch_id, units=units, delimiter=self.delimiter)
