"""
Record of committed simplification steps.
"""

from arcschematize.models import StepRecord


class SchematizationHistory:
    """Ordered StepRecords of one engine run."""

    def __init__(self):
        self.records = []

    def append(self, kind, stations, cost, complexity, replacements):
        record = StepRecord(
            step=len(self.records) + 1,
            kind=kind,
            stations=list(stations),
            cost=cost,
            complexity=complexity,
            replacements=list(replacements),
        )
        self.records.append(record)
        return record

    def max_cost(self):
        """Largest cost committed so far, 0 for an empty history."""
        return max((r.cost for r in self.records), default=0.0)

    def complexities(self):
        return [r.complexity for r in self.records]

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)
