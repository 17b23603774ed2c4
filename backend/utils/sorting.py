from typing import Iterable, Optional

from sqlalchemy import asc, desc


class SortingHelper:
    """Whitelist-based ORDER BY builder for list endpoints.

    The sortable columns are declared up front per model; anything the client
    asks for outside that list falls back to newest-first by primary key.
    """

    def __init__(self, model, sortable_fields: Iterable[str]):
        self.model = model
        self.sortable_fields = {}
        for name in sortable_fields:
            column = getattr(model, name, None)
            if column is None:
                raise ValueError(f"{model.__name__} has no column '{name}'")
            self.sortable_fields[name] = column

    def get_valid_sort_fields(self) -> list[str]:
        return list(self.sortable_fields)

    def is_valid_sort_by(self, sort_by: str) -> bool:
        return sort_by in self.sortable_fields

    @staticmethod
    def is_valid_sort_direction(sort_order: str) -> bool:
        return (sort_order or "").lower() in ("asc", "desc")

    def apply_sorting(self, sort_by: Optional[str] = None, sort_order: Optional[str] = None):
        if not sort_by or sort_by not in self.sortable_fields:
            return desc(self.model.id)
        column = self.sortable_fields[sort_by]
        if (sort_order or "").lower() == "asc":
            return asc(column)
        return desc(column)
