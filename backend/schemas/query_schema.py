from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ListQuery(BaseModel):
    """Common pagination/search/sort parameters for list endpoints"""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None

    @field_validator("sort_order")
    @classmethod
    def _lower_sort_order(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.lower()
        if value not in ("asc", "desc"):
            raise ValueError("Sort order must be 'asc' or 'desc'")
        return value


class UserListQuery(ListQuery):
    # Comma separated, e.g. "ADMIN,MEMBER"
    role_query: Optional[str] = None

    @property
    def roles(self) -> Optional[list[str]]:
        if not self.role_query:
            return None
        return [r.strip().upper() for r in self.role_query.split(",") if r.strip()]
