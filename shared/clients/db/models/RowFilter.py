from typing import Any, Literal

from pydantic import BaseModel


class RowFilter(BaseModel):
    """
    Engine-neutral row condition of a select.

    Attributes:
        column:   Column name.
        operator: "eq", "in", "gt", "gte" or "is_null".
        value:    Comparison value. A list for "in", ignored for "is_null".
    """
    column: str
    operator: Literal["eq", "in", "gt", "gte", "is_null"]
    value: Any = None
