"""Engine-neutral metadata filter tree.

Each RAG engine translates the tree into its own filter syntax. The tree
can also evaluate itself against a plain metadata dict.
"""

from typing import Literal, Union

from pydantic import BaseModel


class FilterClause(BaseModel):
    """Equality predicate on one metadata key."""

    key: str
    value: str | int | float | bool

    def matches(self, metadata: dict) -> bool:
        return metadata.get(self.key) == self.value


class FilterGroup(BaseModel):
    """AND / OR combination of clauses and nested groups."""

    operator: Literal["and", "or"]
    clauses: list[Union[FilterClause, "FilterGroup"]]

    def matches(self, metadata: dict) -> bool:
        results = (clause.matches(metadata) for clause in self.clauses)
        return all(results) if self.operator == "and" else any(results)


FilterGroup.model_rebuild()

MetadataFilter = Union[FilterClause, FilterGroup]


def equals(key: str, value: str | int | float | bool) -> FilterClause:
    return FilterClause(key=key, value=value)


def all_of(*clauses: MetadataFilter) -> FilterGroup:
    return FilterGroup(operator="and", clauses=list(clauses))


def any_of(*clauses: MetadataFilter) -> FilterGroup:
    return FilterGroup(operator="or", clauses=list(clauses))


def build_access_filter(channel_id: str, sender_id: str) -> FilterGroup:
    """Restrict a query to the sender's messages the asker may see.

    (channel_type == "public" OR channel_id == <channel_id>) AND sender_id == <sender_id>
    """
    return all_of(
        any_of(equals("channel_type", "public"), equals("channel_id", channel_id)),
        equals("sender_id", sender_id),
    )


def build_sender_filter(sender_id: str) -> FilterClause:
    """Restrict a query to one sender's messages regardless of channel."""
    return equals("sender_id", sender_id)
