"""Two computers wired together: a filter form drives a search query.

``query.filters`` has no initial value of its own; it receives every fresh
``filters.spec`` through the connection, starting with `initialize`.
"""

from typing import Annotated

from recompute import Computer, Dep, Executor

filters = Computer("filters")
filters.input("text", initial="")
filters.input("tags", initial=(), value_type=tuple[str, ...])


@filters.val()
def spec(text: str, tags: tuple[str, ...]) -> dict[str, object]:
    """Normalized filter specification."""
    return {"text": text.strip().lower(), "tags": sorted(set(tags))}


@filters.event()
def clear(snapshot):
    return {"text": "", "tags": ()}


query = Computer("query")
query.input("filters", description="Delivered from filters.spec.")
query.input("page", initial=1, value_type=int)


@query.val()
def url(criteria: Annotated[dict, Dep("filters")], page: int) -> str:
    """Search URL for the current filters and page."""
    params = [f"q={criteria['text']}", *(f"tag={tag}" for tag in criteria["tags"]), f"page={page}"]
    return "/search?" + "&".join(params)


@query.event()
def next_page(snapshot):
    return {"page": snapshot["page"] + 1}


def build_executor() -> Executor:
    """Build an executor with the two computers connected, not yet initialized."""
    executor = Executor()
    executor.add_computer(filters.build())
    executor.add_computer(query.build())
    executor.connect(("filters", "spec"), ("query", "filters"))
    return executor
