from pydantic import BaseModel

from shared.models.search import SourceItem


class SearchResponse(BaseModel):
    query: str
    results: list[SourceItem]
    total: int


class IndexResponse(BaseModel):
    status: str
    total: int
    synced: int
    failed: int
    removed: int
    failed_paths: list[str]
