from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    question: str = Field(min_length=1)
    context_path: str | None = None


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    context_path: str | None = None
