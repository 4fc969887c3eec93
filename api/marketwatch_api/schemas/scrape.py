from pydantic import BaseModel, ConfigDict, Field


class ScrapeRecordIn(BaseModel):
    title: str
    price: str | float
    url: str = ""
    market: str = ""
    source_index: int | None = Field(default=None, alias="sourceIndex")

    model_config = ConfigDict(populate_by_name=True)


class ScrapeResponse(BaseModel):
    total_items: int = Field(alias="totalItems")
    processed: int
    errors: int
    skipped: int
    items_created: int = Field(alias="itemsCreated")
    markets_created: int = Field(alias="marketsCreated")
    error_details: list[str] = Field(default_factory=list, alias="errorDetails")

    model_config = ConfigDict(populate_by_name=True)
