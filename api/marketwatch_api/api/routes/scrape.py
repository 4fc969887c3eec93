from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketwatch_api.core.config import get_settings
from marketwatch_api.core.errors import EMPTY_BATCH, ApiError, AppHTTPException
from marketwatch_api.db.session import get_db
from marketwatch_api.schemas.scrape import ScrapeRecordIn, ScrapeResponse
from marketwatch_api.services.scrape import ingest_records

router = APIRouter(prefix="/api", tags=["scrape"])


@router.post("/scrape", response_model=ScrapeResponse)
def scrape(payload: list[ScrapeRecordIn], db: Session = Depends(get_db)) -> ScrapeResponse:
    if not payload:
        raise AppHTTPException(
            status_code=400,
            error=ApiError(code=EMPTY_BATCH, message="Invalid data format. Expected non-empty array."),
        )
    return ingest_records(db, payload, get_settings())
