from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from marketwatch.store.db import create_schema
from marketwatch_api.api.routes import scrape
from marketwatch_api.core.config import get_settings
from marketwatch_api.core.errors import validation_error
from marketwatch_api.db.session import engine

settings = get_settings()
app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def startup() -> None:
    create_schema(engine)


@app.exception_handler(RequestValidationError)
def request_validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content=validation_error(exc.errors()).to_dict())


app.include_router(scrape.router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
