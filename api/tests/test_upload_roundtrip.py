import asyncio
import json
from decimal import Decimal

import httpx
from sqlalchemy import func, select

from marketwatch.batch.driver import BatchDriver
from marketwatch.batch.log import ProcessedLogStore
from marketwatch.config import BatchConfig
from marketwatch.extraction.normalizer import CanonicalRecord
from marketwatch.store.models import Item, Price
from marketwatch.upload.client import UploadClient

API_URL = "http://testserver/api/scrape"


def _client(api_app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=api_app), base_url="http://testserver")


def test_upload_client_talks_to_the_api(api_app, session):
    records = [
        CanonicalRecord(title="Palm Oil 5l", price=Decimal("7000"), url="", market="Jumia", source_index=1),
        CanonicalRecord(title="Palm Oil 5l", price=Decimal("6800"), url="", market="Konga", source_index=2),
    ]

    async def _run():
        async with _client(api_app) as http_client:
            return await UploadClient(API_URL, client=http_client).upload(records)

    result = asyncio.run(_run())

    assert result.processed == 2
    assert result.errors == 0
    assert session.scalar(select(func.count(Item.id))) == 1
    assert session.scalar(select(func.count(Price.id))) == 2


def test_batch_run_end_to_end(api_app, session, tmp_path):
    data_dir = tmp_path / "scraped-data"
    data_dir.mkdir()
    (data_dir / "jumia-groceries.json").write_text(
        json.dumps(
            [
                {"Title": "Garri 2kg", "prc": "₦ 1,500", "Title_URL": "https://www.jumia.com.ng/garri"},
                {"Title": "Yam 5 tubers", "prc": "₦ 3,000", "Title_URL": "https://www.jumia.com.ng/yam"},
                {"Title": "Honey 500ml", "prc": "out of stock"},
            ]
        ),
        encoding="utf-8",
    )
    (data_dir / "broken.json").write_text("[", encoding="utf-8")

    async def _run():
        async with _client(api_app) as http_client:
            driver = BatchDriver(
                BatchConfig(directory=data_dir, group_delay_seconds=0),
                UploadClient(API_URL, client=http_client),
                ProcessedLogStore(tmp_path / "processed-files.json"),
            )
            return await driver.run()

    summary = asyncio.run(_run())

    assert summary.processed_count == 1
    assert summary.failed_count == 1
    assert summary.total_items_uploaded == 2
    uploaded = next(result for result in summary.results if result.success)
    assert uploaded.rejected == 1
    assert sorted(session.execute(select(Item.name)).scalars()) == ["Garri", "Yam"]
