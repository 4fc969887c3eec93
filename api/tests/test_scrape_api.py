from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from marketwatch.store.models import Item, Market, Price
from marketwatch.store.repository import CatalogRepository
from marketwatch_api.services import scrape as scrape_service


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_scrape_stores_items_markets_and_prices(client, session):
    response = client.post(
        "/api/scrape",
        json=[
            {
                "title": "Golden Penny Rice 50kg",
                "price": "₦45,000.00",
                "url": "https://www.jumia.com.ng/rice",
                "market": "Jumia",
                "sourceIndex": 1,
            },
            {"title": "Golden Penny Rice 50kg", "price": "₦44,500.00", "market": "Konga", "sourceIndex": 2},
            {"title": "", "price": "₦100.00", "sourceIndex": 3},
            {"title": "Beans 1kg", "price": "free", "sourceIndex": 4},
        ],
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["totalItems"] == 4
    assert payload["processed"] == 2
    assert payload["skipped"] == 2
    assert payload["errors"] == 0
    assert payload["itemsCreated"] == 1
    assert payload["marketsCreated"] == 2
    assert payload["errorDetails"] == []

    items = session.execute(select(Item)).scalars().all()
    assert [(item.name, item.unit, item.item_url) for item in items] == [
        ("Golden Penny Rice", "50kg", "https://www.jumia.com.ng/rice")
    ]
    assert sorted(str(price) for price in session.execute(select(Price.price)).scalars()) == ["44500.00", "45000.00"]


def test_scrape_market_falls_back_to_title_then_default(client, session):
    response = client.post(
        "/api/scrape",
        json=[
            {"title": "Garri 2kg (Mile 12)", "price": 1500},
            {"title": "Yam 5 tubers", "price": "₦3,000.00"},
        ],
    )

    assert response.status_code == 200
    assert response.json()["processed"] == 2
    assert sorted(session.execute(select(Market.name)).scalars()) == ["Mile 12", "Unknown"]


def test_scrape_reports_store_errors_per_record(client, session, monkeypatch):
    class FlakyRepository(CatalogRepository):
        def insert_price(self, item_id, market_id, price, date_scraped=None):
            if price > 10000:
                raise OperationalError("INSERT INTO prices", {}, Exception("database is locked"))
            return super().insert_price(item_id, market_id, price, date_scraped)

    monkeypatch.setattr(scrape_service, "CatalogRepository", FlakyRepository)

    response = client.post(
        "/api/scrape",
        json=[
            {"title": "Rice 50kg", "price": "₦45,000.00", "market": "Jumia", "sourceIndex": 1},
            {"title": "Garri 2kg", "price": "₦1,500.00", "market": "Jumia", "sourceIndex": 2},
        ],
    )

    payload = response.json()
    assert payload["processed"] == 1
    assert payload["errors"] == 1
    assert payload["errorDetails"][0].startswith("Item 1 (Rice 50kg)")
    assert session.execute(select(Item.name)).scalars().all() == ["Garri"]


def test_scrape_rejects_malformed_body(client):
    response = client.post("/api/scrape", json={"title": "not a list"})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"

    response = client.post("/api/scrape", json=[{"price": "₦100"}])
    assert response.status_code == 422


def test_scrape_rejects_empty_batch(client):
    response = client.post("/api/scrape", json=[])
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "empty_batch"
