import pytest
from fastapi.testclient import TestClient

from api.main import app, get_gateway, get_publisher, get_store
from insights.gateway import InMemorySnapshotGateway, SnapshotPublisher


@pytest.fixture
def client(store):
    gateway = InMemorySnapshotGateway(base_url="http://share.test")
    publisher = SnapshotPublisher(gateway)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_meta_endpoints(client):
    assert client.get("/meta/retailers").json() == {"values": ["Kroger", "Target", "Walmart"]}
    assert client.get("/meta/months").json() == {"values": ["2024-02", "2024-03"]}
    questions = client.get("/meta/questions").json()["questions"]
    assert questions == [{"number": "01", "text": "Why did you buy?"}]


def test_view_with_comparison(client):
    res = client.post("/view", json={"filters": {"date_mode": "month", "month": "2024-03"}})
    assert res.status_code == 200
    body = res.json()
    assert body["metrics"]["total_records"] == 3
    assert body["comparison"]["total_records"] == 2


def test_demographics_endpoint(client):
    res = client.post("/demographics", json={"question_number": "01", "genders": ["Male"]})
    assert res.status_code == 200
    body = res.json()
    assert body["record_count"] == 2
    assert body["breakdown"]["response_counts"] == {"Price": 1, "Taste": 1}


def test_redaction_preview(client):
    res = client.post(
        "/redaction/preview",
        json={"hide_retailers": True, "hide_totals": True, "show_only_percent": True, "hidden_charts": ["daily_trend"]},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["retailer_distribution"][0]["name"] == "Retailer 1"
    assert body["retailer_distribution"][0]["value"] == "—"
    assert "daily_trend" not in body["charts"]
    assert "retailer_distribution" in body["charts"]


def test_share_lifecycle(client):
    res = client.post("/shares", json={"allowed_tabs": ["sales"], "active_tab": "summary", "hide_retailers": True})
    assert res.status_code == 200
    link = res.json()
    assert link["url"] == f"http://share.test/shared/{link['share_id']}"

    shared = client.get(f"/shared/{link['share_id']}")
    assert shared.status_code == 200
    body = shared.json()
    assert body["precomputedData"]["view"]["active_tab"] == "sales"
    assert body["precomputedData"]["view"]["retailer_distribution"][0]["name"] == "Retailer 1"
    assert "charts" in body

    listed = client.get("/shares").json()["shares"]
    assert [s["share_id"] for s in listed] == [link["share_id"]]

    assert client.delete(f"/shares/{link['share_id']}").status_code == 200
    assert client.get(f"/shared/{link['share_id']}").status_code == 404


def test_unknown_share_is_404(client):
    res = client.get("/shared/nope")
    assert res.status_code == 404
    assert res.json()["type"] == "ShareNotFoundError"
    assert client.delete("/shares/nope").status_code == 404


def test_upload_rejects_bad_file_and_keeps_dataset(client, store):
    res = client.post("/dataset", files={"file": ("bad.csv", b"date,product_name\n2024-03-01,Soda\n", "text/csv")})
    assert res.status_code == 422
    assert res.json()["issues"][0]["column"] == "chain"
    assert store.dataset.size == 5


def test_upload_replaces_dataset(client, store):
    csv = b"date,product_name,chain\n2024-03-01,Soda,Walmart\n"
    res = client.post("/dataset", files={"file": ("new.csv", csv, "text/csv")})
    assert res.status_code == 200
    assert res.json()["rows"] == 1
    assert store.dataset.size == 1


def test_shared_response_leaks_no_retailer_names_or_totals(client):
    config = {
        "hide_retailers": True,
        "hide_totals": True,
        "show_only_percent": True,
        "include_records": True,
        "filters": {"selected_retailers": ["Walmart", "Kroger"]},
    }
    link = client.post("/shares", json=config).json()
    res = client.get(f"/shared/{link['share_id']}")
    assert res.status_code == 200
    for name in ("Walmart", "Kroger", "Target"):
        assert name not in res.text

    body = res.json()
    assert body["config"]["filters"]["selected_retailers"] == ["Retailer 1", "Retailer 2"]
    assert body["precomputedData"]["metadata"]["filtered_size"] == "—"
    assert body["precomputedData"]["metrics"]["total_value"] == "—"
    assert {r["chain"] for r in body["precomputedData"]["filtered_records"]} == {"Retailer 1", "Retailer 2"}


def test_demographics_ignores_unparseable_question(client):
    res = client.post("/demographics", json={"question_number": "abc"})
    assert res.status_code == 200
    assert res.json()["breakdown"] is None
