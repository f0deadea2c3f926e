from tests.conftest import auth_headers


def test_list_products(client, products):
    body = client.get("/api/products").get_json()

    assert body["success"] is True
    assert {p["id"] for p in body["data"]} == {"p1", "p2"}
    assert body["pagination"]["total"] == 2


def test_filter_products(client, products):
    by_category = client.get("/api/products?category=accessories").get_json()["data"]
    assert [p["id"] for p in by_category] == ["p2"]

    featured = client.get("/api/products?featured=true").get_json()["data"]
    assert [p["id"] for p in featured] == ["p1"]


def test_featured_products(client, products):
    body = client.get("/api/products/featured").get_json()
    assert [p["name"] for p in body["data"]] == ["Sohrai Print Kurta"]


def test_get_product(client, products):
    body = client.get("/api/products/p1").get_json()
    assert body["data"]["price"] == 2500.00


def test_missing_product(client, products):
    response = client.get("/api/products/unknown")
    assert response.status_code == 404
    assert response.get_json() == {"success": False, "message": "Product not found"}


def test_admin_creates_product(client, admin):
    response = client.post(
        "/api/products",
        json={"name": "Paitkar Painting", "price": 1200.5, "category": "art", "inventory": 3},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["price"] == 1200.50
    assert data["featured"] is False


def test_customer_cannot_create_product(client, user):
    response = client.post("/api/products", json={"name": "Fake", "price": 1}, headers=auth_headers(user))
    assert response.status_code == 403


def test_product_validation(client, admin):
    headers = auth_headers(admin)
    assert client.post("/api/products", json={"price": 10}, headers=headers).status_code == 400
    assert client.post("/api/products", json={"name": "X", "price": "abc"}, headers=headers).status_code == 400
    assert client.post("/api/products", json={"name": "X", "price": -1}, headers=headers).status_code == 400
    assert client.post("/api/products", json={"name": "X", "price": 5, "inventory": -2}, headers=headers).status_code == 400
