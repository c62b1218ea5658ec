from datetime import date
from decimal import Decimal

from sqlalchemy import func, select

from deal_models import DealProduct, DealProductFlavor, FlavorIngredient


async def create_item(client, name="Beef", current_stock=10, minimum_stock=0, cost_per_unit=100):
    resp = await client.post("/admin/inventory/items", json={
        "name": name,
        "current_stock": current_stock,
        "minimum_stock": minimum_stock,
        "cost_per_unit": cost_per_unit,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


async def create_deal(client, item_id, quantity_per_item=3, product_quantity=2, price=1500):
    resp = await client.post("/admin/deals", json={
        "name": "Family Deal",
        "price": price,
        "products": [{
            "name": "Burger",
            "quantity": product_quantity,
            "flavors": [{
                "flavor_name": "Zinger",
                "ingredients": [{"inventory_item_id": item_id, "quantity_per_item": quantity_per_item}],
            }],
        }],
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def order_payload(deal, quantity=1, **extra):
    product = deal["products"][0]
    return {
        "items": [{
            "deal_id": deal["id"],
            "quantity": quantity,
            "selected_flavors": {str(product["id"]): product["flavors"][0]["id"]},
        }],
        **extra,
    }


async def count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


async def test_deal_is_returned_nested(client):
    beef = await create_item(client)
    deal = await create_deal(client, beef["id"])

    flavor = deal["products"][0]["flavors"][0]
    assert flavor["flavor_name"] == "Zinger"
    assert flavor["ingredients"][0]["inventory_item"]["name"] == "Beef"
    assert Decimal(flavor["ingredients"][0]["quantity_per_item"]) == Decimal("3")


async def test_deal_with_unknown_item_is_rejected(client):
    resp = await client.post("/admin/deals", json={
        "name": "Broken", "price": 100,
        "products": [{"name": "X", "flavors": [{"flavor_name": "Y", "ingredients": [
            {"inventory_item_id": 999, "quantity_per_item": 1}
        ]}]}],
    })
    assert resp.status_code == 400


async def test_deal_update_rejects_null_for_required_fields(client):
    beef = await create_item(client)
    deal = await create_deal(client, beef["id"])

    resp = await client.put(f"/admin/deals/{deal['id']}", json={"name": None})
    assert resp.status_code == 422

    resp = await client.put(f"/admin/deals/{deal['id']}", json={"price": 1200, "description": None})
    assert resp.status_code == 200, resp.text
    assert resp.json()["name"] == "Family Deal"
    assert Decimal(resp.json()["price"]) == Decimal("1200")


async def test_deleting_deal_cascades(client, session):
    beef = await create_item(client)
    deal = await create_deal(client, beef["id"])

    resp = await client.delete(f"/admin/deals/{deal['id']}")
    assert resp.status_code == 200

    assert await count(session, DealProduct) == 0
    assert await count(session, DealProductFlavor) == 0
    assert await count(session, FlavorIngredient) == 0
    assert (await client.get(f"/admin/deals/{deal['id']}")).status_code == 404


async def test_deleting_product_cascades(client, session):
    beef = await create_item(client)
    deal = await create_deal(client, beef["id"])
    product_id = deal["products"][0]["id"]

    resp = await client.delete(f"/admin/deals/products/{product_id}")
    assert resp.status_code == 200

    assert await count(session, DealProductFlavor) == 0
    assert await count(session, FlavorIngredient) == 0
    assert (await client.get(f"/admin/deals/{deal['id']}")).json()["products"] == []


async def test_update_product_replaces_flavors(client, session):
    beef = await create_item(client)
    cheese = await create_item(client, "Cheese")
    deal = await create_deal(client, beef["id"])
    product_id = deal["products"][0]["id"]

    resp = await client.put(f"/admin/deals/products/{product_id}", json={
        "name": "Burger", "quantity": 1,
        "flavors": [
            {"flavor_name": "Cheesy", "ingredients": [{"inventory_item_id": cheese["id"], "quantity_per_item": 1}]},
            {"flavor_name": "Plain", "ingredients": []},
        ],
    })
    assert resp.status_code == 200
    flavors = resp.json()["products"][0]["flavors"]
    assert [f["flavor_name"] for f in flavors] == ["Cheesy", "Plain"]
    assert await count(session, FlavorIngredient) == 1


async def test_place_order_deducts_stock(client):
    beef = await create_item(client, current_stock=10)
    deal = await create_deal(client, beef["id"], quantity_per_item=3, product_quantity=2)

    preview = await client.post("/pos/cart/preview", json=order_payload(deal))
    assert preview.status_code == 200
    assert Decimal(preview.json()["ingredients"][0]["required"]) == Decimal("6")
    assert preview.json()["cart"]["total"] == "1500.00"

    resp = await client.post("/pos/orders", json=order_payload(deal))
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["order"]["order_status"] == "Pending"
    assert body["order"]["order_instructions"] == "1x Family Deal (Rs 1500 each) - Includes: 2x Burger [Zinger]"
    assert body["warnings"] == []

    item = (await client.get(f"/admin/inventory/items/{beef['id']}")).json()
    assert Decimal(item["current_stock"]) == Decimal("4")


async def test_order_without_flavor_selection_uses_first_flavor(client):
    beef = await create_item(client, current_stock=10)
    deal = await create_deal(client, beef["id"], quantity_per_item=3, product_quantity=2)

    resp = await client.post("/pos/orders", json={"items": [{"deal_id": deal["id"], "quantity": 1}]})

    assert resp.status_code == 201, resp.text
    assert resp.json()["order"]["order_instructions"] == "1x Family Deal (Rs 1500 each) - Includes: 2x Burger [Zinger]"
    item = (await client.get(f"/admin/inventory/items/{beef['id']}")).json()
    assert Decimal(item["current_stock"]) == Decimal("4")


async def test_place_order_with_short_stock_still_succeeds(client):
    beef = await create_item(client, current_stock=2)
    deal = await create_deal(client, beef["id"])

    resp = await client.post("/pos/orders", json=order_payload(deal))

    assert resp.status_code == 201
    assert resp.json()["warnings"] == ["Low stock for Beef"]
    item = (await client.get(f"/admin/inventory/items/{beef['id']}")).json()
    assert Decimal(item["current_stock"]) == Decimal("-4")

    alerts = (await client.get("/admin/notifications?filter=low_stock")).json()
    assert alerts["stats"]["critical"] == 1


async def test_order_with_bad_flavor_is_rejected(client):
    beef = await create_item(client)
    deal = await create_deal(client, beef["id"])
    payload = order_payload(deal)
    payload["items"][0]["selected_flavors"] = {str(deal["products"][0]["id"]): 9999}

    resp = await client.post("/pos/orders", json=payload)
    assert resp.status_code == 400


async def test_order_status_endpoints(client):
    beef = await create_item(client, current_stock=100)
    deal = await create_deal(client, beef["id"])
    order = (await client.post("/pos/orders", json=order_payload(deal))).json()["order"]

    resp = await client.post(f"/admin/orders/{order['id']}/status", json={"status": "Cancelled"})
    assert resp.status_code == 400

    resp = await client.post(f"/admin/orders/{order['id']}/status", json={"status": "Cancelled", "reason": "Test"})
    assert resp.status_code == 200
    assert len(resp.json()["history"]) == 2

    assert (await client.post("/admin/orders/999/status", json={"status": "Preparing"})).status_code == 404


async def test_orders_csv_has_header_plus_one_line_per_order(client):
    beef = await create_item(client, current_stock=100)
    deal = await create_deal(client, beef["id"])
    orders = []
    for _ in range(3):
        orders.append((await client.post("/pos/orders", json=order_payload(deal))).json()["order"])
    await client.post(f"/admin/orders/{orders[0]['id']}/status", json={"status": "Preparing"})

    resp = await client.get("/admin/orders/export/csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.content.decode("utf-8-sig").rstrip("\n").split("\n")
    assert len(lines) == 4
    assert all(line.startswith('"') and line.endswith('"') for line in lines)

    resp = await client.get("/admin/orders/export/csv?status=Pending")
    assert len(resp.content.decode("utf-8-sig").rstrip("\n").split("\n")) == 3

    listing = (await client.get("/admin/orders?status=Pending&preset=today")).json()
    assert listing["analytics"]["total_orders"] == 2


async def test_complete_all_endpoint(client):
    beef = await create_item(client, current_stock=100)
    deal = await create_deal(client, beef["id"])
    for _ in range(2):
        await client.post("/pos/orders", json=order_payload(deal))

    resp = await client.post("/admin/orders/complete-all")
    assert resp.json()["updated"] == 2

    listing = (await client.get("/admin/orders")).json()
    assert listing["analytics"]["by_status"]["Completed"] == 2


async def test_add_stock_endpoint(client):
    beef = await create_item(client, current_stock=10, cost_per_unit=100)

    resp = await client.post(f"/admin/inventory/items/{beef['id']}/add-stock", json={
        "quantity": 10, "cost_per_unit": 200, "batch_number": "B-1",
    })
    assert resp.status_code == 200
    assert Decimal(resp.json()["average_cost"]) == Decimal("150")

    bad = await client.post(f"/admin/inventory/items/{beef['id']}/add-stock", json={"quantity": 0, "cost_per_unit": 1})
    assert bad.status_code == 400

    history = (await client.get(f"/admin/inventory/transactions?item_id={beef['id']}")).json()
    assert [h["transaction_type"] for h in history] == ["purchase", "purchase"]


async def test_inventory_stats_and_low_stock_filter(client):
    await create_item(client, "Beef", current_stock=10, minimum_stock=2)
    await create_item(client, "Buns", current_stock=1, minimum_stock=5)
    await create_item(client, "Sauce", current_stock=0, minimum_stock=1)

    body = (await client.get("/admin/inventory/items")).json()
    assert body["stats"]["total_items"] == 3
    assert body["stats"]["low_stock"] == 1
    assert body["stats"]["out_of_stock"] == 1

    low = (await client.get("/admin/inventory/items?low_stock=true")).json()
    assert sorted(i["name"] for i in low["items"]) == ["Buns", "Sauce"]


async def test_item_update_rejects_null_for_required_fields(client):
    beef = await create_item(client)

    resp = await client.put(f"/admin/inventory/items/{beef['id']}", json={"name": None})
    assert resp.status_code == 422
    resp = await client.put(f"/admin/inventory/items/{beef['id']}", json={"minimum_stock": None})
    assert resp.status_code == 422

    resp = await client.put(f"/admin/inventory/items/{beef['id']}", json={"minimum_stock": 4, "category_id": None})
    assert resp.status_code == 200, resp.text
    assert resp.json()["name"] == "Beef"
    assert Decimal(resp.json()["minimum_stock"]) == Decimal("4")


async def test_suppliers_crud_and_csv(client):
    for name, email in [("Metro", "metro@example.com"), ("Fresh Farms", "farm@example.com")]:
        resp = await client.post("/admin/suppliers", json={"name": name, "email": email, "phone": "0300"})
        assert resp.status_code == 201

    found = (await client.get("/admin/suppliers?search=farm")).json()
    assert [s["name"] for s in found] == ["Fresh Farms"]

    resp = await client.put(f"/admin/suppliers/{found[0]['id']}", json={"name": "Fresh Farms Ltd", "contact_person": "Asad"})
    assert resp.json()["contact_person"] == "Asad"
    assert resp.json()["email"] is None

    csv_text = (await client.get("/admin/suppliers/export/csv")).content.decode("utf-8-sig")
    assert len(csv_text.rstrip("\n").split("\n")) == 3

    assert (await client.delete(f"/admin/suppliers/{found[0]['id']}")).status_code == 200
    assert len((await client.get("/admin/suppliers")).json()) == 1


async def test_delivery_boys(client):
    resp = await client.post("/admin/delivery-boys", json={"name": "Bilal", "phone": "0311", "vehicle_type": "Bike"})
    assert resp.status_code == 201
    rider = resp.json()
    assert rider["status"] == "active"

    listing = (await client.get("/admin/delivery-boys?search=bike")).json()
    assert listing["stats"] == {"total": 1, "active": 1, "inactive": 0}

    csv_lines = (await client.get("/admin/delivery-boys/export/csv")).content.decode("utf-8-sig").rstrip("\n").split("\n")
    assert csv_lines[0] == '"Name","Phone","Email","Address","Vehicle Type","License Number","Status"'
    assert len(csv_lines) == 2

    beef = await create_item(client, current_stock=100)
    deal = await create_deal(client, beef["id"])
    order = (await client.post("/pos/orders", json=order_payload(deal, order_type="delivery"))).json()["order"]

    resp = await client.post(f"/admin/orders/{order['id']}/assign-delivery", json={"delivery_boy_id": rider["id"]})
    assert resp.json()["delivery_boy"] == "Bilal"

    await client.post(f"/admin/delivery-boys/{rider['id']}/status", json={"status": "inactive"})
    resp = await client.post(f"/admin/orders/{order['id']}/assign-delivery", json={"delivery_boy_id": rider["id"]})
    assert resp.status_code == 400


async def test_notification_settings_and_read(client):
    await create_item(client, "Buns", current_stock=1, minimum_stock=5)

    body = (await client.get("/admin/notifications")).json()
    assert body["stats"]["unread"] == 1
    notification_id = body["notifications"][0]["id"]

    await client.post(f"/admin/notifications/{notification_id}/read")
    assert (await client.get("/admin/notifications?filter=unread")).json()["notifications"] == []

    resp = await client.put("/admin/notifications/settings", json={
        "email_enabled": True, "email_addresses": [" owner@example.com ", ""], "expiry_days_before": 3,
    })
    assert resp.json()["email_addresses"] == ["owner@example.com"]
    assert (await client.get("/admin/notifications/settings")).json()["expiry_days_before"] == 3


async def test_notification_settings_reject_null_flags(client):
    resp = await client.put("/admin/notifications/settings", json={"email_enabled": None})
    assert resp.status_code == 422
    resp = await client.put("/admin/notifications/settings", json={"expiry_days_before": None})
    assert resp.status_code == 422

    resp = await client.put("/admin/notifications/settings", json={"email_addresses": None})
    assert resp.status_code == 200, resp.text
    assert resp.json()["email_addresses"] == []


async def test_send_email_without_credentials(client):
    resp = await client.post("/api/send-notification-email", json={
        "emails": ["owner@example.com"], "title": "Low Stock Alert", "message": "Buns are low",
    })
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Email credentials not configured"


async def test_profit_report(client):
    beef = await create_item(client, current_stock=100)
    deal = await create_deal(client, beef["id"])
    order = (await client.post("/pos/orders", json=order_payload(deal))).json()["order"]
    await client.post("/pos/orders", json=order_payload(deal))
    await client.post(f"/admin/orders/{order['id']}/status", json={"status": "Preparing"})
    await client.post(f"/admin/orders/{order['id']}/status", json={"status": "Completed"})

    resp = await client.post("/admin/reports/expense-items", json={"category": "Rent", "amount": 500})
    assert resp.status_code == 201

    sales = (await client.get("/admin/reports/sales?preset=today")).json()
    assert sales["total_orders"] == 2
    assert sales["completed_orders"] == 1
    assert sales["total_revenue"] == "1500.00"
    assert sales["orders_by_type"] == {"walkin": 2}

    profit = (await client.get("/admin/reports/profit?preset=today")).json()
    assert profit["net_profit"] == "1000.00"
    assert profit["profit_margin"] == "66.67"
    assert profit["daily"] == [{
        "date": date.today().isoformat(), "revenue": "1500.00", "expenses": "500.00", "profit": "1000.00",
    }]

    csv_lines = (await client.get("/admin/reports/profit/csv?preset=today")).content.decode("utf-8-sig").rstrip("\n").split("\n")
    assert csv_lines[0] == '"Date","Revenue","Expenses","Profit"'
    assert len(csv_lines) == 2

    assert (await client.get("/admin/reports/sales?preset=nonsense")).status_code == 400


async def test_custom_report_range_is_bounded(client):
    resp = await client.get("/admin/reports/profit?preset=custom&date_from=0001-01-01&date_to=2024-01-01")
    assert resp.status_code == 400
    resp = await client.get("/admin/reports/profit?preset=custom&date_from=2024-02-01&date_to=2024-01-01")
    assert resp.status_code == 400
    resp = await client.get("/admin/orders?preset=custom&date_from=2020-01-01&date_to=2024-01-01")
    assert resp.status_code == 400

    resp = await client.get("/admin/reports/profit?preset=custom&date_from=2024-01-01&date_to=2024-12-31")
    assert resp.status_code == 200
    assert len(resp.json()["daily"]) == 366
