import datetime

import pytest

from conftest import login


@pytest.fixture()
def farm(client, make_client):
    return make_client()["id"]


def _post(client, h, client_id, **body):
    return client.post("/api/movements", json={"clientId": client_id, **body}, headers=h)


def _deposit(client, h, client_id):
    # 100 kg 毛重，2 个 5 kg 塑料箱 -> 净重 90
    r = _post(client, h, client_id, type="in", product="Tomatoes",
              totalWeight=100, plasticBoxCount=2, plasticBoxWeight=5, comment="  first load ")
    assert r.status_code == 201, r.text
    return r.json()


def test_create_in_movement_derives_product_weight(client, receptionist_h, farm):
    mv = _deposit(client, receptionist_h, farm)
    assert mv["productWeight"] == 90
    assert mv["date"] == datetime.date.today().isoformat()
    assert mv["comment"] == "first load"
    assert mv["plasticBoxCount"] == 2
    assert mv["woodBoxCount"] is None
    assert mv["woodBoxWeight"] is None
    assert mv["farmerComment"] is None
    assert mv["isCommentRead"] is False

    users = client.get("/api/users", headers=login(client, "admin", "password", "Admin")).json()
    recep_id = next(u["id"] for u in users if u["username"] == "recep")
    assert mv["recordedByUserId"] == recep_id


def test_out_equal_to_available_is_accepted(client, receptionist_h, admin_h, farm):
    _deposit(client, receptionist_h, farm)

    r = _post(client, receptionist_h, farm, type="out", product="Tomatoes", totalWeight=90)
    assert r.status_code == 201
    assert r.json()["productWeight"] == 90

    stock = client.get(f"/api/clients/{farm}/stock", headers=admin_h).json()
    assert stock["summary"]["productWeight"] == 0
    assert stock["products"] == []


def test_out_over_available_is_rejected(client, receptionist_h, farm):
    _deposit(client, receptionist_h, farm)

    r = _post(client, receptionist_h, farm, type="out", product="Tomatoes", totalWeight=91)
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "INSUFFICIENT_PRODUCT_STOCK"
    assert "90.00" in body["message"]
    assert "91.00" in body["message"]

    assert len(client.get("/api/movements", headers=receptionist_h).json()) == 1


def test_negative_net_weight_is_rejected(client, receptionist_h, farm):
    r = _post(client, receptionist_h, farm, type="in", product="Tomatoes",
              totalWeight=10, plasticBoxCount=3, plasticBoxWeight=5)
    assert r.status_code == 400
    assert r.json()["code"] == "NEGATIVE_NET_WEIGHT"


def test_out_boxes_cannot_exceed_balance(client, receptionist_h, farm):
    _deposit(client, receptionist_h, farm)
    r = _post(client, receptionist_h, farm, type="out", product="Tomatoes",
              totalWeight=20, plasticBoxCount=3, plasticBoxWeight=1)
    assert r.status_code == 400
    assert r.json()["code"] == "INSUFFICIENT_PLASTIC_BOXES"

    r = _post(client, receptionist_h, farm, type="out", product="Tomatoes",
              totalWeight=20, woodBoxCount=1, woodBoxWeight=1)
    assert r.status_code == 400
    assert r.json()["code"] == "INSUFFICIENT_WOOD_BOXES"


def test_product_buckets_are_case_sensitive(client, receptionist_h, farm):
    _deposit(client, receptionist_h, farm)
    r = _post(client, receptionist_h, farm, type="out", product="tomatoes", totalWeight=1)
    assert r.status_code == 400


def test_create_movement_validation(client, receptionist_h, farm):
    r = _post(client, receptionist_h, farm, type="in", product="Tomatoes")
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"

    r = _post(client, receptionist_h, farm, type="sideways", product="Tomatoes", totalWeight=1)
    assert r.status_code == 400

    r = _post(client, receptionist_h, farm, type="in", product="   ", totalWeight=1)
    assert r.status_code == 400

    r = _post(client, receptionist_h, 999, type="in", product="Tomatoes", totalWeight=1)
    assert r.status_code == 404


def test_farmer_cannot_record_movements(client, make_user, farm):
    make_user("farmer", "Farmer", client_id=farm)
    h = login(client, "farmer", "secret", "Farmer")
    r = _post(client, h, farm, type="in", product="Tomatoes", totalWeight=1)
    assert r.status_code == 403


def test_list_filters(client, receptionist_h, make_client):
    a = make_client("A")["id"]
    b = make_client("B")["id"]
    _post(client, receptionist_h, a, type="in", product="Tomatoes", totalWeight=10)
    _post(client, receptionist_h, a, type="in", product="Apples", totalWeight=10)
    _post(client, receptionist_h, b, type="in", product="Apples", totalWeight=10)
    _post(client, receptionist_h, b, type="out", product="Apples", totalWeight=5)

    def ids(params):
        r = client.get("/api/movements", params=params, headers=receptionist_h)
        assert r.status_code == 200, r.text
        return r.json()

    assert len(ids({})) == 4
    assert {m["clientId"] for m in ids({"clientId": [a]})} == {a}
    assert len(ids({"clientId": [a, b]})) == 4
    assert len(ids({"product": ["Apples"]})) == 3
    assert len(ids({"type": "out"})) == 1
    today = datetime.date.today().isoformat()
    assert len(ids({"start": today, "end": today})) == 4
    tomorrow = (datetime.date.today() + datetime.timedelta(days=1)).isoformat()
    assert ids({"start": tomorrow}) == []

    asc = ids({"sort": "id_asc"})
    assert [m["id"] for m in asc] == sorted(m["id"] for m in asc)

    r = client.get("/api/movements", params={"start": tomorrow, "end": today}, headers=receptionist_h)
    assert r.status_code == 400


def test_farmer_lists_only_own_movements(client, receptionist_h, make_user, make_client):
    mine = make_client("Mine")["id"]
    other = make_client("Other")["id"]
    _post(client, receptionist_h, mine, type="in", product="Tomatoes", totalWeight=10)
    _post(client, receptionist_h, other, type="in", product="Tomatoes", totalWeight=10)

    make_user("farmer", "Farmer", client_id=mine)
    h = login(client, "farmer", "secret", "Farmer")
    rows = client.get("/api/movements", headers=h).json()
    assert [m["clientId"] for m in rows] == [mine]


def test_farmer_comment_resets_read_flag(client, receptionist_h, make_user, farm):
    mv = _deposit(client, receptionist_h, farm)
    make_user("farmer", "Farmer", client_id=farm)
    farmer_h = login(client, "farmer", "secret", "Farmer")

    r = client.patch(f"/api/movements/{mv['id']}", json={"farmerComment": "2 boxes missing"}, headers=farmer_h)
    assert r.status_code == 200
    assert r.json()["farmerComment"] == "2 boxes missing"
    assert r.json()["isCommentRead"] is False

    r = client.get("/api/movements/unread-count", headers=receptionist_h)
    assert r.json() == {"count": 1}

    r = client.patch(f"/api/movements/{mv['id']}", json={"isCommentRead": True}, headers=receptionist_h)
    assert r.status_code == 200
    assert r.json()["isCommentRead"] is True
    assert r.json()["farmerComment"] == "2 boxes missing"

    # 已读之后再次写评论，又变回未读
    r = client.patch(f"/api/movements/{mv['id']}", json={"farmerComment": ""}, headers=farmer_h)
    assert r.json()["farmerComment"] == ""
    assert r.json()["isCommentRead"] is False

    # 空评论不算异常
    r = client.get("/api/movements/unread-count", headers=receptionist_h)
    assert r.json() == {"count": 0}


def test_mark_read_is_idempotent(client, receptionist_h, farm):
    mv = _deposit(client, receptionist_h, farm)
    for _ in range(2):
        r = client.patch(f"/api/movements/{mv['id']}", json={"isCommentRead": True}, headers=receptionist_h)
        assert r.status_code == 200
        assert r.json()["isCommentRead"] is True
        assert r.json()["farmerComment"] is None


def test_unread_count_is_per_recorder(client, admin_h, receptionist_h, make_user, farm):
    mv = _deposit(client, receptionist_h, farm)
    make_user("farmer", "Farmer", client_id=farm)
    farmer_h = login(client, "farmer", "secret", "Farmer")
    client.patch(f"/api/movements/{mv['id']}", json={"farmerComment": "wrong weight"}, headers=farmer_h)

    assert client.get("/api/movements/unread-count", headers=receptionist_h).json() == {"count": 1}
    assert client.get("/api/movements/unread-count", headers=admin_h).json() == {"count": 0}


def test_patch_permissions_and_errors(client, receptionist_h, make_user, make_client):
    mine = make_client("Mine")["id"]
    other = make_client("Other")["id"]
    mv = _deposit(client, receptionist_h, other)
    make_user("farmer", "Farmer", client_id=mine)
    farmer_h = login(client, "farmer", "secret", "Farmer")

    r = client.patch(f"/api/movements/{mv['id']}", json={"farmerComment": "not mine"}, headers=farmer_h)
    assert r.status_code == 403

    r = client.patch(f"/api/movements/{mv['id']}", json={"farmerComment": "staff"}, headers=receptionist_h)
    assert r.status_code == 403

    r = client.patch(f"/api/movements/{mv['id']}", json={"isCommentRead": True}, headers=farmer_h)
    assert r.status_code == 403

    r = client.patch(f"/api/movements/{mv['id']}", json={}, headers=receptionist_h)
    assert r.status_code == 400
    assert r.json()["code"] == "NO_FIELDS"

    r = client.patch("/api/movements/999", json={"isCommentRead": True}, headers=receptionist_h)
    assert r.status_code == 404


def test_out_equal_to_remaining_balance_after_float_drift(client, receptionist_h, farm):
    assert _post(client, receptionist_h, farm, type="in", product="Beans", totalWeight=0.3).status_code == 201
    assert _post(client, receptionist_h, farm, type="out", product="Beans", totalWeight=0.1).status_code == 201

    r = _post(client, receptionist_h, farm, type="out", product="Beans", totalWeight=0.2)
    assert r.status_code == 201, r.text
