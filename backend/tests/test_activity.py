"""
Activity log tests.

Verifies:
- entries are written for business operations and logins
- a failing write never breaks the operation it describes
- list filters and the summary view
"""

from shopledger.extensions import db
from shopledger.models import ActivityLog
from shopledger.services import activity_service
from shopledger.services.activity_service import (
    ACTION_CREATE,
    ACTION_PAYMENT,
    get_activity_summary,
    list_activity,
    log_activity,
)

from conftest import TEST_PASSWORD


class TestLogActivity:

    def test_writes_entry(self, db_session, admin_user):
        entry = log_activity(
            user_id=admin_user.id,
            action=ACTION_CREATE,
            resource_type="PRODUCT",
            resource_id=7,
            description="Created product Soap",
            changes={"after": {"name": "Soap"}},
            ip_address="10.0.0.1",
        )
        assert entry is not None
        stored = db.session.get(ActivityLog, entry.id).to_dict()
        assert stored["username"] == "admin"
        assert stored["changes"] == {"after": {"name": "Soap"}}
        assert stored["created_at"].endswith("Z")

    def test_missing_action_is_skipped(self, db_session):
        assert log_activity(user_id=None, action="") is None
        assert db.session.query(ActivityLog).count() == 0

    def test_failure_is_swallowed(self, db_session, admin_user):
        # Not JSON serializable: the flush fails inside log_activity
        entry = log_activity(user_id=admin_user.id, action=ACTION_CREATE, changes={"bad": object()})
        assert entry is None
        assert db.session.query(ActivityLog).count() == 0

    def test_route_survives_audit_failure(self, client, manager_headers, monkeypatch):
        def broken(**_kw):
            raise RuntimeError("audit store down")

        monkeypatch.setattr(activity_service, "ActivityLog", broken)

        resp = client.post("/api/products", json={"name": "Soap", "selling_price_cents": 300},
                           headers=manager_headers)
        assert resp.status_code == 201
        assert db.session.query(ActivityLog).count() == 0


class TestActivityViews:

    def _seed(self, admin_user, manager_user):
        log_activity(user_id=admin_user.id, action=ACTION_CREATE, resource_type="PRODUCT",
                     resource_id=1, description="Created product Rice")
        log_activity(user_id=manager_user.id, action=ACTION_PAYMENT, resource_type="SALE",
                     resource_id=2, description="Payment on SALE-000002")
        log_activity(user_id=manager_user.id, action=ACTION_PAYMENT, resource_type="LENDER",
                     resource_id=3, description="Payment from CUST-00003")

    def test_list_newest_first_with_filters(self, db_session, admin_user, manager_user):
        self._seed(admin_user, manager_user)

        everything = list_activity()
        assert everything["pagination"]["total"] == 3
        assert everything["items"][0]["resource_type"] == "LENDER"

        payments = list_activity(action="payment")
        assert payments["count"] == 2
        assert list_activity(resource_type="sale")["count"] == 1
        assert list_activity(user_id=admin_user.id)["items"][0]["description"] == "Created product Rice"
        assert list_activity(search="cust-")["count"] == 1
        assert list_activity(per_page=2, page=2)["count"] == 1

    def test_summary(self, db_session, admin_user, manager_user):
        self._seed(admin_user, manager_user)
        log_activity(user_id=None, action=ACTION_CREATE, description="System task")

        summary = get_activity_summary()
        assert summary["total"] == 4
        assert summary["by_action"] == {"CREATE": 2, "PAYMENT": 2}
        assert summary["by_resource_type"]["NONE"] == 1
        assert summary["top_users"][0] == {"user_id": manager_user.id, "username": "manager", "count": 2}

    def test_routes(self, client, admin_headers, admin_user):
        client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})

        resp = client.get("/api/activity/log?action=LOGIN", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["user_id"] == admin_user.id

        summary = client.get("/api/activity/summary", headers=admin_headers)
        assert summary.json["by_action"]["LOGIN"] == 1


class TestRecordHistory:

    def _seed(self, admin_user, manager_user):
        log_activity(user_id=admin_user.id, action=ACTION_CREATE, resource_type="PRODUCT",
                     resource_id=1, description="Created product Rice")
        log_activity(user_id=manager_user.id, action="STOCK_ADJUST", resource_type="PRODUCT",
                     resource_id=1, description="Adjusted Rice")
        log_activity(user_id=manager_user.id, action=ACTION_PAYMENT, resource_type="SALE",
                     resource_id=1, description="Payment on SALE-000001")
        log_activity(user_id=manager_user.id, action=ACTION_CREATE, resource_type="PRODUCT",
                     resource_id=2, description="Created product Beans")

    def test_resource_id_filter(self, db_session, admin_user, manager_user):
        self._seed(admin_user, manager_user)
        assert list_activity(resource_id=1)["pagination"]["total"] == 3
        rice = list_activity(resource_id=1, resource_type="product")
        assert [e["action"] for e in rice["items"]] == ["STOCK_ADJUST", "CREATE"]

    def test_log_route_filters_by_resource_id(self, client, admin_headers, admin_user, manager_user):
        self._seed(admin_user, manager_user)
        resp = client.get("/api/activity/log?resource_id=2", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["pagination"]["total"] == 1
        assert resp.json["items"][0]["description"] == "Created product Beans"

    def test_resource_route(self, client, admin_headers, admin_user, manager_user):
        self._seed(admin_user, manager_user)
        resp = client.get("/api/activity/resource/1", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["pagination"]["total"] == 3

        narrowed = client.get("/api/activity/resource/1?resource_type=PRODUCT", headers=admin_headers)
        assert narrowed.json["pagination"]["total"] == 2

        assert client.get("/api/activity/resource/99", headers=admin_headers).json["count"] == 0

    def test_user_route(self, client, admin_headers, admin_user, manager_user):
        self._seed(admin_user, manager_user)
        resp = client.get(f"/api/activity/user/{manager_user.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["pagination"]["total"] == 3
        assert {e["username"] for e in resp.json["items"]} == {"manager"}

    def test_types(self, client, admin_headers, admin_user, manager_user):
        self._seed(admin_user, manager_user)
        log_activity(user_id=None, action="IMPORT")

        resp = client.get("/api/activity/types", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json == {
            "actions": ["CREATE", "IMPORT", "PAYMENT", "STOCK_ADJUST"],
            "resource_types": ["PRODUCT", "SALE"],
        }

    def test_history_routes_are_admin_only(self, client, manager_headers):
        for path in ("/api/activity/types", "/api/activity/user/1", "/api/activity/resource/1"):
            assert client.get(path, headers=manager_headers).status_code == 403
