"""
API tests for /api/rentals: status codes, response shape and access control
"""
import pytest

from conftest import make_battery


class TestRentalEndpoints:

    @pytest.fixture(autouse=True)
    def setup(self, client, headers, network):
        self.client = client
        self.headers = headers
        self.network = network

    def start(self, role="customer", battery="b1", station="s1"):
        return self.client.post(
            "/api/rentals",
            headers=self.headers[role],
            json={
                "battery_id": self.network[battery].battery_id,
                "pickup_station_id": self.network[station].station_id,
            },
        )

    def test_start_returns_201_with_rental(self):
        response = self.start()
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["message"]
        rental = body["rental"]
        assert rental["status"] == "active"
        assert rental["total_cost"] is None
        assert rental["battery_code"] == "B1"
        assert rental["pickup_station_name"] == "CBD Hub"
        assert rental["status_color"] == "#4CAF50"
        assert rental["status_label"] == "Active"

    def test_return_reports_hours_and_cost(self):
        rental_id = self.start().json()["rental"]["rental_id"]

        response = self.client.patch(
            f"/api/rentals/{rental_id}/return",
            headers=self.headers["customer"],
            json={"return_station_id": self.network["s2"].station_id},
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["rental_hours"] == 1
        assert body["total_cost"] == 75
        assert body["rental"]["status"] == "completed"
        assert body["rental"]["return_station_name"] == "Westlands"

    def test_second_return_is_a_conflict(self):
        rental_id = self.start().json()["rental"]["rental_id"]
        payload = {"return_station_id": self.network["s1"].station_id}
        self.client.patch(f"/api/rentals/{rental_id}/return", headers=self.headers["customer"], json=payload)

        response = self.client.patch(f"/api/rentals/{rental_id}/return", headers=self.headers["customer"], json=payload)

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    def test_cancel(self):
        rental_id = self.start().json()["rental"]["rental_id"]
        response = self.client.patch(f"/api/rentals/{rental_id}/cancel", headers=self.headers["customer"])
        assert response.status_code == 200
        assert response.json()["rental"]["status"] == "cancelled"

        battery = self.client.get(
            f"/api/batteries/{self.network['b1'].battery_id}", headers=self.headers["customer"]
        ).json()
        assert battery["status"] == "available"
        assert battery["current_station_id"] == self.network["s1"].station_id

    def test_second_rental_for_same_user_is_a_conflict(self):
        assert self.start().status_code == 201
        response = self.start(battery="b2")
        assert response.status_code == 409

    def test_ineligible_battery_is_a_conflict(self, db):
        make_battery(db, "B-LOW", self.network["s1"], charge_percentage=5)
        batteries = self.client.get(
            "/api/batteries", params={"status": "available", "min_charge": 0}, headers=self.headers["customer"]
        ).json()["batteries"]
        low = next(b for b in batteries if b["battery_code"] == "B-LOW")
        assert low["is_eligible_for_rental"] is False

        response = self.client.post(
            "/api/rentals",
            headers=self.headers["customer"],
            json={"battery_id": low["battery_id"], "pickup_station_id": self.network["s1"].station_id},
        )
        assert response.status_code == 409

    def test_unknown_battery_is_404(self):
        response = self.client.post(
            "/api/rentals",
            headers=self.headers["customer"],
            json={"battery_id": 9999, "pickup_station_id": self.network["s1"].station_id},
        )
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert "9999" in body["message"]

    def test_missing_field_is_400(self):
        response = self.client.post(
            "/api/rentals", headers=self.headers["customer"], json={"battery_id": 1}
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]

    def test_current_rental(self):
        empty = self.client.get("/api/rentals/current", headers=self.headers["customer"])
        assert empty.status_code == 200
        assert empty.json()["rental"] is None

        rental_id = self.start().json()["rental"]["rental_id"]
        current = self.client.get("/api/rentals/current", headers=self.headers["customer"]).json()
        assert current["rental"]["rental_id"] == rental_id

        # Another user's view is independent
        other = self.client.get("/api/rentals/current", headers=self.headers["other"]).json()
        assert other["rental"] is None


class TestRentalAccessControl:

    @pytest.fixture(autouse=True)
    def setup(self, client, headers, network):
        self.client = client
        self.headers = headers
        response = client.post(
            "/api/rentals",
            headers=headers["customer"],
            json={"battery_id": network["b1"].battery_id, "pickup_station_id": network["s1"].station_id},
        )
        self.rental_id = response.json()["rental"]["rental_id"]
        self.network = network

    def test_unauthenticated_is_401(self):
        response = self.client.get("/api/rentals")
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"

    def test_invalid_token_is_401(self):
        response = self.client.get("/api/rentals", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_other_customer_cannot_read_rental(self):
        response = self.client.get(f"/api/rentals/{self.rental_id}", headers=self.headers["other"])
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_other_customer_cannot_return_rental(self):
        response = self.client.patch(
            f"/api/rentals/{self.rental_id}/return",
            headers=self.headers["other"],
            json={"return_station_id": self.network["s1"].station_id},
        )
        assert response.status_code == 403

    def test_owner_and_staff_can_read_rental(self):
        for role in ("customer", "manager", "admin"):
            response = self.client.get(f"/api/rentals/{self.rental_id}", headers=self.headers[role])
            assert response.status_code == 200, role

    def test_customer_list_is_scoped(self):
        mine = self.client.get("/api/rentals", headers=self.headers["customer"]).json()
        theirs = self.client.get("/api/rentals", headers=self.headers["other"]).json()
        everyone = self.client.get("/api/rentals", headers=self.headers["admin"]).json()
        assert mine["total"] == 1
        assert theirs["total"] == 0
        assert everyone["total"] == 1

    def test_stats_require_staff(self):
        assert self.client.get("/api/rentals/stats/overview", headers=self.headers["customer"]).status_code == 403

        stats = self.client.get("/api/rentals/stats/overview", headers=self.headers["manager"]).json()
        assert stats["total_rentals"] == 1
        assert stats["active_rentals"] == 1
        assert stats["total_revenue"] == 0
