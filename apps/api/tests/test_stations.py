"""
Tests for stations, batteries, nearby search and the dashboard/analytics views
"""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from geo_utils import haversine_km, point_geometry, within_radius
from conftest import CBD, MOMBASA, WESTLANDS, make_battery, make_station


class TestGeoUtils:

    def test_haversine_known_distance(self):
        # Nairobi CBD to Mombasa is roughly 440 km as the crow flies
        distance = haversine_km(float(CBD[0]), float(CBD[1]), float(MOMBASA[0]), float(MOMBASA[1]))
        assert 430 < distance < 450

    def test_haversine_zero(self):
        assert haversine_km(1.0, 36.0, 1.0, 36.0) == 0

    def test_point_geometry_is_lng_lat(self):
        geometry = point_geometry(-1.2864, 36.8172)
        assert geometry["type"] == "Point"
        assert list(geometry["coordinates"]) == [36.8172, -1.2864]

    def test_point_geometry_rejects_bad_latitude(self):
        with pytest.raises(ValueError):
            point_geometry(91, 0)

    def test_within_radius_sorts_nearest_first(self):
        points = [("far", 0.3, 0.0), ("near", 0.1, 0.0), ("out", 5.0, 0.0)]
        result = within_radius(points, 0.0, 0.0, 50, coords=lambda p: (p[1], p[2]))
        assert [item[0] for item, _ in result] == ["near", "far"]


class TestStationEndpoints:

    @pytest.fixture(autouse=True)
    def setup(self, client, headers, network, db):
        self.client = client
        self.headers = headers
        self.network = network
        self.db = db

    def test_nearby_filters_by_radius_and_sorts(self):
        make_station(self.db, "Mombasa Island", MOMBASA)
        response = self.client.get(
            "/api/stations/nearby",
            params={"lat": float(CBD[0]), "lng": float(CBD[1]), "radius_km": 10},
            headers=self.headers["customer"],
        )
        assert response.status_code == 200
        stations = response.json()["stations"]
        assert [s["name"] for s in stations] == ["CBD Hub", "Westlands"]
        assert stations[0]["distance_km"] <= stations[1]["distance_km"]
        assert 1.5 < stations[1]["distance_km"] < 3

    def test_nearby_skips_maintenance_stations(self):
        self.network["s2"].maintenance_mode = True
        self.db.commit()
        response = self.client.get(
            "/api/stations/nearby",
            params={"lat": float(WESTLANDS[0]), "lng": float(WESTLANDS[1]), "radius_km": 10},
            headers=self.headers["customer"],
        )
        assert [s["name"] for s in response.json()["stations"]] == ["CBD Hub"]

    def test_nearby_requires_coordinates(self):
        response = self.client.get("/api/stations/nearby", headers=self.headers["customer"])
        assert response.status_code == 400

    def test_list_with_search(self):
        response = self.client.get("/api/stations", params={"search": "west"}, headers=self.headers["customer"])
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["name"] == "Westlands"

    def test_detail_includes_docked_batteries(self):
        response = self.client.get(
            f"/api/stations/{self.network['s1'].station_id}", headers=self.headers["customer"]
        )
        body = response.json()
        assert body["available_batteries"] == 2
        assert {b["battery_code"] for b in body["batteries"]} == {"B1", "B2"}

    def test_create_requires_admin(self):
        payload = {
            "name": "Kasarani", "address": "Thika Rd", "latitude": -1.22, "longitude": 36.89,
            "station_type": "swap", "total_slots": 8,
        }
        assert self.client.post("/api/stations", headers=self.headers["manager"], json=payload).status_code == 403
        response = self.client.post("/api/stations", headers=self.headers["admin"], json=payload)
        assert response.status_code == 201
        assert response.json()["station"]["available_batteries"] == 0

    def test_create_rejects_bad_type(self):
        payload = {
            "name": "X", "address": "Y", "latitude": 0, "longitude": 0,
            "station_type": "fuel", "total_slots": 8,
        }
        assert self.client.post("/api/stations", headers=self.headers["admin"], json=payload).status_code == 400

    def test_manager_toggles_own_station_only(self):
        own = f"/api/stations/{self.network['s1'].station_id}/maintenance"
        foreign = f"/api/stations/{self.network['s2'].station_id}/maintenance"
        payload = {"maintenance_mode": True, "maintenance_notes": "Dock 3 faulty"}

        response = self.client.patch(own, headers=self.headers["manager"], json=payload)
        assert response.status_code == 200
        assert response.json()["station"]["maintenance_mode"] is True

        assert self.client.patch(foreign, headers=self.headers["manager"], json=payload).status_code == 403
        assert self.client.patch(foreign, headers=self.headers["admin"], json=payload).status_code == 200

    def test_delete_with_docked_batteries_is_a_conflict(self):
        response = self.client.delete(
            f"/api/stations/{self.network['s1'].station_id}", headers=self.headers["admin"]
        )
        assert response.status_code == 409
        assert self.client.delete(
            f"/api/stations/{self.network['s2'].station_id}", headers=self.headers["admin"]
        ).status_code == 204

    def test_station_stats(self):
        stats = self.client.get("/api/stations/stats/overview", headers=self.headers["admin"]).json()
        assert stats["total_stations"] == 2
        assert stats["available_batteries"] == 2
        assert stats["total_slots"] == 20


class TestBatteryEndpoints:

    @pytest.fixture(autouse=True)
    def setup(self, client, headers, network, db):
        self.client = client
        self.headers = headers
        self.network = network
        self.db = db

    def test_detail_is_decorated(self):
        body = self.client.get(
            f"/api/batteries/{self.network['b1'].battery_id}", headers=self.headers["customer"]
        ).json()
        assert body["is_eligible_for_rental"] is True
        assert body["charge_color"] == "#4CAF50"
        assert body["health_color"] == "#8BC34A"
        assert body["status_label"] == "Available"
        assert body["station_name"] == "CBD Hub"

    def test_charge_update_bounds(self):
        url = f"/api/batteries/{self.network['b1'].battery_id}/charge"
        assert self.client.patch(url, headers=self.headers["manager"], json={"charge_percentage": 101}).status_code == 400
        response = self.client.patch(url, headers=self.headers["manager"], json={"charge_percentage": 15})
        assert response.status_code == 200
        battery = response.json()["battery"]
        assert battery["charge_percentage"] == 15
        assert battery["is_eligible_for_rental"] is False

    def test_maintenance_needed(self):
        make_battery(self.db, "B-OLD", self.network["s2"], cycle_count=250)
        make_battery(self.db, "B-DUE", self.network["s2"], next_maintenance_due=date.today() - timedelta(days=1))
        make_battery(self.db, "B-SICK", self.network["s2"], health_status="critical")

        body = self.client.get("/api/batteries/maintenance/needed", headers=self.headers["manager"]).json()
        assert {b["battery_code"] for b in body["batteries"]} == {"B-OLD", "B-DUE", "B-SICK"}

    def test_create_and_duplicate(self):
        payload = {
            "battery_code": "B9", "serial_number": "SN-B9", "model": "EL-48V", "capacity_kwh": 2.5,
            "current_station_id": self.network["s2"].station_id,
        }
        response = self.client.post("/api/batteries", headers=self.headers["admin"], json=payload)
        assert response.status_code == 201, response.text
        assert self.client.post("/api/batteries", headers=self.headers["admin"], json=payload).status_code == 409

        station = self.client.get(
            f"/api/stations/{self.network['s2'].station_id}", headers=self.headers["admin"]
        ).json()
        assert station["available_batteries"] == 1

    def test_rented_battery_cannot_be_deleted(self):
        self.client.post(
            "/api/rentals",
            headers=self.headers["customer"],
            json={"battery_id": self.network["b1"].battery_id, "pickup_station_id": self.network["s1"].station_id},
        )
        response = self.client.delete(f"/api/batteries/{self.network['b1'].battery_id}", headers=self.headers["admin"])
        assert response.status_code == 409


class TestDashboardAndAnalytics:

    @pytest.fixture(autouse=True)
    def setup(self, client, headers, network):
        self.client = client
        self.headers = headers
        self.network = network

    def test_dashboard_requires_staff(self):
        assert self.client.get("/api/dashboard/stats", headers=self.headers["customer"]).status_code == 403
        stats = self.client.get("/api/dashboard/stats", headers=self.headers["admin"]).json()
        assert stats["users"]["total"] == 4
        assert stats["batteries"]["by_status"] == {"available": 2}
        assert stats["stations"]["active"] == 2

    def test_station_heatmap_is_geojson(self):
        self.client.post(
            "/api/rentals",
            headers=self.headers["customer"],
            json={"battery_id": self.network["b1"].battery_id, "pickup_station_id": self.network["s1"].station_id},
        )
        body = self.client.get("/api/analytics/station-heatmap", headers=self.headers["manager"]).json()

        assert body["type"] == "FeatureCollection"
        assert body["metadata"]["total_rentals"] == 1
        first = body["features"][0]
        assert first["geometry"]["type"] == "Point"
        assert first["properties"]["name"] == "CBD Hub"
        assert first["properties"]["intensity"] == 1.0
        assert body["features"][1]["properties"]["intensity"] == 0.0

    def test_health(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "connected"

    def test_unexpected_error_is_reported_as_internal(self, monkeypatch):
        import main

        def broken():
            raise RuntimeError("connection pool exhausted")

        monkeypatch.setattr(main, "check_connection", broken)
        client = TestClient(main.app, raise_server_exceptions=False)

        response = client.get("/health")
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "internal_error"
        assert body["message"] == "Internal server error"
        assert "stack" in body

    def test_station_list_is_paginated(self):
        body = self.client.get("/api/stations", params={"limit": 1}, headers=self.headers["customer"]).json()
        assert body["total"] == 2
        assert body["page"] == 1
        assert body["page_size"] == 1
        assert body["total_pages"] == 2
        assert len(body["items"]) == 1
