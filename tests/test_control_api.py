"""Tests for the status and control API."""
import logging

import pytest
from fastapi.testclient import TestClient

from hostexporter.control_api import ControlAPI
from hostexporter.engine import CollectionEngine


@pytest.fixture
def engine(config, registry, readers):
    return CollectionEngine(config, registry, readers=readers)


@pytest.fixture
def client(engine):
    return TestClient(ControlAPI(engine).app)


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_status_before_first_cycle(client):
    body = client.get("/status").json()
    assert body["state"] == "idle"
    assert body["cycle_count"] == 0
    assert body["series_count"] == 0
    assert body["config"]["rate_mode"] == "cumulative"


def test_collect_now_updates_status(client, engine):
    resp = client.post("/control/collect")
    assert resp.status_code == 200
    assert resp.json()["cycle_count"] == 1
    assert resp.json()["failed_sources"] == []

    body = client.get("/status").json()
    assert body["cycle_count"] == 1
    assert body["series_count"] == engine.registry.series_count()
    assert body["series_count"] > 0


def test_collect_reports_failed_sources(config, registry, reader_factory):
    engine = CollectionEngine(config, registry, readers=reader_factory(disk_io=None))
    client = TestClient(ControlAPI(engine).app)

    assert client.post("/control/collect").json()["failed_sources"] == ["disk_io"]
    assert list(client.get("/status").json()["failed_sources"]) == ["disk_io"]


def test_set_log_level(client):
    root = logging.getLogger()
    previous = root.level
    try:
        resp = client.post("/control/loglevel", json={"level": "debug"})
        assert resp.status_code == 200
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous)


def test_set_invalid_log_level(client):
    resp = client.post("/control/loglevel", json={"level": "LOUD"})
    assert resp.status_code == 400
