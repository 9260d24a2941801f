"""Tests for the HTTP surface"""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from golf_handicap import crud, main, models, schemas
from golf_handicap.db import get_db

START = date(2025, 5, 1)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    main.app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()


def payload(values, low=None):
    body = {
        "differentials": [
            {"id": f"r{i}", "date": str(START + timedelta(days=i)), "value": v}
            for i, v in enumerate(values)
        ]
    }
    if low is not None:
        body["lowHandicapIndex"] = low
    return body


class TestCompute:

    def test_three_rounds(self, client):
        resp = client.post("/handicap/compute", json=payload([10.0, 12.0, 14.0]))

        assert resp.status_code == 200
        data = resp.json()
        assert data["handicapIndex"] == 8.0
        assert data["isSoftCapped"] is False
        assert data["isHardCapped"] is False
        assert [d["id"] for d in data["differentials"]] == ["r2", "r1", "r0"]
        assert [d["used"] for d in data["differentials"]] == [False, False, True]

    def test_soft_cap(self, client):
        resp = client.post("/handicap/compute", json=payload([15.0] * 20, low=10.0))

        data = resp.json()
        assert data["handicapIndex"] == 14.0
        assert data["isSoftCapped"] is True

    def test_hard_cap(self, client):
        resp = client.post("/handicap/compute", json=payload([20.0] * 20, low=10.0))

        data = resp.json()
        assert data["handicapIndex"] == 15.0
        assert data["isHardCapped"] is True

    def test_same_date_entries_first_listed_is_most_recent(self, client):
        same_day = str(START)
        body = {"differentials": [
            {"id": "a", "date": same_day, "value": 9.0},
            {"id": "b", "date": same_day, "value": 9.0},
            {"id": "c", "date": same_day, "value": 12.0},
        ]}

        data = client.post("/handicap/compute", json=body).json()

        # igual que compute_handicap_index con la misma lista
        assert [d["id"] for d in data["differentials"]] == ["a", "b", "c"]
        assert [d["id"] for d in data["differentials"] if d["used"]] == ["a"]
        assert data["handicapIndex"] == 7.0

    def test_missing_date_is_rejected(self, client):
        resp = client.post("/handicap/compute", json={"differentials": [{"value": 10.0}]})

        assert resp.status_code == 422


class TestCalculators:

    def test_differential(self, client):
        resp = client.post("/handicap/differential", json={"score": 87, "rating": 61.3, "slope": 92})

        assert resp.status_code == 200
        assert resp.json() == {"differential": 31.6}

    def test_zero_slope_is_configuration_error(self, client):
        resp = client.post("/handicap/differential", json={"score": 87, "rating": 61.3, "slope": 0})

        assert resp.status_code == 422
        assert "slope" in resp.json()["detail"]

    def test_adjusted_score(self, client):
        holes = [
            {"holeNumber": 1, "par": 4, "strokes": 9},
            {"holeNumber": 2, "par": 3, "strokes": 3},
        ]

        resp = client.post("/handicap/adjusted-score", json={"holes": holes})

        data = resp.json()
        assert data["grossScore"] == 12
        assert data["adjustedGrossScore"] == 9
        assert data["adjustedHoles"] == [{"holeNumber": 1, "original": 9, "adjusted": 6}]

    def test_adjusted_score_missing_par(self, client):
        resp = client.post("/handicap/adjusted-score", json={"holes": [{"holeNumber": 1, "strokes": 5}]})

        assert resp.status_code == 422


class TestRecomputeEndpoints:

    def test_recompute_history(self, client, player, make_round):
        for i in range(4):
            make_round(player, START + timedelta(days=i), 78, tee="Gold")

        resp = client.post("/handicap/recompute-history", json={"playerId": player.id})

        assert resp.status_code == 200
        data = resp.json()
        assert data["playerId"] == player.id
        assert [u["newIndex"] for u in data["updates"]] == [0.0, 0.0, 0.0, 8.0]
        assert data["updates"][0]["oldIndex"] is None
        assert data["newIndex"] == 9.0
        assert data["lowHandicapIndex"] == 8.0

    def test_unknown_player_is_404(self, client):
        resp = client.post("/handicap/recompute-history", json={"playerId": 999})

        assert resp.status_code == 404

    def test_recompute_all(self, client, player, make_round):
        for i in range(3):
            make_round(player, START + timedelta(days=i), 78, tee="Gold")

        resp = client.post("/handicap/recompute-all")

        assert resp.status_code == 200
        assert resp.json() == {"players": 1, "updated": 3, "failures": []}

    def test_card_then_history(self, client, player, make_round):
        from conftest import PARS

        rp = make_round(player, START, None, tee="Gold")
        scores = {str(i + 1): par for i, par in enumerate(PARS)}

        resp = client.post(f"/round-players/{rp.id}/card", json={"scores": scores})

        assert resp.status_code == 200
        card = resp.json()
        assert card["grossScore"] == 72
        assert card["scoreDifferential"] == 4.0
        assert card["playerIndex"] == 0.0

        history = client.get(f"/players/{player.id}/handicap-history").json()
        assert history["name"] == "Wayne"
        assert history["history"][0]["differential"] == 4.0
        assert history["history"][0]["teeSource"] == "recorded"

    def test_card_is_rolled_back_when_recompute_fails(self, client, db, player, make_round):
        from conftest import PARS

        bad = crud.create_course(db, schemas.CourseCreate(
            name="Broken", par_total=72, tee_boxes=[schemas.TeeBoxCreate(name="Red", rating=70.0, slope=0)],
        ))
        make_round(player, START - timedelta(days=1), 80, tee="Red", on_course=bad)
        rp = make_round(player, START, None, tee="Gold")
        scores = {str(i + 1): par for i, par in enumerate(PARS)}

        resp = client.post(f"/round-players/{rp.id}/card", json={"scores": scores})

        assert resp.status_code == 422
        db.refresh(rp)
        assert rp.gross_score is None
        assert rp.score_differential is None
        assert db.query(models.HoleScore).count() == 0

    def test_admin_key_required_when_configured(self, client, monkeypatch, player):
        monkeypatch.setattr(main, "ADMIN_KEY", "secret")

        denied = client.post("/handicap/recompute-history", json={"playerId": player.id})
        allowed = client.post(
            "/handicap/recompute-history",
            json={"playerId": player.id},
            headers={"X-Admin-Key": "secret"},
        )

        assert denied.status_code == 401
        assert allowed.status_code == 200


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
