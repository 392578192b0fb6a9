"""
Football API 集成测试

测试覆盖：
1. 联赛列表 / 联赛快照 / 派生查询
2. 积分榜模拟与重算
3. 缓存管理
4. 错误映射（404 / 429 / 502 / 500）
"""
import pytest

from src.shared.exceptions import ConfigurationError, UpstreamError

pytestmark = pytest.mark.asyncio

ARSENAL, CHELSEA, LIVERPOOL, MAN_UNITED = 57, 61, 64, 66


class TestLeagueEndpoints:
    """测试联赛数据端点"""

    async def test_list_leagues(self, client):
        response = await client.get("/api/v1/football/leagues")

        assert response.status_code == 200
        leagues = {league["code"]: league for league in response.json()}
        assert list(leagues) == ["PL", "BL1", "FL1", "SA", "PD", "CL"]
        assert leagues["CL"]["matchday_floor"] == 4
        assert leagues["PL"]["matchday_floor"] == 1

    async def test_league_data_source(self, client):
        first = await client.get("/api/v1/football/PL")
        second = await client.get("/api/v1/football/PL")

        assert first.status_code == 200
        assert first.json()["source"] == "upstream"
        assert second.json()["source"] == "cache"
        data = second.json()
        assert data["current_matchday"] == 3
        assert len(data["standings"]) == 4
        assert len(data["matches"]) == 8

    async def test_unknown_league_is_404(self, client, upstream_client):
        response = await client.get("/api/v1/football/XX")

        assert response.status_code == 404
        upstream_client.get_standings.assert_not_awaited()

    async def test_standings(self, client):
        response = await client.get("/api/v1/football/PL/standings")

        assert response.status_code == 200
        standings = response.json()["standings"]
        assert standings[0]["team"]["name"] == "Arsenal FC"
        assert standings[0]["points"] == 6

    async def test_matches_by_matchday(self, client):
        response = await client.get("/api/v1/football/PL/matches", params={"matchday": 3})

        assert response.status_code == 200
        assert [m["id"] for m in response.json()["matches"]] == [1005, 1006]

    async def test_upcoming_matches(self, client):
        response = await client.get("/api/v1/football/PL/matches", params={"upcoming": "true"})

        assert [m["id"] for m in response.json()["matches"]] == [1005, 1006, 1007, 1008]

    async def test_invalid_matchday_rejected(self, client):
        response = await client.get("/api/v1/football/PL/matches", params={"matchday": 0})

        assert response.status_code == 422

    async def test_current_matchday(self, client):
        response = await client.get("/api/v1/football/PL/matchday")

        assert response.json() == {"league_code": "PL", "current_matchday": 3}

    async def test_all_leagues(self, client):
        response = await client.get("/api/v1/football")

        assert response.status_code == 200
        data = response.json()
        assert len(data["leagues"]) == 6
        assert data["failed"] == []


class TestSimulation:
    """测试积分榜模拟"""

    async def test_simulate_round(self, client):
        payload = {
            "predictions": [
                {"match_id": 1005, "outcome": "away"},
                {"match_id": 1006, "outcome": "custom", "home_goals": 2, "away_goals": 2},
                {"match_id": 999999, "outcome": "home"},
            ]
        }

        response = await client.post("/api/v1/football/PL/simulate", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["applied_predictions"] == 2
        top = data["standings"][0]
        assert top["team"]["id"] == LIVERPOOL
        assert top["points"] == 7
        assert top["position"] == 1

    async def test_duplicate_predictions_counted_once(self, client):
        payload = {
            "predictions": [
                {"match_id": 1005, "outcome": "home"},
                {"match_id": 1005, "outcome": "away"},
            ]
        }

        response = await client.post("/api/v1/football/PL/simulate", json=payload)

        data = response.json()
        assert data["applied_predictions"] == 1
        by_id = {row["team"]["id"]: row for row in data["standings"]}
        # 最后一条预测生效：Liverpool 客胜
        assert by_id[LIVERPOOL]["points"] == 7
        assert by_id[ARSENAL]["points"] == 6
        assert by_id[ARSENAL]["playedGames"] == 3
        assert by_id[LIVERPOOL]["playedGames"] == 3

    async def test_simulate_chained_rounds(self, client):
        first = await client.post(
            "/api/v1/football/PL/simulate",
            json={"predictions": [{"match_id": 1005, "outcome": "home"}]},
        )
        standings = first.json()["standings"]

        second = await client.post(
            "/api/v1/football/PL/simulate",
            json={"predictions": [{"match_id": 1008, "outcome": "away"}], "standings": standings},
        )

        arsenal = next(row for row in second.json()["standings"] if row["team"]["id"] == ARSENAL)
        assert arsenal["points"] == 12
        assert arsenal["playedGames"] == 4

    async def test_invalid_prediction_rejected(self, client):
        response = await client.post(
            "/api/v1/football/PL/simulate",
            json={"predictions": [{"match_id": 1005, "outcome": "home", "home_goals": 1}]},
        )

        assert response.status_code == 422

    async def test_recompute(self, client):
        recomputed = await client.get("/api/v1/football/PL/recompute")
        standings = await client.get("/api/v1/football/PL/standings")

        assert recomputed.status_code == 200
        assert recomputed.json()["standings"] == standings.json()["standings"]


class TestCacheEndpoints:
    """测试缓存管理端点"""

    async def test_refresh_and_status(self, client, upstream_client):
        await client.get("/api/v1/football/PL")

        refresh = await client.post("/api/v1/cache/refresh/PL")
        status = await client.get("/api/v1/cache/status")

        assert refresh.status_code == 200
        assert refresh.json()["success"] is True
        assert refresh.json()["current_matchday"] == 3
        assert upstream_client.get_standings.await_count == 2
        assert status.json()["cache"] == {"keys": ["football:league_PL"], "count": 1}

    async def test_refresh_unknown_league(self, client):
        response = await client.post("/api/v1/cache/refresh/XX")

        assert response.status_code == 404


class TestErrorMapping:
    """测试错误映射"""

    async def test_rate_limit_maps_to_429(self, client, upstream_client):
        upstream_client.get_standings.side_effect = UpstreamError(429, "Too many requests")

        response = await client.get("/api/v1/football/PL")

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "Rate limit exceeded"

    async def test_upstream_failure_maps_to_502(self, client, upstream_client):
        upstream_client.get_matches.side_effect = UpstreamError(503, "Service Unavailable")

        response = await client.get("/api/v1/football/PL/standings")

        assert response.status_code == 502
        assert "Service Unavailable" in response.json()["detail"]["details"]

    async def test_missing_api_key_maps_to_500(self, client, upstream_client):
        upstream_client.get_standings.side_effect = ConfigurationError("API_KEY 未配置")

        response = await client.get("/api/v1/football/PL/matchday")

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "API configuration error"

    async def test_batch_reports_failed_leagues(self, client, upstream_client):
        upstream_client.get_standings.side_effect = UpstreamError(500, "boom")

        response = await client.get("/api/v1/football")

        assert response.status_code == 200
        data = response.json()
        assert data["failed"] == ["PL", "BL1", "FL1", "SA", "PD", "CL"]
        cl = next(entry for entry in data["leagues"] if entry["league_code"] == "CL")
        assert cl["current_matchday"] == 4
        assert cl["standings"] == []


class TestRequestId:
    """测试请求 ID"""

    async def test_client_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Process-Time-Ms" in response.headers

    async def test_request_id_generated(self, client):
        response = await client.get("/health")

        assert response.headers["X-Request-ID"]

    async def test_filter_stamps_log_records(self, client):
        import logging
        from src.services.api.main import RequestIdFilter, request_id_ctx

        record = logging.LogRecord("src.test", logging.INFO, __file__, 1, "msg", None, None)
        token = request_id_ctx.set("req-456")
        try:
            assert RequestIdFilter().filter(record)
        finally:
            request_id_ctx.reset(token)

        assert record.request_id == "req-456"

        outside = logging.LogRecord("src.test", logging.INFO, __file__, 1, "msg", None, None)
        RequestIdFilter().filter(outside)
        assert outside.request_id == "-"


class TestHealth:
    """测试健康检查"""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["service"] == "football-predictor-api"

    async def test_ready(self, client):
        response = await client.get("/ready")

        checks = response.json()["checks"]
        assert checks["api_key"] == "ok"
        assert checks["cache_backend"] == "memory"
