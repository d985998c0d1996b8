"""任务指标 API 测试

测试内容：
1. GET /api/metrics 返回最近一个 tick 的报告与计数器
2. GET /api/metrics/{task_id} 单任务查询与 404
3. 每个响应携带 X-Request-ID 与 X-Report-Tick，单任务查询日志记录 task_id
"""

from httpx import AsyncClient
from structlog.testing import capture_logs


def _feed_single_task(app, fake_clock) -> None:
    """Spawn -> Enter -> Exit(+5s) -> Close(+10s)，然后手动执行一次 tick"""
    source = app.state.recorder.source
    source.on_spawn(1, "name=job")
    source.on_enter(1)
    fake_clock.advance(5)
    source.on_exit(1)
    fake_clock.advance(5)
    source.on_close(1)
    source.on_spawn(2, "name=still-running")
    app.state.recorder.collector.tick()


class TestMetricsSnapshot:
    """指标快照测试"""

    async def test_empty_snapshot(self, client: AsyncClient):
        resp = await client.get("/api/metrics")
        assert resp.status_code == 200
        data = resp.json()
        assert data["tick"] == 0
        assert data["tasks"] == []
        assert data["channel"]["sent"] == 0
        assert data["collector"]["events_applied"] == 0

    async def test_snapshot_after_tick(self, app, client: AsyncClient, fake_clock):
        _feed_single_task(app, fake_clock)

        resp = await client.get("/api/metrics")
        assert resp.status_code == 200
        data = resp.json()
        assert data["tick"] == 1
        tasks = {t["task_id"]: t for t in data["tasks"]}

        assert tasks["1"]["active"] is False
        assert tasks["1"]["total_time_s"] == 10.0
        assert tasks["1"]["busy_time_s"] == 5.0
        assert tasks["1"]["poll_count"] == 1
        assert tasks["1"]["fields"] == "name=job"

        assert tasks["2"]["active"] is True
        assert tasks["2"]["total_time_s"] is None

        assert data["channel"]["sent"] == 5
        assert data["collector"]["events_applied"] == 5


class TestTaskMetrics:
    """单任务查询测试"""

    async def test_get_task_metrics(self, app, client: AsyncClient, fake_clock):
        _feed_single_task(app, fake_clock)

        resp = await client.get("/api/metrics/1")
        assert resp.status_code == 200
        assert resp.json()["busy_time_s"] == 5.0

    async def test_unknown_task_returns_404(self, client: AsyncClient):
        resp = await client.get("/api/metrics/999")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TASK_NOT_FOUND"


class TestRequestId:
    """请求级日志测试"""

    async def test_request_id_in_response_header(self, client: AsyncClient):
        resp = await client.get("/health")
        assert "x-request-id" in resp.headers
        # ULID 格式：26 字符
        assert len(resp.headers["x-request-id"]) == 26

    async def test_request_ids_are_unique(self, client: AsyncClient):
        ids = set()
        for _ in range(3):
            resp = await client.get("/health")
            ids.add(resp.headers["x-request-id"])
        assert len(ids) == 3

    async def test_report_tick_header_tracks_snapshot(self, app, client: AsyncClient, fake_clock):
        resp = await client.get("/api/metrics")
        assert resp.headers["x-report-tick"] == "0"

        _feed_single_task(app, fake_clock)
        resp = await client.get("/api/metrics/1")
        assert resp.headers["x-report-tick"] == "1"

    async def test_task_lookup_logs_task_id(self, app, client: AsyncClient, fake_clock):
        _feed_single_task(app, fake_clock)

        with capture_logs() as logs:
            await client.get("/api/metrics/1")

        [completed] = [e for e in logs if e["event"] == "request_completed"]
        assert completed["task_id"] == "1"
        assert completed["status_code"] == 200
