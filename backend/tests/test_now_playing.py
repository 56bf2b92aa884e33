import pytest
from httpx import AsyncClient

from conftest import loop_channel, slot_channel


@pytest.mark.asyncio
async def test_now_playing_loop(client: AsyncClient):
    await client.put(
        "/api/v1/schedule",
        params={"channel": "1"},
        json=loop_channel(("a.mp4", 300), ("b.mp4", 600), ("c.mp4", 900)),
    )

    response = await client.get(
        "/api/v1/now-playing", params={"channel": "1", "at": "1970-01-01T00:15:50Z"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["relativePath"] == "c.mp4"
    assert data["offsetSeconds"] == pytest.approx(50)
    assert data["durationSeconds"] == 900
    assert data["endsAt"].startswith("1970-01-01T00:30:00")
    assert isinstance(data["serverTimeMs"], int)
    assert "nextSlotStart" not in data


@pytest.mark.asyncio
async def test_now_playing_gap_reports_next_slot(client: AsyncClient):
    await client.put("/api/v1/schedule", params={"channel": "2"}, json=slot_channel(("08:00", "morning.mp4", 3600)))

    response = await client.get(
        "/api/v1/now-playing", params={"channel": "2", "at": "2024-03-04T09:30:00Z"}
    )

    assert response.status_code == 200
    data = response.json()
    assert "relativePath" not in data
    assert data["nextSlotStart"].startswith("2024-03-05T08:00:00")
    assert data["active"] is True


@pytest.mark.asyncio
async def test_now_playing_inside_slot(client: AsyncClient):
    await client.put(
        "/api/v1/schedule",
        params={"channel": "2"},
        json=slot_channel(("08:00", "morning.mp4", 3600), shortName="Mornings"),
    )

    response = await client.get(
        "/api/v1/now-playing", params={"channel": "2", "at": "2024-03-04T08:10:00+00:00"}
    )

    data = response.json()
    assert data["relativePath"] == "morning.mp4"
    assert data["offsetSeconds"] == pytest.approx(600)
    assert data["startedAt"].startswith("2024-03-04T08:00:00")


@pytest.mark.asyncio
async def test_now_playing_defaults_to_current_time(client: AsyncClient):
    await client.put("/api/v1/schedule", params={"channel": "3"}, json=loop_channel(("only.mp4", 60)))

    response = await client.get("/api/v1/now-playing", params={"channel": "3"})

    data = response.json()
    assert data["relativePath"] == "only.mp4"
    assert 0 <= data["offsetSeconds"] < 60


@pytest.mark.asyncio
async def test_now_playing_unknown_channel(client: AsyncClient):
    response = await client.get("/api/v1/now-playing", params={"channel": "404"})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"
