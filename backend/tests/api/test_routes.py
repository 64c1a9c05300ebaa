"""Route Tests — health, methods, schedule, next and current prayer, qibla, countdown SSE.

Invariants:
    - Contract violations map to 400 with the error envelope
    - Malformed or missing lat/lng is INVALID_COORDINATE, like an out-of-range value
    - A degraded schedule is still a 200
    - The countdown stream emits tick events followed by done
"""

import json

from salah_engine.core.errors import RemoteUnavailableError

ISTANBUL = {"lat": 41.0082, "lng": 28.9784, "tz": "Europe/Istanbul"}


# ==============================================================================
# Health & Methods
# ==============================================================================


async def test_health_is_always_ok(bare_client):
    response = await bare_client.get("/api/v1/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_ready_is_503_without_service(bare_client):
    response = await bare_client.get("/api/v1/health/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


async def test_ready_reports_cache_size(client):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["cached_schedules"] == 0


async def test_list_methods(client):
    response = await client.get("/api/v1/methods")
    ids = {m["id"] for m in response.json()}
    assert "MWL" in ids and "UMMALQURA" in ids


async def test_interval_method_hides_isha_angle(client):
    body = (await client.get("/api/v1/methods/umm-al-qura")).json()
    assert body["isha_angle_deg"] is None
    assert body["isha_interval_minutes"] == 90


async def test_unknown_method_is_400(client):
    response = await client.get("/api/v1/methods/moonsighting")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "UNKNOWN_METHOD"


# ==============================================================================
# Schedule, Next & Current Prayer
# ==============================================================================


async def test_schedule_for_istanbul(client):
    response = await client.get("/api/v1/schedule", params={**ISTANBUL, "date": "2025-06-21"})
    assert response.status_code == 200
    body = response.json()
    assert body["method_id"] == "TURKEY"
    assert body["degraded"] is False
    assert body["day"] == "2025-06-21"
    assert list(body["times"]) == ["fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha"]
    assert body["times"]["dhuhr"].startswith("2025-06-21T13:00:00")
    assert body["times"]["dhuhr"].endswith("+03:00")


async def test_schedule_defaults_to_today_in_location_zone(client):
    body = (await client.get("/api/v1/schedule", params=ISTANBUL)).json()
    assert body["day"] == "2025-06-21"


async def test_schedule_degraded_is_still_200(client, schedule_service):
    schedule_service._remote.error = RemoteUnavailableError("down", "connection_error")
    response = await client.get("/api/v1/schedule", params={**ISTANBUL, "date": "2025-06-22"})
    assert response.status_code == 200
    assert response.json()["degraded"] is True


async def test_invalid_latitude_is_400(client):
    response = await client.get("/api/v1/schedule", params={"lat": 91, "lng": 0})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_COORDINATE"


async def test_non_numeric_latitude_is_invalid_coordinate(client):
    response = await client.get("/api/v1/schedule", params={"lat": "north", "lng": 0})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INVALID_COORDINATE"
    assert "latitude" in error["message"]


async def test_missing_or_malformed_longitude_is_invalid_coordinate(client):
    missing = await client.get("/api/v1/schedule/next", params={"lat": 41.0})
    assert missing.status_code == 400
    assert missing.json()["error"]["code"] == "INVALID_COORDINATE"

    malformed = await client.get("/api/v1/qibla", params={"lat": 41.0, "lng": "east"})
    assert malformed.status_code == 400
    assert malformed.json()["error"]["code"] == "INVALID_COORDINATE"
    assert "longitude" in malformed.json()["error"]["message"]


async def test_other_query_errors_stay_validation_errors(client):
    response = await client.get("/api/v1/schedule", params={**ISTANBUL, "date": "someday"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_unknown_timezone_is_400(client):
    response = await client.get(
        "/api/v1/schedule", params={**ISTANBUL, "tz": "Mars/Olympus"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_TIMEZONE"


async def test_next_prayer(client):
    # 10:00 UTC is 13:00 in Istanbul; Dhuhr at 13:00 has just started
    body = (await client.get("/api/v1/schedule/next", params=ISTANBUL)).json()
    assert body["kind"] == "asr"
    assert body["name"] == "Asr"
    assert body["seconds_remaining"] == 4 * 3600
    assert body["minutes_remaining"] == 4 * 60


async def test_current_prayer(client):
    # 13:00 in Istanbul: Dhuhr has just started, Asr ends it at 17:00
    response = await client.get("/api/v1/schedule/current", params=ISTANBUL)
    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "dhuhr"
    assert body["name"] == "Dhuhr"
    assert body["started"].startswith("2025-06-21T13:00:00")
    assert body["next"]["kind"] == "asr"
    assert body["next"]["minutes_remaining"] == 240


async def test_current_prayer_without_timezone_resolves_it(client):
    body = (await client.get(
        "/api/v1/schedule/current", params={"lat": 41.0082, "lng": 28.9784},
    )).json()
    assert body["kind"] == "dhuhr"
    assert body["started"].endswith("+03:00")


# ==============================================================================
# Qibla
# ==============================================================================


async def test_qibla_for_london(client):
    body = (await client.get("/api/v1/qibla", params={"lat": 51.5074, "lng": -0.1278})).json()
    assert 118.5 < body["bearing_deg"] < 119.5
    assert body["distance_km"] > 4000


async def test_qibla_rejects_out_of_range(client):
    response = await client.get("/api/v1/qibla", params={"lat": 0, "lng": 200})
    assert response.status_code == 400


# ==============================================================================
# Countdown Stream
# ==============================================================================


async def test_countdown_stream_emits_ticks_then_done(client):
    response = await client.get(
        "/api/v1/countdown", params={**ISTANBUL, "interval": 0.01, "max_ticks": 2},
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = [
        json.loads(line[len("data: "):])
        for line in response.text.splitlines() if line.startswith("data: ")
    ]
    assert [e["type"] for e in events] == ["tick", "tick", "done"]
    assert events[0]["data"]["kind"] == "asr"
    assert events[0]["data"]["remaining"] == "04:00:00"
    assert events[-1]["data"]["ticks"] == 2


async def test_countdown_rejects_non_positive_interval(client):
    response = await client.get("/api/v1/countdown", params={**ISTANBUL, "interval": 0})
    assert response.status_code == 400
