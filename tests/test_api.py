"""
Tests for the HTTP API and the WebSocket transport
"""
from datetime import datetime, timezone


def now():
    return datetime.now(timezone.utc).isoformat()


def start_interview(client):
    meeting = client.post("/api/v1/meetings", json={"recruiter_name": "Riya"}).json()["meeting"]
    joined = client.post(f"/api/v1/meetings/{meeting['id']}/join", json={"candidate_name": "Arjun"})
    assert joined.status_code == 200
    return meeting["id"], joined.json()["session"]["id"]


def post_event(client, session_id, event_type, severity="low", metadata=None):
    return client.post("/api/v1/events", json={
        "session_id": session_id,
        "event_type": event_type,
        "severity": severity,
        "timestamp": now(),
        "metadata": metadata,
    })


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestMeetings:
    """Meeting and session endpoints"""

    def test_create_meeting(self, client):
        response = client.post("/api/v1/meetings", json={
            "recruiter_name": "Riya",
            "coding_challenge": {
                "id": "two-sum",
                "title": "Two Sum",
                "description": "Find two numbers adding up to target",
                "language": "python",
            },
        })

        assert response.status_code == 200
        data = response.json()
        assert data["meeting"]["status"] == "waiting"
        assert data["meeting"]["coding_challenge"]["id"] == "two-sum"
        assert data["join_link"] == f"/join/{data['meeting']['id']}"

    def test_join_unknown_meeting(self, client):
        response = client.post("/api/v1/meetings/missing/join", json={"candidate_name": "Arjun"})
        assert response.status_code == 404

    def test_second_candidate_conflicts(self, client):
        meeting_id, _ = start_interview(client)

        response = client.post(f"/api/v1/meetings/{meeting_id}/join", json={"candidate_name": "Other"})

        assert response.status_code == 409

    def test_dashboard(self, client):
        meeting_id, session_id = start_interview(client)
        post_event(client, session_id, "tab_switch", "high")

        data = client.get(f"/api/v1/meetings/{meeting_id}").json()

        assert data["meeting"]["status"] == "active"
        assert data["session"]["authenticity_score"] == 90
        assert [e["event_type"] for e in data["events"]] == ["tab_switch"]

    def test_unknown_dashboard(self, client):
        assert client.get("/api/v1/meetings/missing").status_code == 404

    def test_call_config(self, client):
        data = client.get("/api/v1/call/config").json()

        assert data["ice_servers"][0]["urls"].startswith("stun:")
        assert data["media_timeout_seconds"] > 0


class TestEvents:
    """HTTP ingestion"""

    def test_scores_accumulate(self, client):
        _, session_id = start_interview(client)

        for _ in range(3):
            response = post_event(client, session_id, "window_blur", "medium")

        data = response.json()
        assert data["current_score"] == 61
        assert data["suspicion_delta"] == 8
        assert data["integrity_tier"] == "moderate"
        assert data["alert"] is None

    def test_critical_event_returns_alert(self, client):
        _, session_id = start_interview(client)

        data = post_event(client, session_id, "code_paste", "critical", {"code_snapshot": "x" * 400}).json()

        assert data["alert"]["id"] == f"alert_{data['event_id']}"
        assert len(data["alert"]["code_snapshot"]) == 300

    def test_unknown_session(self, client):
        assert post_event(client, "missing", "tab_switch").status_code == 404

    def test_invalid_payload(self, client):
        _, session_id = start_interview(client)
        response = client.post("/api/v1/events", json={"session_id": session_id, "severity": "extreme"})
        assert response.status_code == 422

    def test_events_and_alerts_history(self, client):
        _, session_id = start_interview(client)
        post_event(client, session_id, "window_focus")
        post_event(client, session_id, "devtools_open", "critical")

        events = client.get(f"/api/v1/sessions/{session_id}/events").json()
        alerts = client.get(f"/api/v1/sessions/{session_id}/alerts").json()

        assert [e["sequence"] for e in events] == [1, 2]
        assert [a["event_type"] for a in alerts] == ["devtools_open"]
        assert alerts[0]["id"] == f"alert_{events[1]['id']}"


class TestSessionEnd:

    def test_end_then_reject(self, client):
        _, session_id = start_interview(client)
        post_event(client, session_id, "tab_switch", "high")

        ended = client.post(f"/api/v1/sessions/{session_id}/end")
        assert ended.status_code == 200
        assert ended.json()["authenticity_score"] == 90
        assert ended.json()["ended_at"] is not None

        assert client.post(f"/api/v1/sessions/{session_id}/end").status_code == 409
        assert post_event(client, session_id, "code_paste", "critical").status_code == 409

        events = client.get(f"/api/v1/sessions/{session_id}/events").json()
        assert len(events) == 1

    def test_end_unknown_session(self, client):
        assert client.post("/api/v1/sessions/missing/end").status_code == 404


class TestReports:

    def test_report(self, client):
        _, session_id = start_interview(client)
        for event_type, severity in [
            ("window_blur", "medium"),
            ("window_blur", "medium"),
            ("window_blur", "medium"),
            ("code_paste", "critical"),
        ]:
            post_event(client, session_id, event_type, severity)
        client.post(f"/api/v1/sessions/{session_id}/end")

        report = client.get(f"/api/v1/reports/{session_id}").json()

        assert report["summary"]["authenticity_score"] == 31
        assert report["summary"]["pattern_penalty"] == 15
        assert report["summary"]["integrity_tier"] == "low"
        assert report["event_counts"] == {"window_blur": 3, "code_paste": 1}
        assert len(report["alerts"]) == 1
        assert "focus_behavior" in report["interpretation"]

    def test_unknown_report(self, client):
        assert client.get("/api/v1/reports/missing").status_code == 404


class TestWebSocket:
    """End-to-end over the socket"""

    def test_live_monitoring(self, client):
        meeting_id, session_id = start_interview(client)

        with client.websocket_connect("/ws") as recruiter, client.websocket_connect("/ws") as candidate:
            recruiter.send_json({"type": "recruiter_subscribe", "meeting_id": meeting_id})
            assert recruiter.receive_json()["type"] == "subscribed"

            candidate.send_json({
                "type": "candidate_joined",
                "meeting_id": meeting_id,
                "session_id": session_id,
                "candidate_name": "Arjun",
            })
            assert candidate.receive_json()["type"] == "subscribed"
            assert recruiter.receive_json()["type"] == "candidate_status"

            candidate.send_json({
                "type": "behavior_event",
                "session_id": session_id,
                "event": {"event_type": "tab_switch", "severity": "high", "timestamp": now()},
            })
            assert recruiter.receive_json()["type"] == "live_event_update"
            score = recruiter.receive_json()
            assert score["type"] == "score_update"
            assert score["authenticity_score"] == 90
            assert recruiter.receive_json()["type"] == "cheat_alert"
            assert candidate.receive_json()["type"] == "warning"

            candidate.send_json({"type": "call_ready", "meeting_id": meeting_id, "session_id": session_id})
            assert recruiter.receive_json() == {
                "type": "peer_call_ready",
                "meeting_id": meeting_id,
                "session_id": session_id,
            }

            recruiter.send_json({"type": "session_end", "session_id": session_id})
            assert recruiter.receive_json() == {"type": "session_ended", "final_score": 90}
            assert candidate.receive_json() == {"type": "session_ended", "final_score": 90}

    def test_http_events_are_published(self, client):
        meeting_id, session_id = start_interview(client)

        with client.websocket_connect("/ws") as recruiter:
            recruiter.send_json({"type": "recruiter_subscribe", "meeting_id": meeting_id})
            recruiter.receive_json()

            post_event(client, session_id, "multiple_faces_detected", "critical")

            assert recruiter.receive_json()["type"] == "live_event_update"
            assert recruiter.receive_json()["authenticity_score"] == 55

    def test_bad_frames(self, client):
        with client.websocket_connect("/ws") as socket:
            socket.send_text("not json")
            assert socket.receive_json() == {"type": "error", "message": "Frames must be JSON"}

            socket.send_json({"type": "nonsense"})
            assert socket.receive_json()["type"] == "error"
