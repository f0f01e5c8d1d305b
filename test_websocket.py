#!/usr/bin/env python3
"""
Test Suite for the WebSocket endpoint and HTTP routes

Runs the FastAPI app in-process with the handler's session manager backed by
a scripted oracle.

Tests:
1. Connect, utterances, control messages, export and stop
2. Sessions survive reconnects
3. Invalid messages and HTTP routes

Usage:
    python test_websocket.py
    pytest test_websocket.py
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from fastapi.testclient import TestClient

from test_support import make_settings, running_oracle

import main
from src.clients.oracle import OracleLine
from src.handlers.websocket import WebSocketHandler
from src.utils.session_manager import PresentationSessionManager


def install_handler(oracle):
    """Route every new session to ``oracle`` with translation disabled."""
    settings = make_settings()
    manager = PresentationSessionManager(lambda: oracle, lambda: None, settings)
    main._handler_instance = WebSocketHandler(manager, settings=settings)
    return main._handler_instance


def receive_types(ws, count):
    messages = [ws.receive_json() for _ in range(count)]
    return [m["type"] for m in messages], messages


def test_live_session():
    """Test 1: A full live session over one connection."""
    print("\n[TEST 1] Live session")
    print("-" * 50)

    oracle = running_oracle()
    oracle.script(OracleLine.PAUSED, {"action": "resumePresentation"})
    oracle.script(OracleLine.RUNNING, {"action": "changeSubject"})
    oracle.script(OracleLine.SUBJECT_TITLE, {"title": "Budget"})
    install_handler(oracle)

    with TestClient(main.app) as client:
        with client.websocket_connect("/ws?session_id=live-1") as ws:
            types, messages = receive_types(ws, 2)
            assert types == ["history_update", "status_update"], f"Unexpected greeting: {types}"
            assert messages[0]["payload"]["entries"] == []
            assert messages[0]["payload"]["current_index"] == -1
            assert messages[1]["payload"]["status"] == "paused"
            print("  ✓ Connect sends a snapshot and the paused status")

            ws.send_json({"type": "utterance", "data": {"id": "u1", "text": "Let's start the presentation"}})
            types, messages = receive_types(ws, 3)
            assert types == ["action_detected", "history_update", "status_update"], f"Unexpected: {types}"
            assert messages[0]["payload"]["action"] == {"action": "resumePresentation"}
            assert messages[0]["payload"]["confidence"] == 0.9
            assert messages[2]["payload"]["status"] == "running"
            print("  ✓ Utterance yields action_detected, history_update, status_update")

            ws.send_json({"type": "utterance", "data": {"id": "u2", "text": "Now, the budget"}})
            types, messages = receive_types(ws, 3)
            assert messages[0]["payload"]["action"] == {"action": "changeSubject", "title": "Budget"}
            entries = messages[1]["payload"]["entries"]
            assert [e["subject"]["title"] for e in entries] == ["Budget"]
            print("  ✓ changeSubject appears in the pushed snapshot")

            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"
            ws.send_text("ping")
            assert ws.receive_text() == "pong"
            print("  ✓ JSON and plain-text keepalives")

            ws.send_json({"type": "export"})
            export = ws.receive_json()
            assert export["type"] == "markdown_export"
            assert export["payload"]["markdown"] == "# Budget\n\n_No bullet points yet_"
            assert export["payload"]["entry_count"] == 1
            assert client.get("/sessions/live-1/export").text == "# Budget\n\n_No bullet points yet_"
            print("  ✓ Markdown export over WebSocket and HTTP")

            ws.send_json({"type": "navigate", "data": {"index": 7}})
            types, messages = receive_types(ws, 2)
            assert types == ["history_update", "status_update"]
            assert messages[0]["payload"]["current_index"] == 0, "Out-of-range navigation is ignored"

            ws.send_json({"type": "pause"})
            types, messages = receive_types(ws, 2)
            assert messages[0]["payload"]["state"] == "paused"
            assert messages[1]["payload"]["status"] == "paused"
            print("  ✓ navigate and pause reply with snapshot and status")

            ws.send_json({"type": "stop"})
            status = ws.receive_json()
            assert status["type"] == "status_update" and status["payload"]["status"] == "idle"
            print("  ✓ stop closes the session")

        assert client.get("/sessions/live-1").status_code == 404

    print("  ✓ TEST 1 PASSED!")


def test_reconnect_keeps_history():
    """Test 2: Reconnecting to a session id resumes its history."""
    print("\n[TEST 2] Reconnect")
    print("-" * 50)

    oracle = running_oracle()
    oracle.script(OracleLine.RUNNING, {"action": "changeSubject"})
    oracle.script(OracleLine.SUBJECT_TITLE, {"title": "Roadmap"})
    install_handler(oracle)

    with TestClient(main.app) as client:
        with client.websocket_connect("/ws?session_id=live-2") as ws:
            receive_types(ws, 2)
            ws.send_json({"type": "resume"})
            types, messages = receive_types(ws, 2)
            assert messages[1]["payload"]["status"] == "running"
            ws.send_json({"type": "utterance", "data": {"id": "r1", "text": "Let's cover the roadmap"}})
            receive_types(ws, 3)

        snapshot = client.get("/sessions/live-2").json()
        assert [e["subject"]["title"] for e in snapshot["entries"]] == ["Roadmap"]
        print("  ✓ Session outlives the connection")

        with client.websocket_connect("/ws?session_id=live-2") as ws:
            types, messages = receive_types(ws, 2)
            assert [e["subject"]["title"] for e in messages[0]["payload"]["entries"]] == ["Roadmap"]
            assert messages[1]["payload"]["status"] == "running"
            print("  ✓ Reconnect receives the existing history")

            ws.send_json({"type": "reset"})
            types, messages = receive_types(ws, 2)
            assert messages[0]["payload"]["entries"] == []
            assert messages[1]["payload"]["status"] == "paused"
            print("  ✓ reset empties the history and pauses")

    print("  ✓ TEST 2 PASSED!")


def test_invalid_messages_and_routes():
    """Test 3: Bad input yields an error status; HTTP routes report sessions."""
    print("\n[TEST 3] Invalid messages and HTTP routes")
    print("-" * 50)

    install_handler(running_oracle())

    with TestClient(main.app) as client:
        with client.websocket_connect("/ws?session_id=live-3") as ws:
            receive_types(ws, 2)

            ws.send_json({"type": "explode"})
            error = ws.receive_json()
            assert error["type"] == "status_update" and error["payload"]["status"] == "error"

            ws.send_json({"type": "navigate", "data": {}})
            assert ws.receive_json()["payload"]["status"] == "error"

            ws.send_text("{not json")
            assert ws.receive_json()["payload"]["status"] == "error"
            print("  ✓ Unknown, incomplete and malformed messages are rejected")

            health = client.get("/health").json()
            assert health["status"] == "healthy"
            assert health["active_sessions"] == 1
            print("  ✓ /health counts live sessions")

        assert client.get("/sessions/unknown/export").status_code == 404
        assert client.get("/sessions/live-3/export").text == ""
        assert "websocket" in client.get("/").json()["endpoints"]
        print("  ✓ Unknown sessions are 404")

    print("  ✓ TEST 3 PASSED!")


def main_runner():
    """Run all tests."""
    print("=" * 60)
    print("WEBSOCKET API - TEST SUITE")
    print("=" * 60)

    tests = [test_live_session, test_reconnect_keeps_history, test_invalid_messages_and_routes]
    results = []
    for test in tests:
        try:
            test()
            results.append(True)
        except Exception as e:
            print(f"  ✗ {test.__name__} FAILED: {e}")
            results.append(False)

    print("\n" + "=" * 60)
    print(f"RESULTS: {sum(results)}/{len(results)} tests passed")
    print("=" * 60)
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main_runner())
