"""
Pytest configuration and fixtures
"""
import pytest
from typing import Dict, Any


@pytest.fixture
def sample_ticket_payload() -> Dict[str, Any]:
    """Ticket as the frontend sends it back (camelCase)"""
    return {
        "id": "7f0c1c1e-5b2a-4a8e-9d55-0d8c2c6f2a11",
        "title": "VPN disconnects every 5 minutes",
        "description": "Remote staff lose VPN connectivity repeatedly.",
        "severity": "normal",
        "status": "in_progress",
        "assignee": "participant",
        "createdAt": 1_700_000_000_000,
        "deadlineAssign": 1_700_000_120_000,
        "deadlineSolve": 1_700_000_300_000,
        "isCritical": False,
        "isTutorial": False,
        "messages": [
            {"from": "client", "text": "Any update?", "timestamp": 1_700_000_200_000},
        ],
    }


@pytest.fixture
def sample_agent_payload() -> Dict[str, Any]:
    """Colleague entry of an agents:update frame"""
    return {
        "id": "bot3",
        "name": "Jonas Weber",
        "skill": 0.9,
        "trust": 0.7,
        "status": "away",
        "greeting": "Good day, colleagues.",
    }
