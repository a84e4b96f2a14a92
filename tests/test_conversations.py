from datetime import date, datetime, timedelta
from unittest.mock import patch

import pytest

from roam_api.models import Booking, ConversationMetadata, ConversationParticipant
from tests.conftest import login_as

NOW = datetime(2025, 3, 1, 12, 0)


@pytest.fixture
def inbox(db, business):
    db.add_all(
        [
            Booking(id="bk-1", business_id=business.id, booking_date=date(2025, 3, 2), booking_status="confirmed"),
            Booking(id="bk-2", business_id="biz-other", booking_date=date(2025, 3, 3), booking_status="pending"),
            ConversationMetadata(id="conv-1", booking_id="bk-1", last_message_at=NOW),
            ConversationMetadata(id="conv-2", booking_id="bk-2", last_message_at=NOW - timedelta(days=1)),
            ConversationParticipant(
                conversation_id="conv-1", user_id="user-owner", user_type="owner", last_read_at=NOW - timedelta(hours=1)
            ),
            ConversationParticipant(
                conversation_id="conv-2", user_id="user-owner", user_type="provider", last_read_at=NOW
            ),
            ConversationParticipant(conversation_id="conv-1", user_id="user-cust", user_type="customer"),
        ]
    )
    db.commit()


def test_lists_provider_side_conversations(client, inbox):
    login_as("user-owner")

    response = client.get("/api/conversations-optimized", params={"user_id": "user-owner", "user_type": "owner"})

    assert response.status_code == 200
    data = response.json()
    assert [c["metadataId"] for c in data["conversations"]] == ["conv-1", "conv-2"]
    assert data["conversations"][0]["unreadCount"] == 1
    assert data["conversations"][1]["unreadCount"] == 0
    assert data["_meta"]["fallback_mode"] is True


def test_business_filter_and_unread_only(client, inbox):
    login_as("user-owner")

    response = client.post(
        "/api/conversations-optimized",
        json={"userId": "user-owner", "userType": "provider", "businessId": "biz-1", "unreadOnly": "true"},
    )

    assert [c["bookingId"] for c in response.json()["conversations"]] == ["bk-1"]


def test_counts_only(client, inbox):
    login_as("user-owner")

    response = client.get(
        "/api/conversations-optimized",
        params={"user_id": "user-owner", "user_type": "dispatcher", "counts_only": "true"},
    )

    assert response.json()["counts"] == {
        "total_conversations": 2,
        "unread_conversations": 1,
        "total_unread_messages": 1,
    }


def test_cannot_read_another_users_inbox(client, inbox):
    login_as("user-cust")

    response = client.get("/api/conversations-optimized", params={"user_id": "user-owner", "user_type": "owner"})

    assert response.status_code == 403


def test_invalid_user_type(client, inbox):
    login_as("user-owner")

    response = client.get("/api/conversations-optimized", params={"user_id": "user-owner", "user_type": "admin"})

    assert response.status_code == 400


def test_mark_read(client, inbox, db):
    login_as("user-cust")

    response = client.post(
        "/api/conversations-optimized", json={"action": "mark_read", "conversationId": "conv-1"}
    )

    assert response.status_code == 200
    participant = (
        db.query(ConversationParticipant)
        .filter(ConversationParticipant.conversation_id == "conv-1", ConversationParticipant.user_id == "user-cust")
        .first()
    )
    assert participant.last_read_at is not None


def test_create_conversation(client, inbox, db):
    db.add(Booking(id="bk-9", business_id="biz-1", booking_date=date(2025, 3, 9), booking_status="confirmed"))
    db.commit()
    login_as("user-owner")

    response = client.post(
        "/api/conversations-optimized",
        json={
            "action": "create",
            "booking_id": "bk-9",
            "participants": [
                {"user_id": "user-owner", "user_type": "owner"},
                {"userId": "user-cust", "userType": "customer"},
            ],
        },
    )

    assert response.status_code == 200
    conversation = db.query(ConversationMetadata).filter(ConversationMetadata.booking_id == "bk-9").first()
    assert response.json()["conversation"]["id"] == conversation.id
    assert conversation.participant_count == 2
    members = db.query(ConversationParticipant).filter(ConversationParticipant.conversation_id == conversation.id)
    assert {(p.user_id, p.user_type) for p in members} == {("user-owner", "owner"), ("user-cust", "customer")}


def test_create_conversation_conflicts_per_booking(client, inbox):
    login_as("user-owner")

    response = client.post(
        "/api/conversations-optimized",
        json={"action": "create", "booking_id": "bk-1", "participants": [{"user_id": "user-owner", "user_type": "owner"}]},
    )

    assert response.status_code == 409
    assert response.json()["conversation_id"] == "conv-1"


def test_create_conversation_requires_caller_as_participant(client, inbox):
    login_as("user-owner")

    response = client.post(
        "/api/conversations-optimized",
        json={"action": "create", "booking_id": "bk-2", "participants": [{"user_id": "user-cust", "user_type": "customer"}]},
    )

    assert response.status_code == 403


def test_conversations_from_rpc(client):
    login_as("user-owner")
    rows = [
        {"conversation": {"metadataId": "conv-9", "bookingId": "bk-9"}, "unread_count": 4, "total_count": 1},
    ]
    with patch("roam_api.domain.conversations.service.call_rpc", return_value=rows) as mock_rpc:
        response = client.get("/api/conversations-optimized", params={"user_id": "user-owner", "user_type": "owner"})

    assert response.status_code == 200
    data = response.json()
    assert data["conversations"] == [{"metadataId": "conv-9", "bookingId": "bk-9", "unreadCount": 4}]
    assert data["pagination"]["total"] == 1
    assert "fallback_mode" not in data["_meta"]
    assert mock_rpc.call_args.args[1] == "get_provider_conversations"


def test_conversation_counts_from_rpc(client):
    login_as("user-owner")
    counts = {"total_conversations": 7, "unread_conversations": 2, "total_unread_messages": 5}
    with patch("roam_api.domain.conversations.service.call_rpc", return_value=[counts]):
        response = client.get(
            "/api/conversations-optimized",
            params={"user_id": "user-owner", "user_type": "owner", "counts_only": "true"},
        )

    assert response.json()["counts"] == counts
    assert "fallback_mode" not in response.json()["_meta"]
