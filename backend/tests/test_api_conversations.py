"""Tests for conversation endpoints."""

from datetime import datetime, timedelta, timezone

from sqlmodel import Session, select

from tests.conftest import test_engine
from traffic_chat.models.conversation import ChatConversation, ChatMessage
from traffic_chat.models.notification import AdminNotification


def _seed_conversation(email="a@x.com", status="open", messages=None, created_at=None, read=False):
    """Insert a conversation + messages directly into the test DB."""
    with Session(test_engine) as session:
        conv = ChatConversation(customer_email=email, status=status, read=read)
        if created_at:
            conv.created_at = created_at
        session.add(conv)
        session.commit()
        session.refresh(conv)

        if messages:
            for sender_type, body in messages:
                session.add(ChatMessage(conversation_id=conv.id, sender_type=sender_type, body=body))
            session.commit()

        return conv.id


def test_list_conversations_empty(client):
    response = client.get("/api/chat/conversations/")
    assert response.status_code == 200
    data = response.json()
    assert data["data"] == []
    assert data["pagination"]["total_entries"] == 0


def test_list_conversations_filters_by_status(client):
    _seed_conversation("one@x.com")
    _seed_conversation("two@x.com")
    _seed_conversation("three@x.com", status="closed")

    response = client.get("/api/chat/conversations/")
    assert response.status_code == 200
    emails = {c["customer_email"] for c in response.json()["data"]}
    assert emails == {"one@x.com", "two@x.com"}

    response = client.get("/api/chat/conversations/", params={"status": "all"})
    assert response.json()["pagination"]["total_entries"] == 3


def test_list_conversations_paginates(client):
    for i in range(5):
        _seed_conversation(f"user{i}@x.com")
    response = client.get("/api/chat/conversations/", params={"page": 2, "page_size": 2})
    data = response.json()
    assert len(data["data"]) == 2
    assert data["pagination"] == {
        "page": 2,
        "page_size": 2,
        "total_pages": 3,
        "total_entries": 5,
    }


def test_create_conversation_normalizes_email(client):
    response = client.post(
        "/api/chat/conversations/",
        json={"customer_email": "  Alice@Example.COM ", "customer_name": "Alice"},
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["customer_email"] == "alice@example.com"
    assert data["status"] == "open"
    assert data["source"] == "widget"
    assert data["id"]


def test_create_conversation_notifies_admins(client):
    response = client.post("/api/chat/conversations/", json={"customer_email": "b@x.com"})
    conv_id = response.json()["data"]["id"]

    with Session(test_engine) as session:
        notes = session.exec(select(AdminNotification)).all()
        assert len(notes) == 1
        assert notes[0].type == "new_conversation"
        assert notes[0].reference_id == conv_id
        assert "b@x.com" in notes[0].message


def test_lookup_matches_email_case_insensitively(client):
    cid = _seed_conversation("a@x.com")
    response = client.get("/api/chat/conversations/lookup", params={"email": "A@X.com"})
    assert response.status_code == 200
    assert response.json()["data"]["id"] == cid


def test_lookup_ignores_closed_conversations(client):
    _seed_conversation("a@x.com", status="closed")
    response = client.get("/api/chat/conversations/lookup", params={"email": "a@x.com"})
    assert response.status_code == 404


def test_lookup_prefers_most_recently_created(client):
    now = datetime.now(timezone.utc)
    _seed_conversation("a@x.com", created_at=now - timedelta(hours=2))
    newest = _seed_conversation("a@x.com", created_at=now)
    response = client.get("/api/chat/conversations/lookup", params={"email": "a@x.com"})
    assert response.json()["data"]["id"] == newest


def test_get_conversation_includes_messages(client):
    cid = _seed_conversation(messages=[("customer", "hello"), ("agent", "hi there")])
    response = client.get(f"/api/chat/conversations/{cid}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert [m["body"] for m in data["messages"]] == ["hello", "hi there"]
    assert data["messages"][1]["sender_type"] == "agent"


def test_get_conversation_not_found(client):
    response = client.get("/api/chat/conversations/missing")
    assert response.status_code == 404


def test_get_conversation_mark_read(client):
    cid = _seed_conversation()
    response = client.get(f"/api/chat/conversations/{cid}", params={"mark_read": True})
    assert response.json()["data"]["read"] is True


def test_close_and_reopen_conversation(client):
    cid = _seed_conversation()
    response = client.put(f"/api/chat/conversations/{cid}", json={"status": "closed"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "closed"
    assert data["closed_at"] is not None

    response = client.put(f"/api/chat/conversations/{cid}", json={"status": "open"})
    data = response.json()["data"]
    assert data["status"] == "open"
    assert data["closed_at"] is None


def test_update_conversation_not_found(client):
    response = client.put("/api/chat/conversations/missing", json={"status": "closed"})
    assert response.status_code == 404


def test_unread_conversation_count(client):
    _seed_conversation("a@x.com")
    _seed_conversation("b@x.com", read=True)
    _seed_conversation("c@x.com", status="closed")
    response = client.get("/api/chat/conversations/unread")
    assert response.json() == {"count": 1}


def test_admin_create_starts_new_conversation(client):
    response = client.post(
        "/api/chat/conversations/admin-create",
        json={"user_email": "New@X.com", "message": "Hi, checking in", "agent_name": "Sam"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["existing"] is False
    assert body["data"]["source"] == "admin"
    assert body["data"]["customer_email"] == "new@x.com"

    with Session(test_engine) as session:
        messages = session.exec(select(ChatMessage)).all()
        assert len(messages) == 1
        assert messages[0].sender_type == "agent"
        assert messages[0].sender_name == "Sam"


def test_admin_create_reuses_open_conversation(client):
    cid = _seed_conversation("a@x.com")
    response = client.post(
        "/api/chat/conversations/admin-create",
        json={"user_email": "a@x.com", "message": "Following up"},
    )
    body = response.json()
    assert body["existing"] is True
    assert body["data"]["id"] == cid
    assert body["data"]["preview"] == "Following up"


def test_admin_create_requires_message(client):
    response = client.post(
        "/api/chat/conversations/admin-create", json={"user_email": "a@x.com", "message": " "}
    )
    assert response.status_code == 400


def test_merge_folds_duplicates_into_oldest(client):
    now = datetime.now(timezone.utc)
    oldest = _seed_conversation(
        "a@x.com", status="closed", messages=[("customer", "first")], created_at=now - timedelta(days=2)
    )
    middle = _seed_conversation(
        "A@X.com", status="open", messages=[("agent", "second"), ("customer", "third")],
        created_at=now - timedelta(days=1),
    )
    other = _seed_conversation("b@x.com", messages=[("customer", "unrelated")])

    response = client.post("/api/chat/conversations/merge", json={"email": " A@x.com "})
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "emails_processed": 1,
        "conversations_merged": 1,
        "messages_moved": 2,
    }

    with Session(test_engine) as session:
        assert session.get(ChatConversation, middle) is None
        primary = session.get(ChatConversation, oldest)
        assert primary.status == "open"
        assert primary.closed_at is None
        bodies = sorted(
            m.body for m in session.exec(
                select(ChatMessage).where(ChatMessage.conversation_id == oldest)
            ).all()
        )
        assert bodies == ["first", "second", "third"]
        assert session.get(ChatConversation, other) is not None


def test_merge_keeps_primary_closed_when_no_duplicate_is_open(client):
    now = datetime.now(timezone.utc)
    oldest = _seed_conversation("a@x.com", status="closed", created_at=now - timedelta(days=1))
    _seed_conversation("a@x.com", status="archived", created_at=now)

    client.post("/api/chat/conversations/merge", json={"email": "a@x.com"})

    with Session(test_engine) as session:
        assert session.get(ChatConversation, oldest).status == "closed"


def test_merge_without_email_handles_every_duplicated_email(client):
    now = datetime.now(timezone.utc)
    for email in ("a@x.com", "b@x.com", "b@x.com", "c@x.com", "C@x.com", "c@x.com"):
        now += timedelta(seconds=1)
        _seed_conversation(email, created_at=now)

    response = client.post("/api/chat/conversations/merge")
    data = response.json()
    assert data["emails_processed"] == 2
    assert data["conversations_merged"] == 3
    assert data["messages_moved"] == 0

    with Session(test_engine) as session:
        remaining = sorted(c.customer_email.lower() for c in session.exec(select(ChatConversation)).all())
        assert remaining == ["a@x.com", "b@x.com", "c@x.com"]


def test_merge_is_a_noop_for_single_conversation(client):
    cid = _seed_conversation("a@x.com")
    response = client.post("/api/chat/conversations/merge", json={"email": "a@x.com"})
    assert response.json()["conversations_merged"] == 0
    lookup = client.get("/api/chat/conversations/lookup", params={"email": "a@x.com"})
    assert lookup.json()["data"]["id"] == cid
