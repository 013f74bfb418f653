import pytest
from httpx import AsyncClient
from fastapi import status

from slotpoll.core.background_tasks import notification_tasks

BASE = "/api/poll"


def auth(token: str) -> dict[str, str]:
    return {"Participant-Token": token}


async def create_poll(async_client: AsyncClient, poll_data, events_data=None):
    response = await async_client.post(f"{BASE}/", json=poll_data)
    assert response.status_code == status.HTTP_201_CREATED
    poll = response.json()

    events = []
    if events_data:
        response = await async_client.post(
            f"{BASE}/{poll['id']}/events",
            json=events_data,
            headers=auth(poll_data["admin_token"]),
        )
        assert response.status_code == status.HTTP_200_OK
        events = response.json()

    return poll, events


async def participate(
    async_client: AsyncClient, poll_id: int, token: str, name="Alice", **extra
):
    response = await async_client.post(
        f"{BASE}/{poll_id}/participate",
        json={"name": name, "token": token, **extra},
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


class TestPollsPublic:

    @pytest.mark.asyncio
    async def test_create_poll(self, async_client: AsyncClient, test_poll_data):
        response = await async_client.post(f"{BASE}/", json=test_poll_data)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["title"] == test_poll_data["title"]
        assert data["booked_events"] == []
        assert "admin_token" not in data
        assert "admin_mail" not in data

    @pytest.mark.asyncio
    async def test_create_poll_invalid(self, async_client: AsyncClient, test_poll_data):
        response = await async_client.post(
            f"{BASE}/", json={**test_poll_data, "title": ""}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

        response = await async_client.post(
            f"{BASE}/", json={**test_poll_data, "admin_mail": "not-a-mail"}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

        data = {k: v for k, v in test_poll_data.items() if k != "admin_token"}
        response = await async_client.post(f"{BASE}/", json=data)
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_get_poll(self, async_client: AsyncClient, test_poll_data):
        poll, _ = await create_poll(async_client, test_poll_data)

        response = await async_client.get(f"{BASE}/{poll['id']}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["title"] == test_poll_data["title"]

    @pytest.mark.asyncio
    async def test_get_nonexistent_poll(self, async_client: AsyncClient):
        response = await async_client.get(f"{BASE}/999")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert "not found" in response.json()["detail"].lower()

    @pytest.mark.asyncio
    async def test_get_events(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)

        response = await async_client.get(f"{BASE}/{poll['id']}/events")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == events
        assert events[0]["note"] == "after work"
        assert events[0]["start"].endswith("Z")

    @pytest.mark.asyncio
    async def test_get_events_nonexistent_poll(self, async_client: AsyncClient):
        response = await async_client.get(f"{BASE}/999/events")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestPollAdmin:

    @pytest.mark.asyncio
    async def test_is_admin(self, async_client: AsyncClient, test_poll_data):
        poll, _ = await create_poll(async_client, test_poll_data)
        url = f"{BASE}/{poll['id']}/admin"

        response = await async_client.get(url, headers=auth(test_poll_data["admin_token"]))
        assert response.json() == {"is_admin": True}

        response = await async_client.get(url, headers=auth("guess"))
        assert response.json() == {"is_admin": False}

        response = await async_client.get(url)
        assert response.json() == {"is_admin": False}

    @pytest.mark.asyncio
    async def test_is_admin_nonexistent_poll(self, async_client: AsyncClient):
        response = await async_client.get(f"{BASE}/999/admin", headers=auth("x"))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_update_poll(self, async_client: AsyncClient, test_poll_data):
        poll, _ = await create_poll(async_client, test_poll_data)
        update_data = {**test_poll_data, "title": "Updated title"}

        response = await async_client.put(
            f"{BASE}/{poll['id']}",
            json=update_data,
            headers=auth(test_poll_data["admin_token"]),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["title"] == "Updated title"

    @pytest.mark.asyncio
    async def test_update_poll_without_token(
        self, async_client: AsyncClient, test_poll_data
    ):
        poll, _ = await create_poll(async_client, test_poll_data)

        response = await async_client.put(f"{BASE}/{poll['id']}", json=test_poll_data)
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await async_client.put(
            f"{BASE}/{poll['id']}", json=test_poll_data, headers=auth("wrong")
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_update_nonexistent_poll(
        self, async_client: AsyncClient, test_poll_data
    ):
        response = await async_client.put(
            f"{BASE}/999", json=test_poll_data, headers=auth(test_poll_data["admin_token"])
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_clone_poll(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)

        response = await async_client.post(
            f"{BASE}/{poll['id']}/clone", headers=auth(test_poll_data["admin_token"])
        )

        assert response.status_code == status.HTTP_201_CREATED
        clone = response.json()
        assert clone["id"] != poll["id"]
        assert clone["title"] == f"{test_poll_data['title']} (clone)"

        response = await async_client.get(f"{BASE}/{clone['id']}/events")
        assert [e["start"] for e in response.json()] == [e["start"] for e in events]

    @pytest.mark.asyncio
    async def test_delete_poll(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)
        _ = await participate(
            async_client, poll["id"], "alice", participation=[events[0]["id"]]
        )

        response = await async_client.delete(f"{BASE}/{poll['id']}", headers=auth("wrong"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await async_client.delete(
            f"{BASE}/{poll['id']}", headers=auth(test_poll_data["admin_token"])
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == poll["id"]

        response = await async_client.get(f"{BASE}/{poll['id']}")
        assert response.status_code == status.HTTP_404_NOT_FOUND

        response = await async_client.get(f"{BASE}/", headers=auth("alice"))
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_delete_nonexistent_poll(self, async_client: AsyncClient):
        response = await async_client.delete(f"{BASE}/999", headers=auth("x"))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestOwnPolls:

    @pytest.mark.asyncio
    async def test_get_polls_requires_token(self, async_client: AsyncClient):
        response = await async_client.get(f"{BASE}/")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_get_polls(
        self, async_client: AsyncClient, test_poll_data, test_events_data, participant_token
    ):
        own, _ = await create_poll(async_client, test_poll_data, test_events_data)
        other, _ = await create_poll(
            async_client, {**test_poll_data, "admin_token": "someone-else"}
        )
        _ = await participate(async_client, other["id"], test_poll_data["admin_token"])

        response = await async_client.get(
            f"{BASE}/", headers=auth(test_poll_data["admin_token"])
        )
        assert response.status_code == status.HTTP_200_OK
        assert sorted(p["id"] for p in response.json()) == sorted([own["id"], other["id"]])

        response = await async_client.get(f"{BASE}/", headers=auth(participant_token))
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_get_polls_with_stats(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, _ = await create_poll(async_client, test_poll_data, test_events_data)
        _ = await participate(async_client, poll["id"], "bob", name="Bob")

        response = await async_client.get(
            f"{BASE}/",
            params={"stats": "true"},
            headers=auth(test_poll_data["admin_token"]),
        )

        [data] = response.json()
        assert data["events"] == 3
        assert data["participants"] == 1


class TestEvents:

    @pytest.mark.asyncio
    async def test_post_events_requires_admin(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, _ = await create_poll(async_client, test_poll_data)

        response = await async_client.post(
            f"{BASE}/{poll['id']}/events", json=test_events_data, headers=auth("wrong")
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_post_events_end_before_start(
        self, async_client: AsyncClient, test_poll_data
    ):
        poll, _ = await create_poll(async_client, test_poll_data)

        response = await async_client.post(
            f"{BASE}/{poll['id']}/events",
            json=[{"start": "2030-05-01T18:00:00Z", "end": "2030-05-01T17:00:00Z"}],
            headers=auth(test_poll_data["admin_token"]),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_post_events_too_many(self, async_client: AsyncClient, test_poll_data):
        poll, _ = await create_poll(async_client, test_poll_data)
        events = [
            {"start": f"2030-05-{day:02d}T18:00:00Z", "end": f"2030-05-{day:02d}T19:00:00Z"}
            for day in range(1, 22)
        ]

        response = await async_client.post(
            f"{BASE}/{poll['id']}/events",
            json=events,
            headers=auth(test_poll_data["admin_token"]),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "at most" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_post_events_repeated_id(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)

        response = await async_client.post(
            f"{BASE}/{poll['id']}/events",
            json=[events[0], events[0]],
            headers=auth(test_poll_data["admin_token"]),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "more than once" in response.json()["detail"]

        response = await async_client.get(f"{BASE}/{poll['id']}/events")
        assert response.json() == events

    @pytest.mark.asyncio
    async def test_reconcile_events(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)
        participant = await participate(
            async_client,
            poll["id"],
            "alice",
            participation=[events[0]["id"], events[1]["id"]],
        )

        moved = {**events[0], "start": "2030-05-01T20:00:00Z", "end": "2030-05-01T21:00:00Z"}
        response = await async_client.post(
            f"{BASE}/{poll['id']}/events",
            json=[moved, events[1]],
            headers=auth(test_poll_data["admin_token"]),
        )

        assert response.status_code == status.HTTP_200_OK
        assert [e["id"] for e in response.json()] == [events[0]["id"], events[1]["id"]]

        response = await async_client.get(
            f"{BASE}/{poll['id']}/participate", headers=auth("alice")
        )
        [alice] = response.json()
        assert alice["id"] == participant["id"]
        assert [e["id"] for e in alice["participation"]] == [events[1]["id"]]


class TestParticipation:

    @pytest.mark.asyncio
    async def test_participate(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)

        data = await participate(
            async_client,
            poll["id"],
            "alice",
            mail="alice@example.com",
            participation=[events[0]["id"]],
            indeterminate_participation=[events[2]["id"]],
        )

        assert data["poll_id"] == poll["id"]
        assert data["token"] == "alice"
        assert [e["id"] for e in data["participation"]] == [events[0]["id"]]
        assert [e["id"] for e in data["indeterminate_participation"]] == [events[2]["id"]]

    @pytest.mark.asyncio
    async def test_participate_sends_mails(
        self, async_client: AsyncClient, outbox, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)

        _ = await participate(
            async_client,
            poll["id"],
            "alice",
            mail="alice@example.com",
            participation=[events[0]["id"]],
        )
        await notification_tasks.flush()

        assert sorted(mail["to_email"] for mail in outbox.sent) == [
            "admin@example.com",
            "alice@example.com",
        ]

    @pytest.mark.asyncio
    async def test_participate_with_foreign_event(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, _ = await create_poll(async_client, test_poll_data, test_events_data)
        other, other_events = await create_poll(
            async_client, test_poll_data, test_events_data
        )

        response = await async_client.post(
            f"{BASE}/{poll['id']}/participate",
            json={"name": "Alice", "token": "alice", "participation": [other_events[0]["id"]]},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_participate_nonexistent_poll(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{BASE}/999/participate", json={"name": "Alice", "token": "alice"}
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_participants_are_redacted(
        self, async_client: AsyncClient, test_poll_data
    ):
        poll, _ = await create_poll(async_client, test_poll_data)
        _ = await participate(
            async_client, poll["id"], "alice", mail="alice@example.com"
        )

        response = await async_client.get(f"{BASE}/{poll['id']}/participate")
        [anonymous] = response.json()
        assert anonymous["name"] == "Alice"
        assert anonymous["token"] is None
        assert anonymous["mail"] is None

        response = await async_client.get(
            f"{BASE}/{poll['id']}/participate",
            headers=auth(test_poll_data["admin_token"]),
        )
        [as_admin] = response.json()
        assert as_admin["mail"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_edit_participation(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)
        participant = await participate(async_client, poll["id"], "alice")
        url = f"{BASE}/{poll['id']}/participate/{participant['id']}"
        body = {"name": "Alice B.", "token": "alice", "participation": [events[1]["id"]]}

        response = await async_client.put(url, json=body, headers=auth("mallory"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await async_client.put(url, json=body, headers=auth("alice"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Alice B."
        assert [e["id"] for e in response.json()["participation"]] == [events[1]["id"]]

        response = await async_client.put(
            url,
            json={**body, "name": "Alice (by admin)"},
            headers=auth(test_poll_data["admin_token"]),
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Alice (by admin)"

    @pytest.mark.asyncio
    async def test_edit_participation_of_other_poll(
        self, async_client: AsyncClient, test_poll_data
    ):
        poll, _ = await create_poll(async_client, test_poll_data)
        other, _ = await create_poll(async_client, test_poll_data)
        participant = await participate(async_client, poll["id"], "alice")

        response = await async_client.put(
            f"{BASE}/{other['id']}/participate/{participant['id']}",
            json={"name": "Mallory", "token": "alice"},
            headers=auth("alice"),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_participation(self, async_client: AsyncClient, test_poll_data):
        poll, _ = await create_poll(async_client, test_poll_data)
        participant = await participate(async_client, poll["id"], "alice")
        url = f"{BASE}/{poll['id']}/participate/{participant['id']}"

        response = await async_client.delete(url)
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await async_client.delete(url, headers=auth("alice"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == participant["id"]

        response = await async_client.get(f"{BASE}/{poll['id']}/participate")
        assert response.json() == []

        response = await async_client.delete(url, headers=auth("alice"))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_set_mail(self, async_client: AsyncClient, test_poll_data):
        first, _ = await create_poll(async_client, test_poll_data)
        second, _ = await create_poll(async_client, test_poll_data)
        for poll in (first, second):
            _ = await participate(async_client, poll["id"], "alice")

        response = await async_client.put(
            f"{BASE}/mail/participate",
            json={"token": "alice", "mail": "alice@example.com"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"updated": 2}

        response = await async_client.get(
            f"{BASE}/{second['id']}/participate", headers=auth("alice")
        )
        assert response.json()[0]["mail"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_set_mail_invalid_address(self, async_client: AsyncClient):
        response = await async_client.put(
            f"{BASE}/mail/participate", json={"token": "alice", "mail": "nope"}
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestBooking:

    @pytest.mark.asyncio
    async def test_book_events(
        self, async_client: AsyncClient, outbox, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)
        _ = await participate(
            async_client,
            poll["id"],
            "alice",
            mail="alice@example.com",
            participation=[events[1]["id"]],
        )
        await notification_tasks.flush()
        outbox.sent.clear()

        response = await async_client.put(
            f"{BASE}/{poll['id']}/book",
            json=[events[1]["id"], events[0]["id"]],
            headers=auth(test_poll_data["admin_token"]),
        )

        assert response.status_code == status.HTTP_200_OK
        assert [e["id"] for e in response.json()["booked_events"]] == [
            events[0]["id"],
            events[1]["id"],
        ]

        await notification_tasks.flush()
        [mail] = outbox.sent
        assert mail["to_email"] == "alice@example.com"
        assert mail["subject"] == "Poll booked"
        assert " *</li>" in mail["html_content"]

        response = await async_client.get(f"{BASE}/{poll['id']}")
        assert len(response.json()["booked_events"]) == 2

    @pytest.mark.asyncio
    async def test_book_events_requires_admin(
        self, async_client: AsyncClient, test_poll_data, test_events_data
    ):
        poll, events = await create_poll(async_client, test_poll_data, test_events_data)

        response = await async_client.put(
            f"{BASE}/{poll['id']}/book",
            json=[events[0]["id"]],
            headers=auth("alice"),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
