"""Tests for the binder API endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from tcgbinder.api.binders import get_workspace_provider
from tcgbinder.main import app
from tcgbinder.models.card import Game
from tcgbinder.services.kv_store import InMemoryKeyValueStore
from tcgbinder.services.workspace import WorkspaceProvider

HEADERS = {"X-User-Id": "user-123"}


@pytest.fixture
def provider(session_factory) -> WorkspaceProvider:
    stores: dict[str, InMemoryKeyValueStore] = {}
    return WorkspaceProvider(
        session_factory,
        kv_factory=lambda owner_id: stores.setdefault(owner_id, InMemoryKeyValueStore()),
        timeout=5.0,
    )


@pytest.fixture
async def client(provider: WorkspaceProvider, seed_catalog):
    """Provide an async test client wired to an in-memory database."""
    await seed_catalog(
        Game.ONE_PIECE,
        [
            {"id": "X1", "name": "Luffy", "rarity": "SR", "set_id": "OP-01"},
            {"id": "X2", "name": "Nami", "rarity": "R", "set_id": "OP-01"},
        ],
    )
    await seed_catalog(Game.POKEMON, [{"id": "base1-4", "name": "Charizard", "hp": 120}])

    app.dependency_overrides[get_workspace_provider] = lambda: provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def create_binder(client: AsyncClient, **body) -> dict:
    response = await client.post("/binders", json={"name": "Straw Hats", **body}, headers=HEADERS)
    assert response.status_code == 201
    return response.json()


class TestAuth:
    async def test_missing_user_header(self, client: AsyncClient) -> None:
        """Requests without X-User-Id are rejected with a failure body."""
        response = await client.get("/binders")

        assert response.status_code == 401
        detail = response.json()["detail"]
        assert detail["kind"] == "not_authenticated"
        assert detail["suggestion"]

    @pytest.mark.parametrize("owner_id", [".", "..", " .. "])
    async def test_dot_user_ids_rejected(self, client: AsyncClient, owner_id: str) -> None:
        """User ids that would name a store directory's root or parent are refused."""
        response = await client.post(
            "/binders", json={"name": "Escape"}, headers={"X-User-Id": owner_id}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["kind"] == "not_authenticated"

    async def test_other_owner_cannot_open(self, client: AsyncClient) -> None:
        binder = await create_binder(client)

        response = await client.get(
            f"/binders/{binder['id']}/cards", headers={"X-User-Id": "intruder"}
        )

        assert response.status_code == 404
        assert response.json()["detail"]["kind"] == "not_found"


class TestBinderCrud:
    async def test_create_and_list(self, client: AsyncClient) -> None:
        created = await create_binder(client, game="one_piece", color="purple")

        response = await client.get("/binders", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert [b["id"] for b in data] == [created["id"]]
        assert data[0]["color"] == "purple"
        assert data[0]["game"] == "one_piece"

    async def test_update_binder(self, client: AsyncClient) -> None:
        binder = await create_binder(client)

        response = await client.patch(
            f"/binders/{binder['id']}",
            json={"name": "Grand Line", "color": "not-a-color"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Grand Line"
        assert response.json()["color"] == "black"

    async def test_delete_binder(self, client: AsyncClient) -> None:
        binder = await create_binder(client)

        response = await client.delete(f"/binders/{binder['id']}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["deleted"] is True
        missing = await client.get(f"/binders/{binder['id']}", headers=HEADERS)
        assert missing.status_code == 404

    async def test_delete_missing_binder(self, client: AsyncClient) -> None:
        response = await client.delete("/binders/nope", headers=HEADERS)

        assert response.status_code == 404

    async def test_clear_all(self, client: AsyncClient) -> None:
        await create_binder(client)
        await create_binder(client)

        response = await client.delete("/binders", headers=HEADERS)

        assert response.status_code == 200
        assert len(response.json()["binder_ids"]) == 2
        assert (await client.get("/binders", headers=HEADERS)).json() == []

    async def test_invalid_game(self, client: AsyncClient) -> None:
        response = await client.post(
            "/binders", json={"name": "B", "game": "magic"}, headers=HEADERS
        )

        assert response.status_code == 422


class TestBinderCards:
    async def test_open_empty_binder(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="pokemon")

        response = await client.get(f"/binders/{binder['id']}/cards", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["game"] == "pokemon"
        assert [s["id"] for s in data["sets"]] == ["PKM-Base", "PKM-Jungle", "PKM-Fossil"]
        assert data["total_entries"] == 0
        assert data["reconciled"] is True

    async def test_add_and_open(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")
        url = f"/binders/{binder['id']}/cards"

        first = await client.post(url, json={"card_id": "X1"}, headers=HEADERS)
        second = await client.post(url, json={"card_id": "X1"}, headers=HEADERS)

        assert first.status_code == 201
        assert second.json()["entries"][0]["instance_id"].endswith("-copy2")

        response = await client.get(url, params={"force_refresh": True}, headers=HEADERS)
        entries = response.json()["sets"][0]["entries"]
        assert [e["name"] for e in entries] == ["Luffy", "Luffy"]
        assert [e["copy_ordinal"] for e in entries] == [1, 2]
        assert all(e["source"] == "binder" for e in entries)

    async def test_second_open_is_not_reconciled(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")
        url = f"/binders/{binder['id']}/cards"

        await client.get(url, headers=HEADERS)
        response = await client.get(url, headers=HEADERS)

        assert response.json()["reconciled"] is False

    async def test_add_unknown_card(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")

        response = await client.post(
            f"/binders/{binder['id']}/cards", json={"card_id": "NOPE"}, headers=HEADERS
        )

        assert response.status_code == 404
        assert response.json()["detail"]["kind"] == "not_found"

    async def test_manual_card(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")

        response = await client.post(
            f"/binders/{binder['id']}/cards/manual",
            json={"card_id": "X2", "set_id": "OP-03"},
            headers=HEADERS,
        )

        assert response.status_code == 201
        (entry,) = response.json()["entries"]
        assert entry["source"] == "manual"
        assert entry["instance_id"] == f"{binder['id']}-Nami-X2-manual-copy1"

    async def test_remove_card(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")
        url = f"/binders/{binder['id']}/cards"
        added = await client.post(url, json={"card_id": "X1"}, headers=HEADERS)
        instance_id = added.json()["entries"][0]["instance_id"]

        response = await client.delete(f"{url}/{instance_id}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["removed"] is True
        again = await client.delete(f"{url}/{instance_id}", headers=HEADERS)
        assert again.status_code == 404

    async def test_switch_game(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")

        response = await client.put(
            f"/binders/{binder['id']}/game", json={"game": "yugioh"}, headers=HEADERS
        )

        assert response.status_code == 200
        assert response.json()["game"] == "yugioh"
        assert response.json()["sets"][0]["id"] == "YGO-LOB"
        stored = await client.get(f"/binders/{binder['id']}", headers=HEADERS)
        assert stored.json()["game"] == "yugioh"

    async def test_open_with_other_game_switches(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")

        response = await client.get(
            f"/binders/{binder['id']}/cards", params={"game": "pokemon"}, headers=HEADERS
        )

        assert response.json()["game"] == "pokemon"

    async def test_set_page(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")

        response = await client.put(
            f"/binders/{binder['id']}/page",
            json={"set_id": "OP-02", "page_index": 3},
            headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["current_set_id"] == "OP-02"
        assert data["sets"][1]["page_cursor"] == 3

    async def test_set_page_unknown_set(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")

        response = await client.put(
            f"/binders/{binder['id']}/page", json={"set_id": "nope"}, headers=HEADERS
        )

        assert response.status_code == 404


class TestNotes:
    async def test_save_and_read_notes(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")
        await client.post(
            f"/binders/{binder['id']}/cards", json={"card_id": "X1"}, headers=HEADERS
        )
        url = f"/binders/{binder['id']}/notes/X1"

        saved = await client.put(url, json={"notes": "Alt art"}, headers=HEADERS)
        read = await client.get(url, headers=HEADERS)

        assert saved.status_code == 200
        assert read.json()["notes"] == "Alt art"

    async def test_notes_on_unowned_card(self, client: AsyncClient) -> None:
        binder = await create_binder(client, game="one_piece")

        response = await client.put(
            f"/binders/{binder['id']}/notes/X2", json={"notes": "x"}, headers=HEADERS
        )

        assert response.status_code == 404
