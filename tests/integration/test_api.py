"""Integration tests for the HTTP API against a seeded demo realm."""

import pytest
from fastapi.testclient import TestClient

from hearthstead.api.app import create_app
from hearthstead.api.runtime import ApiState
from hearthstead.config import Settings

KING_ID = 1
BARON_ID = 2
TOWN = {"location_type": "town", "location_id": 1, "kingdom_id": 1}


@pytest.fixture
def client(tmp_path):
    """Create a test client over a freshly seeded database."""

    def factory() -> ApiState:
        settings = Settings(
            database_url=f"sqlite:///{tmp_path / 'realm.db'}",
            seed_demo_data=True,
        )
        return ApiState(settings=settings)

    with TestClient(create_app(state_factory=factory)) as test_client:
        yield test_client


def _player(client, username, **fields):
    response = client.post("/players", json={"username": username, **fields})
    assert response.status_code == 201
    return response.json()["id"]


def _act(client, kind, action, /, **params):
    return client.post(f"/actions/{kind}/{action}", json={"params": params})


def test_seeded_rulers(client):
    players = client.get("/players").json()

    assert [p["username"] for p in players] == ["king_aldric", "baron_hollis"]
    assert players[0]["ruled_kingdom_id"] == 1
    assert client.get(f"/players/{KING_ID}/permissions").json()["hold_high_office"] is True


def test_charter_from_petition_to_founding(client):
    founder = _player(client, "founder", gold=2_000_000, **TOWN)

    response = _act(client, "charter", "create", founder_id=founder, name="Oakford",
                    charter_type="village")
    assert response.status_code == 200
    charter_id = response.json()["subject_id"]
    assert _act(client, "charter", "submit", founder_id=founder,
                charter_id=charter_id).status_code == 200

    response = _act(client, "charter", "approve", king_id=KING_ID, charter_id=charter_id)
    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == "requirement"

    for index in range(9):
        signer = _player(client, f"signer{index}", **TOWN)
        assert _act(client, "charter", "sign", player_id=signer,
                    charter_id=charter_id).status_code == 200

    assert _act(client, "charter", "approve", king_id=KING_ID,
                charter_id=charter_id).status_code == 200
    assert _act(client, "charter", "found", founder_id=founder,
                charter_id=charter_id).status_code == 200

    charter = client.get(f"/charters/{charter_id}").json()
    assert charter["status"] == "active"
    assert charter["vulnerability_ends_at"] is not None
    assert client.get(f"/players/{founder}").json()["gold"] == 1_000_000

    response = _act(client, "charter", "cancel", founder_id=founder, charter_id=charter_id)
    assert response.status_code == 409


def test_manumission_through_the_baron(client):
    serf = _player(client, "serf", gold=6_000, kingdom_id=1)
    assert _act(client, "player", "enserf", player_id=serf, barony_id=1,
                reason="debt").status_code == 200
    assert client.get(f"/players/{serf}/permissions").json()["vote"] is False

    response = _act(client, "player", "request_manumission", serf_id=serf,
                    request_type="purchase")
    assert response.status_code == 200
    request_id = response.json()["subject_id"]

    response = _act(client, "class_request", "approve", approver_id=KING_ID,
                    request_id=request_id)
    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == "permission"

    response = _act(client, "class_request", "approve", approver_id=BARON_ID,
                    request_id=request_id)
    assert response.status_code == 200
    assert response.json()["detail"]["status"] == "active"

    freed = client.get(f"/players/{serf}").json()
    assert freed["social_class"] == "freeman"
    assert freed["gold"] == 1_000
    assert client.get(f"/players/{BARON_ID}").json()["gold"] == 505_000


def test_town_guild_and_business(client):
    smith = _player(client, "smith", gold=100_000, skills={"smithing": 15}, **TOWN)
    apprentice = _player(client, "apprentice", gold=5_000, skills={"smithing": 2}, **TOWN)

    response = _act(client, "guild", "create", founder_id=smith, name="Ironhands",
                    skill="smithing")
    assert response.status_code == 200
    guild_id = response.json()["subject_id"]
    response = client.post("/checks/guild/join",
                           json={"params": {"player_id": apprentice, "guild_id": guild_id}})
    assert response.json()["can_proceed"] is True
    assert _act(client, "guild", "join", player_id=apprentice,
                guild_id=guild_id).status_code == 200

    guild = client.get(f"/guilds/{guild_id}").json()
    assert guild["treasury"] == 1_000
    assert {m["rank"] for m in guild["members"]} == {"guildmaster", "apprentice"}

    response = _act(client, "business", "establish", owner_id=smith, type_key="smithy",
                    name="Anvil & Sons")
    assert response.status_code == 200
    business_id = response.json()["subject_id"]
    assert _act(client, "business", "hire", owner_id=smith, business_id=business_id,
                npc_id=1).status_code == 200

    businesses = client.get(f"/players/{smith}/businesses").json()
    assert [b["name"] for b in businesses] == ["Anvil & Sons"]
    assert [e["name"] for e in businesses[0]["employees"]] == ["Wat"]


def test_cult_membership(client):
    prophet = _player(client, "prophet", gold=1_000)
    seeker = _player(client, "seeker", gold=1_000)

    response = _act(client, "religion", "found_cult", founder_id=prophet, name="Embers",
                    beliefs=["mysticism"])
    assert response.status_code == 200
    religion_id = response.json()["subject_id"]

    response = _act(client, "religion", "join", player_id=seeker, religion_id=religion_id)
    assert response.status_code == 400
    assert _act(client, "religion", "join", player_id=seeker, religion_id=religion_id,
                invited_by=prophet).status_code == 200

    response = _act(client, "religion", "perform_action", player_id=seeker,
                    religion_id=religion_id, action="ritual")
    assert response.json()["detail"]["earned"] == 6

    religion = client.get(f"/religions/{religion_id}").json()
    assert religion["modifiers"] == {"ritual_devotion_bonus": 25}
    assert len(religion["members"]) == 2
    assert client.get("/religions/999").status_code == 404
