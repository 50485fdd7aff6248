"""
API endpoint tests for Learning Games Hub
"""
import json

import pytest
from httpx import AsyncClient

from app.core.config import settings
from conftest import build_zip, game_folder, mark_encrypted


QUIZZES = json.dumps([
    {"question": "2+2", "options": ["3", "4"], "answerIndex": 1},
    {"question": "3+3", "options": ["6", "7"], "answerIndex": 0},
])


async def create_game(client: AsyncClient, headers: dict, **fields) -> dict:
    data = {"title": "Counting", "category": "math", "tags": "math, easy", **fields}
    response = await client.post("/api/admin/games", data=data, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def zip_upload(content: bytes, filename: str = "games.zip") -> dict:
    return {"zipFile": (filename, content, "application/zip")}


class TestHealthEndpoint:
    """Tests for the health check endpoint"""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_security_headers(self, client: AsyncClient):
        response = await client.get("/api/health")
        assert "frame-ancestors 'self'" in response.headers["content-security-policy"]


class TestAuthEndpoints:
    """Tests for signup, login and the current user"""

    @pytest.mark.asyncio
    async def test_signup(self, client: AsyncClient, test_user_data: dict):
        response = await client.post("/api/auth/signup", json=test_user_data)
        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["user"]["email"] == test_user_data["email"]
        assert data["user"]["role"] == "user"

    @pytest.mark.asyncio
    async def test_signup_duplicate_email(self, client: AsyncClient, test_user_data: dict):
        await client.post("/api/auth/signup", json=test_user_data)
        response = await client.post("/api/auth/signup", json=test_user_data)
        assert response.status_code == 400
        assert response.json()["detail"] == "User exists"

    @pytest.mark.asyncio
    async def test_signup_invalid_email(self, client: AsyncClient):
        response = await client.post("/api/auth/signup", json={"email": "nope", "password": "secret123"})
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_login(self, client: AsyncClient, test_user_data: dict):
        await client.post("/api/auth/signup", json=test_user_data)
        response = await client.post("/api/auth/login", json=test_user_data)
        assert response.status_code == 200
        assert response.json()["user"]["email"] == test_user_data["email"]

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, test_user_data: dict):
        await client.post("/api/auth/signup", json=test_user_data)
        response = await client.post(
            "/api/auth/login",
            json={"email": test_user_data["email"], "password": "wrongpass"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, user_headers: dict, test_user_data: dict):
        response = await client.get("/api/auth/me", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["email"] == test_user_data["email"]

    @pytest.mark.asyncio
    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_with_bad_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_signup_rate_limited(self, client: AsyncClient):
        statuses = []
        for i in range(6):
            response = await client.post(
                "/api/auth/signup",
                json={"email": f"player{i}@example.com", "password": "secret123"},
            )
            statuses.append(response.status_code)
        assert statuses[:5] == [200] * 5
        assert statuses[5] == 429


class TestGameEndpoints:
    """Tests for browsing and playing games"""

    @pytest.mark.asyncio
    async def test_list_and_filter(self, client: AsyncClient, admin_headers: dict):
        await create_game(client, admin_headers, title="Counting", tags="math, easy")
        await create_game(client, admin_headers, title="Spelling Bee", category="language", tags="words")

        all_games = (await client.get("/api/games")).json()
        assert {g["title"] for g in all_games} == {"Counting", "Spelling Bee"}

        by_tag = (await client.get("/api/games", params={"tag": "math"})).json()
        assert [g["title"] for g in by_tag] == ["Counting"]

        by_category = (await client.get("/api/games", params={"category": "language"})).json()
        assert [g["title"] for g in by_category] == ["Spelling Bee"]

        by_text = (await client.get("/api/games", params={"q": "spell"})).json()
        assert [g["title"] for g in by_text] == ["Spelling Bee"]

        page = (await client.get("/api/games", params={"limit": 1, "page": 2})).json()
        assert len(page) == 1

    @pytest.mark.asyncio
    async def test_detail(self, client: AsyncClient, admin_headers: dict):
        game = await create_game(client, admin_headers, lessonTitle="Adding", lessonContent="Put together", quizzes=QUIZZES)

        response = await client.get(f"/api/games/{game['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["lesson"] == {"title": "Adding", "content": "Put together"}
        assert data["quizzes"][0] == {"question": "2+2", "options": ["3", "4"], "answerIndex": 1}
        assert data["comments"] == []

    @pytest.mark.asyncio
    async def test_detail_not_found(self, client: AsyncClient):
        response = await client.get("/api/games/does-not-exist")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_quiz_scoring(self, client: AsyncClient, admin_headers: dict):
        game = await create_game(client, admin_headers, quizzes=QUIZZES)
        url = f"/api/games/{game['id']}/quiz"

        assert (await client.post(url, json={"answers": [1, 0]})).json() == {"score": 2, "total": 2}
        assert (await client.post(url, json={"answers": [0]})).json() == {"score": 0, "total": 2}
        assert (await client.post(url, json={"answers": []})).json() == {"score": 0, "total": 2}

    @pytest.mark.asyncio
    async def test_rating_latest_wins(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        game = await create_game(client, admin_headers)
        url = f"/api/games/{game['id']}/rate"

        await client.post(url, json={"score": 5}, headers=admin_headers)
        await client.post(url, json={"score": 1}, headers=user_headers)
        response = await client.post(url, json={"score": 3}, headers=user_headers)

        assert response.json() == {"ok": True, "average": 4.0}
        detail = (await client.get(f"/api/games/{game['id']}")).json()
        assert detail["rating_count"] == 2

    @pytest.mark.asyncio
    async def test_rating_out_of_range(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        game = await create_game(client, admin_headers)
        response = await client.post(f"/api/games/{game['id']}/rate", json={"score": 6}, headers=user_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_rating_requires_login(self, client: AsyncClient, admin_headers: dict):
        game = await create_game(client, admin_headers)
        response = await client.post(f"/api/games/{game['id']}/rate", json={"score": 4})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_favorite_toggle(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        game = await create_game(client, admin_headers)
        url = f"/api/games/{game['id']}/favorite"

        assert (await client.post(url, headers=user_headers)).json() == {"favorites": [game["id"]]}
        me = (await client.get("/api/auth/me", headers=user_headers)).json()
        assert me["favorite_ids"] == [game["id"]]
        assert (await client.post(url, headers=user_headers)).json() == {"favorites": []}

    @pytest.mark.asyncio
    async def test_leaderboard_ordering(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        game = await create_game(client, admin_headers)
        url = f"/api/games/{game['id']}/leaderboard"

        for name, score in [("ann", 10), ("bob", 30), ("cid", 20), ("dee", 30)]:
            response = await client.post(url, json={"name": name, "score": score}, headers=user_headers)
            assert response.status_code == 200

        board = response.json()["leaderboard"]
        assert [e["name"] for e in board] == ["bob", "dee", "cid", "ann"]

    @pytest.mark.asyncio
    async def test_leaderboard_capped(self, client: AsyncClient, admin_headers: dict, user_headers: dict, monkeypatch):
        monkeypatch.setattr(settings, "LEADERBOARD_SIZE", 3)
        game = await create_game(client, admin_headers)
        url = f"/api/games/{game['id']}/leaderboard"

        for score in range(5):
            await client.post(url, json={"name": f"p{score}", "score": score}, headers=user_headers)

        detail = (await client.get(f"/api/games/{game['id']}")).json()
        assert [e["score"] for e in detail["leaderboard"]] == [4, 3, 2]


class TestCommentModeration:
    """Comments stay hidden until approved"""

    @pytest.mark.asyncio
    async def test_comment_flow(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        game = await create_game(client, admin_headers)
        detail_url = f"/api/games/{game['id']}"

        response = await client.post(f"{detail_url}/comment", json={"text": "Fun!"}, headers=user_headers)
        assert response.status_code == 200
        assert (await client.get(detail_url)).json()["comments"] == []

        pending = (await client.get("/api/admin/comments", headers=admin_headers)).json()
        assert len(pending) == 1
        assert pending[0]["game_title"] == "Counting"
        assert pending[0]["comment"]["approved"] is False
        comment_id = pending[0]["comment"]["id"]

        response = await client.post(f"/api/admin/comments/{comment_id}/approve", headers=admin_headers)
        assert response.status_code == 200
        comments = (await client.get(detail_url)).json()["comments"]
        assert [c["text"] for c in comments] == ["Fun!"]

        response = await client.delete(f"/api/admin/comments/{comment_id}", headers=admin_headers)
        assert response.status_code == 200
        assert (await client.get(detail_url)).json()["comments"] == []

    @pytest.mark.asyncio
    async def test_unknown_comment(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/admin/comments/missing/approve", headers=admin_headers)
        assert response.status_code == 404


class TestUnlock:
    """Shared-secret game unlock"""

    @pytest.mark.asyncio
    async def test_unlock(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "GAME_SECRET", "open-sesame")
        response = await client.post("/api/unlock", json={"secret": "open-sesame"})
        assert response.status_code == 200
        assert response.json()["token"]
        assert "game_access_token" in response.cookies

    @pytest.mark.asyncio
    async def test_wrong_secret(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "GAME_SECRET", "open-sesame")
        response = await client.post("/api/unlock", json={"secret": "guess"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_no_secret_configured(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "GAME_SECRET", None)
        response = await client.post("/api/unlock", json={"secret": "anything"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_game_token_is_not_a_login(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "GAME_SECRET", "open-sesame")
        token = (await client.post("/api/unlock", json={"secret": "open-sesame"})).json()["token"]
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestAdminGames:
    """Single game upload"""

    @pytest.mark.asyncio
    async def test_create_game(self, client: AsyncClient, admin_headers: dict):
        game = await create_game(client, admin_headers, quizzes=QUIZZES)
        assert game["title"] == "Counting"
        assert game["tags"] == ["math", "easy"]
        assert len(game["quizzes"]) == 2
        assert game["file_path"] == ""

    @pytest.mark.asyncio
    async def test_create_game_with_file(self, client: AsyncClient, admin_headers: dict, storage_root):
        response = await client.post(
            "/api/admin/games",
            data={"title": "Paint"},
            files={"gameFile": ("my game.html", b"<html>paint</html>", "text/html")},
            headers=admin_headers,
        )

        assert response.status_code == 200
        file_path = response.json()["file_path"]
        assert file_path.startswith("/games/files/")
        assert file_path.endswith("_my_game.html")
        assert (storage_root / file_path[len("/games/files/"):]).read_bytes() == b"<html>paint</html>"

    @pytest.mark.asyncio
    async def test_bad_quizzes_json(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/admin/games",
            data={"title": "Broken", "quizzes": "[{oops"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_admin(self, client: AsyncClient, user_headers: dict):
        response = await client.post("/api/admin/games", data={"title": "Nope"}, headers=user_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_list_all(self, client: AsyncClient, admin_headers: dict):
        await create_game(client, admin_headers)
        response = await client.get("/api/admin/games", headers=admin_headers)
        assert response.status_code == 200
        assert len(response.json()) == 1


class TestBulkUpload:
    """Zip import through the admin API"""

    @pytest.mark.asyncio
    async def test_import(self, client: AsyncClient, admin_headers: dict, storage_root):
        archive = build_zip({
            **game_folder("mathgame", title="Add", quizzes=[{"question": "2+2", "options": ["3", "4"], "answerIndex": 1}]),
            **game_folder("reading", title="Read"),
            "broken/metadata.json": b'{"title": ',
        })

        response = await client.post("/api/admin/bulk-upload", files=zip_upload(archive), headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["created"] == 2
        titles = [g["title"] for g in data["items"]]
        assert titles == ["Add", "Read"]
        add = data["items"][0]
        assert add["quizzes"] == [{"question": "2+2", "options": ["3", "4"], "answerIndex": 1}]
        assert add["file_path"].endswith("/index.html")
        assert (storage_root / add["file_path"][len("/games/files/"):]).is_file()

        listed = (await client.get("/api/games")).json()
        assert {g["title"] for g in listed} == {"Add", "Read"}

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, client: AsyncClient, admin_headers: dict, storage_root, tmp_path):
        response = await client.post(
            "/api/admin/bulk-upload",
            files=zip_upload(b"this is not a zip"),
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "archive_corrupt"

        # the rejected archive stays in the incoming area, outside the served files
        assert len(list((tmp_path / "incoming").iterdir())) == 1
        assert list(storage_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_encrypted_archive(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/admin/bulk-upload",
            files=zip_upload(mark_encrypted(build_zip(game_folder("locked")))),
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "archive_corrupt"

    @pytest.mark.asyncio
    async def test_no_file(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/admin/bulk-upload", data={}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "No file"

    @pytest.mark.asyncio
    async def test_upload_name_not_checked(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/admin/bulk-upload",
            files=zip_upload(build_zip(game_folder("one")), "games.bin"),
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["created"] == 1

    @pytest.mark.asyncio
    async def test_too_large(self, client: AsyncClient, admin_headers: dict, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 1)

        response = await client.post(
            "/api/admin/bulk-upload",
            files=zip_upload(b"\0" * (2 * 1024 * 1024)),
            headers=admin_headers,
        )

        assert response.status_code == 413
        assert list((tmp_path / "incoming").iterdir()) == []

    @pytest.mark.asyncio
    async def test_requires_admin(self, client: AsyncClient, user_headers: dict):
        response = await client.post(
            "/api/admin/bulk-upload",
            files=zip_upload(build_zip(game_folder("one"))),
            headers=user_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_requires_login(self, client: AsyncClient):
        response = await client.post("/api/admin/bulk-upload", files=zip_upload(build_zip(game_folder("one"))))
        assert response.status_code == 401


class TestAdminUsers:
    """User management"""

    @pytest.mark.asyncio
    async def test_list_users(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        response = await client.get("/api/admin/users", headers=admin_headers)
        assert response.status_code == 200
        assert {u["email"] for u in response.json()} == {"admin@example.com", "player@example.com"}

    @pytest.mark.asyncio
    async def test_change_role(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        player = (await client.get("/api/auth/me", headers=user_headers)).json()

        response = await client.post(
            f"/api/admin/users/{player['id']}/role",
            json={"role": "admin"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"
        response = await client.get("/api/admin/users", headers=user_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_cannot_demote_self(self, client: AsyncClient, admin_headers: dict):
        admin = (await client.get("/api/auth/me", headers=admin_headers)).json()
        response = await client.post(
            f"/api/admin/users/{admin['id']}/role",
            json={"role": "user"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_role(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        player = (await client.get("/api/auth/me", headers=user_headers)).json()
        response = await client.post(
            f"/api/admin/users/{player['id']}/role",
            json={"role": "superuser"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_user(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        player = (await client.get("/api/auth/me", headers=user_headers)).json()

        response = await client.delete(f"/api/admin/users/{player['id']}", headers=admin_headers)

        assert response.status_code == 200
        users = (await client.get("/api/admin/users", headers=admin_headers)).json()
        assert [u["email"] for u in users] == ["admin@example.com"]
        assert (await client.get("/api/auth/me", headers=user_headers)).status_code == 401

    @pytest.mark.asyncio
    async def test_delete_unknown_user(self, client: AsyncClient, admin_headers: dict):
        response = await client.delete("/api/admin/users/missing", headers=admin_headers)
        assert response.status_code == 404


class TestAnalytics:

    @pytest.mark.asyncio
    async def test_analytics(self, client: AsyncClient, admin_headers: dict, user_headers: dict):
        played = await create_game(client, admin_headers, title="Played")
        await create_game(client, admin_headers, title="Unplayed")
        await client.post(
            f"/api/games/{played['id']}/leaderboard",
            json={"name": "ann", "score": 42},
            headers=user_headers,
        )

        response = await client.get("/api/admin/analytics", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_games"] == 2
        assert data["total_users"] == 2
        assert [g["title"] for g in data["top_games"]] == ["Played"]
        assert data["top_games"][0]["top_score"] == 42
