"""End-to-end smoke tests for the StaticWiki application.

Exercises the web layer against a fresh in-memory state per test: view
routing, the capability gate, the editor API, and export/import.
"""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import staticwiki.main
from staticwiki.core.gate import CapabilityGate


@pytest.fixture
def wiki_state(monkeypatch):
    """Fresh application state installed on the app, as the lifespan does."""
    fresh = staticwiki.main.create_state()
    monkeypatch.setattr(staticwiki.main.app.state, "wiki", fresh, raising=False)
    return fresh


@pytest.fixture
def unlocked(wiki_state):
    wiki_state.gate = CapabilityGate(unlocked=True)
    return wiki_state


@pytest_asyncio.fixture()
async def client(wiki_state):
    """Async HTTP client wired to the app (no lifespan)."""
    transport = ASGITransport(app=staticwiki.main.app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def trigger(resp) -> dict:
    return json.loads(resp.headers["HX-Trigger"])


async def view(client, fragment, **params):
    return await client.get("/view", params={"fragment": fragment, **params})


# ============================================================
# Shell and views
# ============================================================


class TestViews:
    @pytest.mark.asyncio
    async def test_shell(self, client):
        resp = await client.get("/")
        assert resp.status_code == 200
        assert 'id="view"' in resp.text
        assert "/static/app.js" in resp.text

    @pytest.mark.asyncio
    async def test_static_script_served(self, client):
        resp = await client.get("/static/app.js")
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_empty_home(self, client):
        resp = await view(client, "#/")
        assert resp.status_code == 200
        assert "No articles yet" in resp.text

    @pytest.mark.asyncio
    async def test_home_lists_and_searches(self, client, wiki_state):
        wiki_state.repository.create("Python Guide", "")
        wiki_state.repository.create("Cooking", "")
        resp = await view(client, "#/")
        assert "Python Guide" in resp.text
        assert "Cooking" in resp.text

        resp = await view(client, "#/", q="python")
        assert "Python Guide" in resp.text
        assert "Cooking" not in resp.text

        resp = await view(client, "#/", q="zzz")
        assert "Nothing found" in resp.text

    @pytest.mark.asyncio
    async def test_article_view(self, client, wiki_state):
        wiki_state.repository.create("Target", "")
        wiki_state.repository.create(
            "Foo Bar",
            '<h2>Intro</h2><p>Body</p>'
            '<a data-article-title="Target" href="#/Target">t</a>'
            '<a data-article-title="Ghost" href="#/Ghost">g</a>',
        )
        resp = await view(client, "#/Foo%20Bar")
        assert resp.status_code == 200
        assert "Foo Bar" in resp.text
        assert '<h2 id="intro">' in resp.text
        assert 'data-scroll="intro"' in resp.text
        assert 'class="wiki-link wiki-link-missing"' in resp.text
        assert wiki_state.current_article_id is not None

    @pytest.mark.asyncio
    async def test_article_not_found(self, client):
        resp = await view(client, "#/Nobody%20Here")
        assert resp.status_code == 200
        assert "Article not found" in resp.text
        assert "Nobody Here" in resp.text

    @pytest.mark.asyncio
    async def test_about(self, client):
        resp = await view(client, "#/about")
        assert resp.status_code == 200
        assert "About this wiki" in resp.text

    @pytest.mark.asyncio
    async def test_random_empty_redirects_home(self, client):
        resp = await view(client, "#/random")
        assert resp.status_code == 204
        events = trigger(resp)
        assert events["navigate"]["fragment"] == "#/"
        assert events["showToast"]["message"]

    @pytest.mark.asyncio
    async def test_random_redirects_to_article(self, client, wiki_state):
        wiki_state.repository.create("Lonely", "")
        resp = await view(client, "#/random")
        assert resp.status_code == 204
        assert trigger(resp) == {"navigate": {"fragment": "#/Lonely"}}


# ============================================================
# Capability gate
# ============================================================


class TestGate:
    @pytest.mark.asyncio
    async def test_edit_locked_redirects_home(self, client):
        resp = await view(client, "#/edit")
        assert resp.status_code == 204
        events = trigger(resp)
        assert events["navigate"]["fragment"] == "#/"
        assert "showToast" in events

    @pytest.mark.asyncio
    async def test_taps_unlock_editor(self, client):
        for _ in range(9):
            body = (await client.post("/api/gate/tap")).json()
            assert body["unlocked"] is False
        body = (await client.post("/api/gate/tap")).json()
        assert body["unlocked"] is True
        assert body["message"]

        resp = await view(client, "#/edit")
        assert resp.status_code == 200
        assert "New article" in resp.text

    @pytest.mark.asyncio
    async def test_save_requires_unlock(self, client, wiki_state):
        resp = await client.post("/api/editor/save", data={"title": "X", "content": ""})
        assert resp.status_code == 403
        assert len(wiki_state.repository) == 0

    @pytest.mark.asyncio
    async def test_export_requires_unlock(self, client):
        resp = await client.get("/api/export")
        assert resp.status_code == 403


# ============================================================
# Editor API
# ============================================================


class TestEditor:
    @pytest.mark.asyncio
    async def test_create_and_view(self, client, unlocked):
        await view(client, "#/edit")
        resp = await client.post(
            "/api/editor/save",
            data={"title": "  My   Page ", "content": "<p>Hello</p><script>bad()</script>"},
        )
        assert resp.status_code == 200
        assert resp.json()["navigate"] == "#/My%20Page"

        resp = await view(client, "#/My%20Page")
        assert "<p>Hello</p>" in resp.text
        assert "bad()" not in resp.text

    @pytest.mark.asyncio
    async def test_edit_existing(self, client, unlocked):
        article = unlocked.repository.create("Foo", "<p>old</p>")
        resp = await view(client, "#/edit/Foo")
        assert resp.status_code == 200
        assert "Edit article" in resp.text
        assert "&lt;p&gt;old&lt;/p&gt;" in resp.text

        resp = await client.post("/api/editor/save", data={"title": "Foo", "content": "<p>new</p>"})
        assert resp.status_code == 200
        assert len(unlocked.repository) == 1
        assert unlocked.repository.find_by_id(article.id).content == "<p>new</p>"

    @pytest.mark.asyncio
    async def test_blank_title(self, client, unlocked):
        await view(client, "#/edit")
        resp = await client.post("/api/editor/save", data={"title": "  ", "content": "<p>x</p>"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "EmptyTitle"
        assert len(unlocked.repository) == 0

    @pytest.mark.asyncio
    async def test_duplicate_title(self, client, unlocked):
        unlocked.repository.create("Taken", "")
        await view(client, "#/edit")
        resp = await client.post("/api/editor/save", data={"title": "Taken", "content": ""})
        assert resp.status_code == 422
        assert resp.json()["error"] == "DuplicateTitle"
        assert len(unlocked.repository) == 1

    @pytest.mark.asyncio
    async def test_cancel(self, client, unlocked):
        unlocked.repository.create("Foo", "<p>old</p>")
        await view(client, "#/edit/Foo")
        resp = await client.post("/api/editor/cancel")
        assert resp.json() == {"navigate": "#/Foo"}

    @pytest.mark.asyncio
    async def test_command(self, client, unlocked):
        resp = await client.post(
            "/api/editor/command",
            data={"token": "bold", "content": "<p>Hello world</p>", "start": "9", "end": "14"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["changed"] is True
        assert body["content"] == "<p>Hello <b>world</b></p>"
        assert body["selection"] == {"start": 21, "end": 21}

    @pytest.mark.asyncio
    async def test_command_offsets_are_code_points(self, client, unlocked):
        resp = await client.post(
            "/api/editor/command",
            data={"token": "bold", "content": "\U0001F600<p>hi</p>", "start": "4", "end": "6"},
        )
        body = resp.json()
        assert body["content"] == "\U0001F600<p><b>hi</b></p>"
        assert body["selection"] == {"start": 13, "end": 13}

    @pytest.mark.asyncio
    async def test_image_url_command_with_caption(self, client, unlocked):
        resp = await client.post(
            "/api/editor/command",
            data={
                "token": "insertImage",
                "value": "https://example.org/cat.png",
                "caption": "Cat",
                "content": "<p></p>",
                "start": "7",
                "end": "7",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["content"] == (
            '<p></p><figure><img alt="Cat" src="https://example.org/cat.png"/>'
            "<figcaption>Cat</figcaption></figure>"
        )

    @pytest.mark.asyncio
    async def test_editor_offers_existing_titles(self, client, unlocked):
        unlocked.repository.create("Zeta", "")
        unlocked.repository.create("Alpha", "")
        resp = await view(client, "#/edit")
        assert "Available: Alpha, Zeta" in resp.text
        assert 'data-cmd="insertImage"' in resp.text

    @pytest.mark.asyncio
    async def test_unknown_command(self, client, unlocked):
        resp = await client.post("/api/editor/command", data={"token": "explode"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "UnknownCommand"

    @pytest.mark.asyncio
    async def test_image_upload(self, client, unlocked):
        resp = await client.post(
            "/api/editor/image",
            data={"caption": "Cat", "content": "<p></p>", "start": "7", "end": "7"},
            files={"file": ("cat.png", b"abc", "image/png")},
        )
        assert resp.status_code == 200
        content = resp.json()["content"]
        assert content.startswith("<p></p><figure>")
        assert 'src="data:image/png;base64,YWJj"' in content

    @pytest.mark.asyncio
    async def test_edit_current(self, client, unlocked):
        unlocked.repository.create("Foo Bar", "")
        await view(client, "#/Foo%20Bar")
        resp = await client.get("/api/edit-current")
        assert resp.json() == {"navigate": "#/edit/Foo%20Bar"}


# ============================================================
# Export / import
# ============================================================


class TestSnapshotEndpoints:
    @pytest.mark.asyncio
    async def test_export(self, client, unlocked):
        unlocked.repository.create("Alpha", "<p>a</p>")
        resp = await client.get("/api/export")
        assert resp.status_code == 200
        assert "articles.json" in resp.headers["content-disposition"]
        data = resp.json()
        assert data["version"] == 1
        assert data["exportedAt"]
        assert data["articles"][0]["title"] == "Alpha"

    @pytest.mark.asyncio
    async def test_export_import_round_trip(self, client, unlocked):
        unlocked.repository.create("Alpha", "<p>a</p>")
        unlocked.repository.create("Beta", "<p>b</p>")
        before = unlocked.repository.articles
        exported = (await client.get("/api/export")).content

        unlocked.repository.replace_all([])
        resp = await client.post(
            "/api/import", files={"file": ("articles.json", exported, "application/json")}
        )
        assert resp.status_code == 200
        assert resp.json()["imported"] == 2
        assert unlocked.repository.articles == before

    @pytest.mark.asyncio
    async def test_invalid_import_keeps_state(self, client, wiki_state):
        wiki_state.repository.create("Keep Me", "")
        resp = await client.post(
            "/api/import", files={"file": ("articles.json", b"[1, 2]", "application/json")}
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidFormat"
        assert [a.title for a in wiki_state.repository] == ["Keep Me"]


# ============================================================
# Lifespan
# ============================================================


class TestLifespan:
    @pytest.mark.asyncio
    async def test_lifespan_installs_state(self, tmp_path, monkeypatch):
        source = tmp_path / "articles.json"
        source.write_text(
            json.dumps({"articles": [{"title": "Loaded", "content": "<p>x</p>"}]}),
            encoding="utf-8",
        )
        monkeypatch.setattr(staticwiki.main.settings, "snapshot_source", str(source))
        app = staticwiki.main.app
        monkeypatch.setattr(app.state, "wiki", None, raising=False)
        async with staticwiki.main.lifespan(app):
            state = app.state.wiki
            assert state.loaded_from_source is True
            assert [a.title for a in state.repository] == ["Loaded"]
