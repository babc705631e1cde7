"""
Article endpoint tests: role gating, the public and admin feeds, slug
generation, publish transitions and view counting over HTTP.
"""
import re

import pytest
from httpx import AsyncClient

from newsdesk.models import Article, Category, User


async def _create(client: AsyncClient, headers: dict, category: Category, **overrides) -> dict:
    payload = {
        "title": "Test Article",
        "content": "Body text",
        "category_id": category.id,
        "is_published": True,
    }
    payload.update(overrides)
    resp = await client.post("/api/v1/articles", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


# ---------------------------------------------------------------------------
# Infrastructure / health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert resp.headers["x-request-id"]
    assert "x-response-time-ms" in resp.headers


@pytest.mark.asyncio
async def test_request_id_is_echoed(async_client: AsyncClient):
    resp = await async_client.get("/health", headers={"X-Request-ID": "abc123"})
    assert resp.headers["x-request-id"] == "abc123"


# ---------------------------------------------------------------------------
# Role gate
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_requires_authentication(async_client: AsyncClient, category: Category):
    resp = await async_client.post("/api/v1/articles", json={
        "title": "Anon", "content": "x", "category_id": category.id,
    })
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Not authenticated"


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(async_client: AsyncClient):
    resp = await async_client.get(
        "/api/v1/articles/admin", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_admin_and_owner_can_create(
    async_client: AsyncClient, category: Category, admin_headers: dict, owner_headers: dict
):
    by_admin = await _create(async_client, admin_headers, category, title="By Admin")
    by_owner = await _create(async_client, owner_headers, category, title="By Owner")
    assert by_admin["author_name"] == "Editor"
    assert by_owner["author_name"] == "Owner"


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article_response_envelope(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    resp = await async_client.post("/api/v1/articles", json={
        "title": "Šta je novo?",
        "content": "Sadržaj",
        "summary": "Kratko",
        "category_id": category.id,
    }, headers=admin_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Article created"
    article = body["data"]
    assert article["slug"] == "sta-je-novo"
    assert article["summary"] == "Kratko"
    assert article["category_slug"] == "vijesti"
    # Articles are published unless stated otherwise.
    assert article["is_published"] is True
    assert article["published_at"] is not None
    assert article["view_count"] == 0
    assert article["images"] == []


@pytest.mark.asyncio
async def test_create_with_unknown_category_is_rejected(
    async_client: AsyncClient, admin_headers: dict
):
    resp = await async_client.post("/api/v1/articles", json={
        "title": "Orphan", "content": "x", "category_id": 999,
    }, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Category not found", "data": None}


@pytest.mark.asyncio
async def test_duplicate_title_gets_random_suffix(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    first = await _create(async_client, admin_headers, category, title="vijesti")
    second = await _create(async_client, admin_headers, category, title="Vijesti")
    assert first["slug"] == "vijesti"
    assert re.fullmatch(r"vijesti-[0-9a-f]{8}", second["slug"])


@pytest.mark.asyncio
async def test_longest_duplicate_title_still_fits_slug_column(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    limit = Article.__table__.c.slug.type.length
    title = "a" * 500

    first = await _create(async_client, admin_headers, category, title=title)
    second = await _create(async_client, admin_headers, category, title=title)

    assert first["slug"] == "a" * limit
    assert len(second["slug"]) <= limit
    assert re.fullmatch(r"a+-[0-9a-f]{8}", second["slug"])


@pytest.mark.asyncio
async def test_missing_fields_return_422_envelope(async_client: AsyncClient, admin_headers: dict):
    resp = await async_client.post("/api/v1/articles", json={"title": "x"}, headers=admin_headers)
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert "content" in body["message"]


# ---------------------------------------------------------------------------
# Publish workflow
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_first_publish_date_survives_unpublish_and_republish(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    draft = await _create(async_client, admin_headers, category, is_published=False)
    assert draft["published_at"] is None
    url = f"/api/v1/articles/{draft['id']}"

    published = (await async_client.put(url, json={"is_published": True}, headers=admin_headers)).json()["data"]
    first_published_at = published["published_at"]
    assert first_published_at is not None

    unpublished = (await async_client.put(url, json={"is_published": False}, headers=admin_headers)).json()["data"]
    assert unpublished["is_published"] is False
    assert unpublished["published_at"] == first_published_at

    republished = (await async_client.put(url, json={"is_published": True}, headers=admin_headers)).json()["data"]
    assert republished["is_published"] is True
    assert republished["published_at"] == first_published_at


@pytest.mark.asyncio
async def test_update_keeps_slug_and_stamps_updated_at(
    async_client: AsyncClient, category: Category, other_category: Category, admin_headers: dict
):
    article = await _create(async_client, admin_headers, category, title="Original Title")
    resp = await async_client.put(f"/api/v1/articles/{article['id']}", json={
        "title": "Renamed",
        "category_id": other_category.id,
    }, headers=admin_headers)
    assert resp.status_code == 200
    updated = resp.json()["data"]
    assert updated["title"] == "Renamed"
    assert updated["slug"] == "original-title"
    assert updated["category_slug"] == "sport"
    assert updated["content"] == "Body text"
    assert updated["updated_at"] >= article["updated_at"]


@pytest.mark.asyncio
async def test_update_with_unknown_category_is_rejected(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    article = await _create(async_client, admin_headers, category)
    resp = await async_client.put(
        f"/api/v1/articles/{article['id']}", json={"category_id": 404}, headers=admin_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_missing_article(async_client: AsyncClient, admin_headers: dict):
    resp = await async_client.put("/api/v1/articles/999", json={"title": "x"}, headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Article not found"


# ---------------------------------------------------------------------------
# Public feed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_public_feed_hides_drafts(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    await _create(async_client, admin_headers, category, title="Live")
    await _create(async_client, admin_headers, category, title="Hidden", is_published=False)

    resp = await async_client.get("/api/v1/articles")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["total_count"] == 1
    assert [a["title"] for a in body["data"]] == ["Live"]


@pytest.mark.asyncio
async def test_public_feed_newest_publication_first_and_paginated(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    for i in range(5):
        await _create(async_client, admin_headers, category, title=f"Story {i}")

    resp = await async_client.get("/api/v1/articles", params={"page": 1, "page_size": 2})
    body = resp.json()
    assert body["page"] == 1
    assert body["page_size"] == 2
    assert body["total_count"] == 5
    assert body["total_pages"] == 3
    assert [a["title"] for a in body["data"]] == ["Story 4", "Story 3"]

    last = (await async_client.get("/api/v1/articles", params={"page": 3, "page_size": 2})).json()
    assert [a["title"] for a in last["data"]] == ["Story 0"]


@pytest.mark.asyncio
async def test_public_feed_filters_by_category_and_search(
    async_client: AsyncClient, category: Category, other_category: Category, admin_headers: dict
):
    await _create(async_client, admin_headers, category, title="Izbori u gradu", content="politika")
    await _create(async_client, admin_headers, other_category, title="Derbi", content="Fudbal u gradu")

    by_category = (await async_client.get("/api/v1/articles", params={"category": "sport"})).json()
    assert [a["title"] for a in by_category["data"]] == ["Derbi"]

    by_search = (await async_client.get("/api/v1/articles", params={"search": "GRADU"})).json()
    assert by_search["total_count"] == 2

    both = (await async_client.get(
        "/api/v1/articles", params={"search": "gradu", "category": "vijesti"}
    )).json()
    assert [a["title"] for a in both["data"]] == ["Izbori u gradu"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    await _create(async_client, admin_headers, category, title="Popust 100% na sve")
    await _create(async_client, admin_headers, category, title="Popust 1000 KM")
    await _create(async_client, admin_headers, category, title="snake_case vodic")
    await _create(async_client, admin_headers, category, title="snakeXcase vodic")

    percent = (await async_client.get("/api/v1/articles", params={"search": "100%"})).json()
    assert [a["title"] for a in percent["data"]] == ["Popust 100% na sve"]

    underscore = (await async_client.get("/api/v1/articles", params={"search": "e_c"})).json()
    assert [a["title"] for a in underscore["data"]] == ["snake_case vodic"]


@pytest.mark.asyncio
async def test_page_size_is_capped(async_client: AsyncClient):
    body = (await async_client.get("/api/v1/articles", params={"page_size": 1000})).json()
    assert body["page_size"] == 100


# ---------------------------------------------------------------------------
# Admin feed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_feed_requires_staff(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles/admin")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_feed_lists_all_statuses_and_filters(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    await _create(async_client, admin_headers, category, title="Published one")
    await _create(async_client, admin_headers, category, title="Draft one", is_published=False)

    everything = (await async_client.get("/api/v1/articles/admin", headers=admin_headers)).json()
    assert everything["total_count"] == 2
    assert everything["page_size"] == 20
    # Never-published draft sorts by its creation time, i.e. newest here.
    assert [a["title"] for a in everything["data"]] == ["Draft one", "Published one"]

    drafts = (await async_client.get(
        "/api/v1/articles/admin", params={"is_published": False}, headers=admin_headers
    )).json()
    assert [a["title"] for a in drafts["data"]] == ["Draft one"]
    assert drafts["data"][0]["published_at"] is None


# ---------------------------------------------------------------------------
# Detail
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_by_slug_counts_views(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    article = await _create(async_client, admin_headers, category, title="Popular")

    first = (await async_client.get("/api/v1/articles/slug/popular")).json()["data"]
    second = (await async_client.get("/api/v1/articles/slug/popular")).json()["data"]
    assert first["view_count"] == 1
    assert second["view_count"] == 2

    # The admin view does not count as a read.
    admin_view = (await async_client.get(
        f"/api/v1/articles/{article['id']}", headers=admin_headers
    )).json()["data"]
    assert admin_view["view_count"] == 2


@pytest.mark.asyncio
async def test_get_by_slug_hides_drafts(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    await _create(async_client, admin_headers, category, title="Secret", is_published=False)
    resp = await async_client.get("/api/v1/articles/slug/secret")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_get_by_id_includes_drafts(
    async_client: AsyncClient, category: Category, admin_headers: dict
):
    draft = await _create(async_client, admin_headers, category, is_published=False)
    resp = await async_client.get(f"/api/v1/articles/{draft['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["is_published"] is False


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_article_cascades_images(
    async_client: AsyncClient, category: Category, admin_headers: dict, reset_image_store
):
    article = await _create(async_client, admin_headers, category)
    for name in ("a.jpg", "b.png"):
        resp = await async_client.post(
            f"/api/v1/images/upload/{article['id']}",
            files={"file": (name, b"\x89PNG data", "image/png")},
            headers=admin_headers,
        )
        assert resp.status_code == 200
    image_ids = [
        i["id"] for i in (await async_client.get(
            f"/api/v1/articles/{article['id']}", headers=admin_headers
        )).json()["data"]["images"]
    ]

    resp = await async_client.delete(f"/api/v1/articles/{article['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Article deleted", "data": None}

    resp = await async_client.get(f"/api/v1/articles/{article['id']}", headers=admin_headers)
    assert resp.status_code == 404
    for image_id in image_ids:
        resp = await async_client.put(f"/api/v1/images/{image_id}/set-primary", headers=admin_headers)
        assert resp.status_code == 404
    assert len(reset_image_store.deleted) == 2


@pytest.mark.asyncio
async def test_delete_missing_article(async_client: AsyncClient, admin_headers: dict):
    resp = await async_client.delete("/api/v1/articles/12345", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_deactivated_user_loses_access(
    async_client: AsyncClient, db_session, admin: User, admin_headers: dict
):
    admin.is_active = False
    await db_session.commit()
    resp = await async_client.get("/api/v1/articles/admin", headers=admin_headers)
    assert resp.status_code == 403
