"""Tests for job posting, feeds, detail and completion."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from tests.conftest import make_job_data, place_bid, post_job, register, signed


@pytest.mark.asyncio
async def test_create_job(client: AsyncClient) -> None:
    owner = await register(client, "client")
    job = await post_job(client, owner)
    assert job["status"] == "Open"
    assert job["owner_id"] == owner.profile_id
    assert job["category"] == "Plumbing"
    assert Decimal(job["price_offer"]) == Decimal("80")
    assert job["allow_counter_offers"] is True


@pytest.mark.asyncio
async def test_create_job_has_no_bids(client: AsyncClient) -> None:
    owner = await register(client, "client")
    job = await post_job(client, owner)
    resp = await client.get(f"/jobs/{job['job_id']}")
    assert resp.status_code == 200
    assert resp.json()["bid_count"] == 0


@pytest.mark.asyncio
async def test_pro_can_post_job(client: AsyncClient) -> None:
    """Any signed-in profile may post a job."""
    pro = await register(client, "pro")
    job = await post_job(client, pro)
    assert job["owner_id"] == pro.profile_id


@pytest.mark.asyncio
async def test_create_job_requires_auth(client: AsyncClient) -> None:
    resp = await client.post("/jobs", json=make_job_data())
    assert resp.status_code == 401
    assert resp.json()["code"] == "authentication_required"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override,field",
    [
        ({"title": "  "}, "title"),
        ({"description": ""}, "description"),
        ({"category": "Gardening"}, "category"),
        ({"price_offer": "0"}, "price_offer"),
        ({"price_offer": "-5"}, "price_offer"),
        ({"price_offer": "1000000.01"}, "price_offer"),
        ({"photos": ["ftp://example.com/a.png"]}, "photos"),
    ],
)
async def test_create_job_validation(client: AsyncClient, override: dict, field: str) -> None:
    owner = await register(client, "client")
    resp = await signed(client, owner, "POST", "/jobs", make_job_data(**override))
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_error"
    assert field in body["fields"]


@pytest.mark.asyncio
async def test_missing_title_reported(client: AsyncClient) -> None:
    owner = await register(client, "client")
    data = make_job_data()
    del data["title"]
    resp = await signed(client, owner, "POST", "/jobs", data)
    assert resp.status_code == 422
    assert resp.json()["fields"] == ["title"]


@pytest.mark.asyncio
async def test_blank_schedule_stored_as_none(client: AsyncClient) -> None:
    owner = await register(client, "client")
    job = await post_job(client, owner, schedule_description="   ")
    assert job["schedule_description"] is None


@pytest.mark.asyncio
async def test_list_categories(client: AsyncClient) -> None:
    resp = await client.get("/categories")
    assert resp.status_code == 200
    assert resp.json() == ["Electricity", "Plumbing", "Assembly", "Moving", "Painting"]


@pytest.mark.asyncio
async def test_feed_includes_owner_and_bid_count(client: AsyncClient) -> None:
    owner = await register(client, "client")
    pro = await register(client, "pro")
    job = await post_job(client, owner)
    resp = await place_bid(client, pro, job["job_id"])
    assert resp.status_code == 201

    resp = await client.get("/jobs")
    assert resp.status_code == 200
    items = resp.json()
    assert len(items) == 1
    assert items[0]["owner"]["profile_id"] == owner.profile_id
    assert items[0]["owner"]["full_name"] == "Test Client"
    assert items[0]["bid_count"] == 1


@pytest.mark.asyncio
async def test_feed_filters(client: AsyncClient) -> None:
    owner = await register(client, "client")
    await post_job(client, owner, category="Plumbing")
    await post_job(client, owner, category="Moving", title="Move a sofa")

    resp = await client.get("/jobs", params={"category": "Moving"})
    assert [j["title"] for j in resp.json()] == ["Move a sofa"]

    resp = await client.get("/jobs", params={"status": "Open"})
    assert len(resp.json()) == 2

    resp = await client.get("/jobs", params={"status": "In Progress"})
    assert resp.json() == []


@pytest.mark.asyncio
async def test_feed_rejects_unknown_status(client: AsyncClient) -> None:
    resp = await client.get("/jobs", params={"status": "Archived"})
    assert resp.status_code == 422
    assert resp.json()["fields"] == ["status"]


@pytest.mark.asyncio
async def test_feed_pagination(client: AsyncClient) -> None:
    owner = await register(client, "client")
    for i in range(3):
        await post_job(client, owner, title=f"Job {i}")

    first = (await client.get("/jobs", params={"limit": 2})).json()
    rest = (await client.get("/jobs", params={"limit": 2, "offset": 2})).json()
    assert len(first) == 2
    assert len(rest) == 1
    assert {j["job_id"] for j in first}.isdisjoint({j["job_id"] for j in rest})


@pytest.mark.asyncio
async def test_feed_limit_bounds(client: AsyncClient) -> None:
    resp = await client.get("/jobs", params={"limit": 0})
    assert resp.status_code == 422
    resp = await client.get("/jobs", params={"limit": 101})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_job_not_found(client: AsyncClient) -> None:
    resp = await client.get("/jobs/00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_my_jobs_with_nested_bids(client: AsyncClient) -> None:
    owner = await register(client, "client")
    other = await register(client, "client")
    pro = await register(client, "pro")
    job = await post_job(client, owner)
    await post_job(client, other, title="Someone else's job")
    await place_bid(client, pro, job["job_id"], message="Can do Tuesday")

    resp = await signed(client, owner, "GET", "/jobs/mine")
    assert resp.status_code == 200
    jobs = resp.json()
    assert [j["job_id"] for j in jobs] == [job["job_id"]]
    bids = jobs[0]["bids"]
    assert len(bids) == 1
    assert bids[0]["message"] == "Can do Tuesday"
    assert bids[0]["pro"]["profile_id"] == pro.profile_id
    assert bids[0]["pro"]["role"] == "pro"


@pytest.mark.asyncio
async def test_my_jobs_requires_auth(client: AsyncClient) -> None:
    resp = await client.get("/jobs/mine")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_complete_job_credits_pro(client: AsyncClient) -> None:
    owner = await register(client, "client")
    pro = await register(client, "pro")
    job = await post_job(client, owner)
    bid = (await place_bid(client, pro, job["job_id"])).json()
    resp = await signed(client, owner, "POST", f"/bids/{bid['bid_id']}/approve")
    assert resp.status_code == 200

    resp = await signed(client, owner, "POST", f"/jobs/{job['job_id']}/complete")
    assert resp.status_code == 200
    assert resp.json()["status"] == "Completed"

    profile = (await client.get(f"/profiles/{pro.profile_id}")).json()
    assert profile["completed_jobs_count"] == 1


@pytest.mark.asyncio
async def test_cannot_complete_open_job(client: AsyncClient) -> None:
    owner = await register(client, "client")
    job = await post_job(client, owner)
    resp = await signed(client, owner, "POST", f"/jobs/{job['job_id']}/complete")
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_only_owner_can_complete(client: AsyncClient) -> None:
    owner = await register(client, "client")
    pro = await register(client, "pro")
    job = await post_job(client, owner)
    bid = (await place_bid(client, pro, job["job_id"])).json()
    await signed(client, owner, "POST", f"/bids/{bid['bid_id']}/approve")

    resp = await signed(client, pro, "POST", f"/jobs/{job['job_id']}/complete")
    assert resp.status_code == 403
    resp = await client.get(f"/jobs/{job['job_id']}")
    assert resp.json()["status"] == "In Progress"


@pytest.mark.asyncio
async def test_feed_shows_only_open_jobs_by_default(client: AsyncClient) -> None:
    owner = await register(client, "client")
    pro = await register(client, "pro")
    started = await post_job(client, owner, title="Already started")
    open_job = await post_job(client, owner, title="Still open")
    bid = (await place_bid(client, pro, started["job_id"])).json()
    resp = await signed(client, owner, "POST", f"/bids/{bid['bid_id']}/approve")
    assert resp.status_code == 200

    resp = await client.get("/jobs")
    assert [j["job_id"] for j in resp.json()] == [open_job["job_id"]]

    resp = await client.get("/jobs", params={"status": "In Progress"})
    assert [j["job_id"] for j in resp.json()] == [started["job_id"]]
