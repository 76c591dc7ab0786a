import pytest

from conftest import auth_headers, days_ago, make_listing, make_organization
from jobpilot.services.job_listing_service import parse_search_filters

pytestmark = pytest.mark.integration


@pytest.fixture
def listings():
    make_organization("org_1", "Acme Corp")
    make_organization("org_2", "Globex")
    return {
        "old_featured": make_listing(
            "org_1", status="published", posted_at=days_ago(5), is_featured=True,
            title="Senior Python Developer", experience_level="senior",
        ),
        "new": make_listing(
            "org_2", status="published", posted_at=days_ago(0.1),
            title="Frontend Engineer", location_requirement="onsite", city="San Francisco",
            state_abbreviation="CA", type="contract", experience_level="junior",
        ),
        "middle": make_listing(
            "org_1", status="published", posted_at=days_ago(2),
            title="Data Engineer", location_requirement="hybrid", city="Austin", state_abbreviation="TX",
        ),
        "draft": make_listing("org_1", title="Secret Draft Engineer"),
        "delisted": make_listing("org_2", status="delisted", title="Old Engineer"),
    }


def titles(response) -> list:
    return [listing["title"] for listing in response.json()["job_listings"]]


@pytest.mark.unit
def test_parse_search_filters_ignores_invalid_values() -> None:
    assert parse_search_filters(
        title="  python ",
        state="ca",
        experience="wizard",
        type="full-time",
        location_requirement="moon",
        job_ids=["a", "", "b"],
    ) == {"title": "python", "state": "CA", "type": "full-time", "job_ids": ("a", "b")}
    assert parse_search_filters(title="   ", city="") == {}


def test_only_published_featured_first_then_newest(client, listings) -> None:
    response = client.get("/api/job-listings")

    assert response.status_code == 200
    assert titles(response) == ["Senior Python Developer", "Frontend Engineer", "Data Engineer"]
    assert response.json()["total"] == 3


def test_items_carry_organization_badges_and_age(client, listings) -> None:
    items = {item["title"]: item for item in client.get("/api/job-listings").json()["job_listings"]}

    new = items["Frontend Engineer"]
    assert new["organization"]["name"] == "Globex"
    assert new["days_since_posted"] == 0
    assert new["posted_label"] == "New"
    assert new["badges"] == ["$120,000 per year", "San Francisco, CA", "Onsite", "Contract", "Junior"]

    old = items["Senior Python Developer"]
    assert old["posted_label"] == "5d ago"
    assert old["badges"][0] == "Featured"


def test_title_filter_is_case_insensitive_substring(client, listings) -> None:
    assert titles(client.get("/api/job-listings", params={"title": "ENGINEER"})) == [
        "Frontend Engineer", "Data Engineer",
    ]


def test_title_filter_treats_wildcards_literally(client, listings) -> None:
    assert titles(client.get("/api/job-listings", params={"title": "%"})) == []


def test_location_filters(client, listings) -> None:
    assert titles(client.get("/api/job-listings", params={"city": "austin"})) == ["Data Engineer"]
    assert titles(client.get("/api/job-listings", params={"state": "CA"})) == ["Frontend Engineer"]
    assert titles(client.get("/api/job-listings", params={"locationRequirement": "hybrid"})) == ["Data Engineer"]


def test_experience_and_type_filters(client, listings) -> None:
    assert titles(client.get("/api/job-listings", params={"experience": "senior"})) == ["Senior Python Developer"]
    assert titles(client.get("/api/job-listings", params={"type": "contract"})) == ["Frontend Engineer"]


def test_invalid_filter_values_are_ignored(client, listings) -> None:
    response = client.get("/api/job-listings", params={"experience": "wizard", "type": "gig"})
    assert response.status_code == 200
    assert len(titles(response)) == 3


def test_job_ids_filter(client, listings) -> None:
    response = client.get(
        "/api/job-listings",
        params=[("jobIds", listings["middle"]["id"]), ("jobIds", listings["draft"]["id"])],
    )
    assert titles(response) == ["Data Engineer"]


def test_selected_listing_included_even_when_filtered_out(client, listings) -> None:
    response = client.get(
        "/api/job-listings",
        params={"title": "Data", "jobListingId": listings["new"]["id"]},
    )
    assert titles(response) == ["Frontend Engineer", "Data Engineer"]


def test_selected_listing_must_be_published(client, listings) -> None:
    response = client.get(
        "/api/job-listings",
        params={"title": "Data", "jobListingId": listings["draft"]["id"]},
    )
    assert titles(response) == ["Data Engineer"]


def test_results_refresh_after_publishing(client, listings) -> None:
    from conftest import employer_auth
    from jobpilot.services.job_listing_service import toggle_job_listing_status

    assert len(titles(client.get("/api/job-listings"))) == 3
    toggle_job_listing_status(employer_auth(features=["post_15_job_listings"]), listings["draft"]["id"])
    assert "Secret Draft Engineer" in titles(client.get("/api/job-listings"))


def test_results_refresh_after_organization_rename(client, listings) -> None:
    client.get("/api/job-listings")
    make_organization("org_2", "Globex Renamed")

    names = {item["organization"]["name"] for item in client.get("/api/job-listings").json()["job_listings"]}
    assert "Globex Renamed" in names


def test_get_published_listing(client, listings) -> None:
    response = client.get(f"/api/job-listings/{listings['middle']['id']}")
    assert response.status_code == 200
    assert response.json()["organization"]["name"] == "Acme Corp"

    assert client.get(f"/api/job-listings/{listings['draft']['id']}").status_code == 404


def test_ai_search_requires_signed_in_user(client, listings) -> None:
    assert client.post("/api/job-listings/ai-search", json={"query": "python"}).status_code == 401


def test_ai_search_returns_matching_ids(client, listings, fake_llm) -> None:
    fake_llm.matching_ids = [listings["middle"]["id"]]

    response = client.post(
        "/api/job-listings/ai-search",
        json={"query": "I want to work with data"},
        headers=auth_headers("user_seeker"),
    )

    assert response.status_code == 200
    assert response.json() == {"job_ids": [listings["middle"]["id"]]}
    kind, prompt, offered_ids = fake_llm.calls[0]
    assert prompt == "I want to work with data"
    assert sorted(offered_ids) == sorted(
        [listings["old_featured"]["id"], listings["new"]["id"], listings["middle"]["id"]]
    )
