import pytest

from jobpilot.core.cache import (
    TaggedCache,
    cache_tag,
    get_global_tag,
    get_id_tag,
    get_job_listing_tag,
    get_organization_tag,
    get_user_tag,
)
from jobpilot.db.cache_tags import (
    get_job_listing_global_tag,
    get_job_listing_id_tag,
    get_job_listing_organization_tag,
    get_organization_user_settings_id_tag,
    revalidate_job_listing_cache,
)

pytestmark = pytest.mark.unit


def test_tag_builders() -> None:
    assert get_global_tag("jobListings") == "global:jobListings"
    assert get_user_tag("userResumes", "u1") == "user:u1-userResumes"
    assert get_organization_tag("jobListings", "o1") == "organization:o1-jobListings"
    assert get_job_listing_tag("jobListingApplications", "j1") == "jobListing:j1-jobListingApplications"
    assert get_id_tag("jobListings", "j1") == "id:j1-jobListings"
    assert get_organization_user_settings_id_tag("o1", "u1") == "id:o1-u1-organizationUserSettings"


def test_cached_read_is_memoised_until_its_tag_is_revalidated() -> None:
    cache = TaggedCache()
    calls = []

    @cache.cached(lambda item_id: get_id_tag("items", item_id))
    def read(item_id):
        calls.append(item_id)
        return {"id": item_id, "version": len(calls)}

    assert read("a") == {"id": "a", "version": 1}
    assert read("a") == {"id": "a", "version": 1}
    assert calls == ["a"]

    assert cache.revalidate_tag(get_id_tag("items", "a")) == 1
    assert read("a") == {"id": "a", "version": 2}


def test_revalidating_other_tag_keeps_entry() -> None:
    cache = TaggedCache()
    calls = []

    @cache.cached(lambda item_id: get_id_tag("items", item_id))
    def read(item_id):
        calls.append(item_id)
        return item_id

    read("a")
    read("b")
    cache.revalidate_tag(get_id_tag("items", "b"))
    read("a")
    read("b")

    assert calls == ["a", "b", "b"]


def test_cache_tag_attaches_tags_discovered_inside_the_read() -> None:
    cache = TaggedCache()

    @cache.cached(lambda: get_global_tag("items"))
    def read_all():
        cache_tag(get_id_tag("organizations", "o1"))
        return ["x"]

    read_all()
    key = (read_all.__module__, read_all.__qualname__, (), ())
    assert cache.tags_for(key) == {"global:items", "id:o1-organizations"}

    cache.revalidate_tag("id:o1-organizations")
    assert not cache.contains(key)


def test_cache_tag_outside_cached_read_is_a_noop() -> None:
    cache_tag("global:anything")


def test_cached_values_are_copies() -> None:
    cache = TaggedCache()

    @cache.cached(lambda: "global:items")
    def read():
        return {"items": [1, 2]}

    first = read()
    first["items"].append(3)
    assert read() == {"items": [1, 2]}


def test_read_racing_a_revalidation_is_not_stored() -> None:
    cache = TaggedCache()

    @cache.cached(lambda: "global:items")
    def read():
        # A write lands while the read is running
        cache.revalidate_tag("global:items")
        return "stale"

    assert read() == "stale"
    assert len(cache) == 0


def test_disabled_cache_always_calls_through() -> None:
    cache = TaggedCache()
    cache.enabled = False
    calls = []

    @cache.cached(lambda: "global:items")
    def read():
        calls.append(1)
        return len(calls)

    assert read() == 1
    assert read() == 2


def test_revalidate_job_listing_cache_evicts_global_organization_and_id_reads() -> None:
    from jobpilot.core.cache import data_cache

    data_cache.set(("global",), 1, [get_job_listing_global_tag()])
    data_cache.set(("org",), 2, [get_job_listing_organization_tag("o1")])
    data_cache.set(("id",), 3, [get_job_listing_id_tag("j1")])
    data_cache.set(("other-org",), 4, [get_job_listing_organization_tag("o2")])

    revalidate_job_listing_cache("j1", "o1")

    assert not data_cache.contains(("global",))
    assert not data_cache.contains(("org",))
    assert not data_cache.contains(("id",))
    assert data_cache.get(("other-org",)) == 4


def test_cache_evicts_least_recently_used_entry() -> None:
    cache = TaggedCache(maxsize=2)
    calls = []

    @cache.cached(lambda item_id: get_id_tag("items", item_id))
    def read(item_id):
        calls.append(item_id)
        return item_id

    read("a")
    read("b")
    read("a")
    read("c")

    assert len(cache) == 2
    read("a")
    read("b")
    assert calls == ["a", "b", "c", "b"]


def test_eviction_and_revalidation_drop_empty_tag_index_entries() -> None:
    cache = TaggedCache(maxsize=1)
    cache.set(("a",), 1, ["id:a-items", "global:items"])
    cache.set(("b",), 2, ["id:b-items", "global:items"])

    assert cache._keys_by_tag == {"id:b-items": {("b",)}, "global:items": {("b",)}}

    cache.revalidate_tag("id:b-items")
    assert cache._keys_by_tag == {}
    assert len(cache) == 0


def test_revalidations_outside_reads_are_not_remembered() -> None:
    cache = TaggedCache()
    for i in range(100):
        cache.revalidate_tag(get_id_tag("items", str(i)))

    assert cache._generations == {}

    @cache.cached(lambda: "global:items")
    def read():
        return "fresh"

    read()
    assert cache.contains((read.__module__, read.__qualname__, (), ()))
    assert cache._generations == {}


@pytest.mark.integration
def test_many_distinct_searches_stay_within_the_bound(monkeypatch) -> None:
    from jobpilot.core.cache import data_cache
    from jobpilot.services.job_listing_service import search_published_job_listings

    monkeypatch.setattr(data_cache, "maxsize", 50)
    for i in range(200):
        search_published_job_listings({"title": f"role {i}"})

    assert len(data_cache) == 50
