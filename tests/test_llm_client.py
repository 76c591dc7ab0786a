from types import SimpleNamespace

import pytest

from jobpilot.services.llm_client import (
    NO_JOBS,
    LLMClient,
    listing_for_prompt,
    parse_job_id_list,
    parse_rating,
)

pytestmark = pytest.mark.unit


class FakeCompletions:
    def __init__(self, answer: str) -> None:
        self.answer = answer
        self.requests: list = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        message = SimpleNamespace(content=self.answer)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_client(answer: str):
    completions = FakeCompletions(answer)
    openai_client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMClient(client=openai_client, model="test-model"), completions


LISTINGS = [
    {"id": "job-1", "title": "Backend Engineer", "description": "Python", "wage": None, "type": "full-time"},
    {"id": "job-2", "title": "Designer", "description": "Figma", "wage": 40, "type": "contract"},
    {"id": "job-3", "title": "Data Engineer", "description": "SQL", "wage": None, "type": "full-time"},
]


def test_parse_job_id_list() -> None:
    assert parse_job_id_list(" job-1 , job-3,, ") == ["job-1", "job-3"]
    assert parse_job_id_list(NO_JOBS) == []
    assert parse_job_id_list("") == []
    assert parse_job_id_list(None) == []


def test_parse_job_id_list_drops_unknown_and_duplicate_ids() -> None:
    assert parse_job_id_list("job-2,made-up,job-2", allowed_ids=["job-1", "job-2"]) == ["job-2"]


def test_listing_for_prompt_keeps_only_prompt_fields() -> None:
    listing = dict(LISTINGS[0], organization_id="org_1", status="published")
    assert listing_for_prompt(listing) == {
        "id": "job-1",
        "title": "Backend Engineer",
        "description": "Python",
        "type": "full-time",
    }


def test_get_matching_job_listings_parses_answer() -> None:
    client, completions = make_client("job-3, job-1")

    assert client.get_matching_job_listings("I like data", LISTINGS) == ["job-3", "job-1"]

    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["messages"][1] == {"role": "user", "content": "I like data"}
    assert "Return all jobs that match" in request["messages"][0]["content"]
    assert '"id": "job-2"' in request["messages"][0]["content"]


def test_get_matching_job_listings_limits_result() -> None:
    client, completions = make_client("job-1,job-2,job-3")

    assert client.get_matching_job_listings("anything", LISTINGS, max_number_of_jobs=2) == ["job-1", "job-2"]
    assert "up to 2 jobs" in completions.requests[0]["messages"][0]["content"]


def test_get_matching_job_listings_no_jobs() -> None:
    client, _ = make_client("NO_JOBS")
    assert client.get_matching_job_listings("astronaut", LISTINGS) == []


def test_get_matching_job_listings_skips_call_without_listings() -> None:
    client, completions = make_client("job-1")
    assert client.get_matching_job_listings("anything", []) == []
    assert completions.requests == []


def test_rate_application() -> None:
    client, completions = make_client("4")
    assert client.rate_application(LISTINGS[0], "Senior Python dev", None) == 4
    assert "Senior Python dev" in completions.requests[0]["messages"][1]["content"]


def test_parse_rating() -> None:
    assert parse_rating("Rating: 5") == 5
    with pytest.raises(ValueError):
        parse_rating("excellent")


def test_summarize_resume_strips_answer() -> None:
    client, _ = make_client("  ## Skills\n- Python  ")
    assert client.summarize_resume("resume text") == "## Skills\n- Python"
