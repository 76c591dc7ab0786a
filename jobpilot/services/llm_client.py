"""
LLM Client

The provider exposes an OpenAI-compatible API, so we use the openai library.

AI is used ONLY for:
- matching job listings against a job seeker's free-text description
- summarising uploaded résumés
- rating applications for employers

Prompts are short, structured and run at low temperature so answers can be
parsed.
"""
import json
import logging
import re
from typing import List, Optional

from openai import OpenAI

from jobpilot.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

NO_JOBS = "NO_JOBS"

# Fields of a listing the matching prompt is allowed to see
LISTING_PROMPT_FIELDS = (
    "id",
    "title",
    "description",
    "experience_level",
    "location_requirement",
    "type",
    "wage",
    "wage_interval",
    "city",
    "state_abbreviation",
)


def listing_for_prompt(listing: dict) -> dict:
    """Project a listing onto the prompt fields, dropping empty values."""
    return {
        field: listing[field]
        for field in LISTING_PROMPT_FIELDS
        if listing.get(field) is not None
    }


def parse_job_id_list(answer: Optional[str], allowed_ids: Optional[List[str]] = None) -> List[str]:
    """
    Parse a comma separated list of job ids.

    ``NO_JOBS`` or an empty answer means no match. Ids the model invented
    (not in ``allowed_ids``) are dropped; order and first occurrence are kept.
    """
    if not answer:
        return []
    answer = answer.strip()
    if not answer or answer == NO_JOBS:
        return []

    ids = []
    for job_id in answer.split(","):
        job_id = job_id.strip().strip("`\"'")
        if not job_id or job_id in ids:
            continue
        if allowed_ids is not None and job_id not in allowed_ids:
            continue
        ids.append(job_id)
    return ids


class LLMClient:
    """
    Wrapper for the chat completion API with task-specific methods.
    """

    def __init__(self, client: OpenAI = None, model: str = None):
        self.client = client or OpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url
        )
        self.model = model or settings.llm_model

    def _call_api(self, system_prompt: str, user_content: str, max_tokens: int = 1000) -> str:
        """
        Internal method to call the API.
        Returns raw text response.
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            max_tokens=max_tokens,
            temperature=0.1  # Low temp for consistent structured output
        )
        return response.choices[0].message.content or ""

    def get_matching_job_listings(
        self,
        prompt: str,
        job_listings: List[dict],
        max_number_of_jobs: Optional[int] = None,
    ) -> List[str]:
        """
        Ask the model which listings fit the job seeker's description.

        Returns the matching listing ids (at most ``max_number_of_jobs``).
        """
        if not job_listings:
            return []

        if max_number_of_jobs:
            limit_instruction = f"You are to return up to {max_number_of_jobs} jobs."
        else:
            limit_instruction = "Return all jobs that match their requirements."

        listings_json = json.dumps([listing_for_prompt(listing) for listing in job_listings])
        system_prompt = (
            "You are an expert at matching people with jobs based on their specific experience, "
            "and requirements. The provided user prompt will be a description that can include "
            "information about themselves as well what they are looking for in a job. "
            f"{limit_instruction} Return the jobs as a comma separated list of jobIds. "
            f'If you cannot find any jobs that match the user prompt, return the text "{NO_JOBS}". '
            f"Here is the JSON array of available job listings: {listings_json}"
        )

        answer = self._call_api(system_prompt, prompt, max_tokens=500)
        ids = parse_job_id_list(answer, allowed_ids=[listing["id"] for listing in job_listings])
        if max_number_of_jobs:
            ids = ids[:max_number_of_jobs]
        logger.info("AI matched %d of %d job listings", len(ids), len(job_listings))
        return ids

    def summarize_resume(self, resume_text: str) -> str:
        """Summarise a résumé as markdown for employers reviewing applications."""
        system_prompt = """Summarize the following resume and extract all key skills, experience, and qualifications.
The summary should include all the information that a hiring manager would need to know about the candidate in order to determine if they are a good fit for a job.
This summary should be formatted as markdown.
Do not return any other text. If the file does not look like a resume return the text 'N/A'."""

        return self._call_api(system_prompt, resume_text, max_tokens=1500).strip()

    def rate_application(
        self,
        job_listing: dict,
        resume_summary: str,
        cover_letter: Optional[str] = None,
    ) -> int:
        """
        Rate how well an applicant fits a listing from 1 to 5.

        The answer must contain a single digit; anything else is an error.
        """
        system_prompt = """You are an expert at ranking job applications based on their resume summary, cover letter and the job listing.
Rank the application with a whole number from 1 to 5, where 5 is the best fit.
Return ONLY the number."""

        user_content = json.dumps({
            "jobListing": listing_for_prompt(job_listing),
            "resumeSummary": resume_summary,
            "coverLetter": cover_letter,
        })
        answer = self._call_api(system_prompt, user_content, max_tokens=10)
        return parse_rating(answer)

    def test_connection(self) -> bool:
        """Test if the LLM API is reachable"""
        try:
            response = self._call_api(
                "You are a test assistant.",
                "Reply with exactly: OK",
                max_tokens=10
            )
            return "OK" in response.upper()
        except Exception as e:
            logger.warning("LLM connection failed: %s", e)
            return False


def parse_rating(answer: str) -> int:
    match = re.search(r"[1-5]", answer or "")
    if not match:
        raise ValueError(f"Could not parse rating from model answer: {answer!r}")
    return int(match.group(0))


# Singleton instance
_llm_client: LLMClient = None


def get_llm_client() -> LLMClient:
    """Get or create LLM client (singleton pattern)"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
