"""Extract a structured candidate profile from resume text using an LLM."""
import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from .. import config
from ..errors import ExtractionError
from ..models import NO_EXCEPTIONAL_ABILITY, ResumeData

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a senior talent acquisition specialist who reads resumes and records
candidate information in a fixed structure.

Extract the candidate's name, contact details, professional title and summary, experience,
education, skills, tech stack, social and project links, and any exceptional ability.

Rules:
- Use only what the resume states. Do not invent employers, dates, links or skills.
- Leave optional fields empty when the resume does not mention them.
- experience and education are free text copied or condensed from the resume.
- skills is free text covering technical, domain and soft skills.
- tech_stack lists tools, technologies, frameworks and programming languages, one per item.
- Return ONLY data matching the schema."""


def _user_prompt(resume_text: str, now: datetime) -> str:
    return f"""Extract structured resume data from this text:

{resume_text[:config.MAX_RESUME_CHARS]}

The current date is {now.strftime("%Y-%m-%d %H:%M")}. Use it to resolve "present" or
"current" end dates when calculating total_experience, in years. If total_experience is not
a whole number, keep the decimal as-is.
Identify any exceptional ability of the candidate; if none is found, return
"{NO_EXCEPTIONAL_ABILITY}"."""


def _strip_code_fence(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
        content = content.strip()
    return content


class ProfileExtractor:
    """Schema-constrained generation of ResumeData from plain text."""

    def __init__(self, client=None, model: Optional[str] = None):
        self._client = client
        self.model = model or config.OPENAI_MODEL

    @property
    def client(self):
        if self._client is None:
            self._client = config.get_openai_client()
        return self._client

    async def extract(self, resume_text: str, now: datetime) -> ResumeData:
        """
        Extract a validated profile from resume text.

        Args:
            resume_text: Plain text of one resume
            now: Current timestamp, used for experience-duration reasoning

        Raises:
            ExtractionError: the call failed or the output does not match the schema
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=0.0,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "resume",
                        "schema": ResumeData.model_json_schema(),
                    },
                },
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": _user_prompt(resume_text, now)},
                ],
            )
        except Exception as e:
            logger.exception("LLM extraction call failed")
            raise ExtractionError(f"Failed to extract resume data: {e}") from e

        content = response.choices[0].message.content or ""

        try:
            data = ResumeData.model_validate_json(_strip_code_fence(content))
        except ValidationError as e:
            logger.error(f"LLM output failed schema validation: {e}")
            logger.debug(f"Raw response: {content[:500]}")
            raise ExtractionError(f"LLM returned an invalid profile: {e}") from e

        logger.info(f"Extracted profile for: {data.name}")
        return data
