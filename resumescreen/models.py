"""Pydantic models shared by the ingestion and screening stages."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_EXCEPTIONAL_ABILITY = "No exceptional ability could be found/noted."


class ContactDetails(BaseModel):
    email: Optional[str] = Field(None, description="Email address of the candidate")
    phone: Optional[str] = Field(None, description="Contact number of the candidate")
    location: Optional[str] = Field(None, description="Location of the candidate")
    website: Optional[str] = Field(None, description="Personal website of the candidate")


class SocialLink(BaseModel):
    platform: Optional[str] = None
    url: str


class ProjectLink(BaseModel):
    title: Optional[str] = None
    url: str
    description: Optional[str] = None


class ResumeData(BaseModel):
    """Fields the structured-generation call must return for one resume."""

    name: str = Field(..., description="Name of the candidate")
    contact_details: ContactDetails = Field(default_factory=ContactDetails)
    professional_title: Optional[str] = Field(
        None, description="Professional role or title of the candidate"
    )
    professional_summary: Optional[str] = Field(
        None, description="Professional summary of the candidate"
    )
    social_links: List[SocialLink] = Field(
        default_factory=list, description="Links to social accounts of the candidate"
    )
    project_links: List[ProjectLink] = Field(
        default_factory=list, description="Links to the projects listed by the candidate"
    )
    experience: Optional[str] = Field(None, description="Experience details in raw text format")
    education: Optional[str] = Field(None, description="Education details in raw text format")
    total_experience: Optional[float] = Field(
        None, description="Total years of experience of the candidate", ge=0
    )
    exceptional_ability: str = Field(
        NO_EXCEPTIONAL_ABILITY,
        description="Summary of exceptional abilities of the candidate",
    )
    tech_stack: List[str] = Field(
        default_factory=list,
        description="Tools, technologies, frameworks, or programming languages listed by the candidate",
    )
    skills: str = Field(
        "",
        description="Skills of the candidate as free text, including soft and domain skills",
    )

    @field_validator("social_links", "project_links", mode="before")
    @classmethod
    def _none_to_empty_list(cls, v):
        return v or []

    @field_validator("exceptional_ability", mode="before")
    @classmethod
    def _sentinel_when_blank(cls, v):
        if v is None or not str(v).strip():
            return NO_EXCEPTIONAL_ABILITY
        return str(v).strip()

    @field_validator("tech_stack", mode="before")
    @classmethod
    def _dedupe_tech_stack(cls, v):
        if not v:
            return []
        seen: List[str] = []
        for item in v:
            item = str(item).strip()
            if item and item not in seen:
                seen.append(item)
        return seen

    @field_validator("skills", mode="before")
    @classmethod
    def _skills_text(cls, v):
        if v is None:
            return ""
        if isinstance(v, list):
            return ", ".join(str(s).strip() for s in v if str(s).strip())
        return str(v)

    def search_text(self) -> str:
        """Text embedded for ranking: experience, skills and the tech-stack list."""
        return " ".join([
            self.experience or "",
            self.skills or "",
            str(self.tech_stack),
        ]).strip()


class CandidateProfile(ResumeData):
    """One resume after extraction, as persisted in the candidate table."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    resume_url: str
    # Placeholder until resume hashing is implemented
    resume_hash: str = ""
    embedding: Optional[List[float]] = None


class JobDescription(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: str


class Screening(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    jd_id: str
    candidate_id: str
    rank: int = Field(..., ge=1)
    is_shortlisted: bool = False


class RankedCandidate(BaseModel):
    candidate_id: str
    resume_url: str
    similarity: float
    rank: int
