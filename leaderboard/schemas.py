"""
Pydantic schemas for solved.ac API responses
Field names are snake_case; the camelCase wire names are aliases
"""
from pydantic import BaseModel, Field
from typing import List, Optional


class SolvedACModel(BaseModel):
    """Base schema: accepts wire (camelCase) or python field names"""

    class Config:
        populate_by_name = True
        extra = "ignore"


# ===== USER SCHEMAS =====

class UserInfo(SolvedACModel):
    """Profile returned by /user/show"""
    handle: str
    bio: str = ""
    rating: int = 0
    tier: int = 0
    class_: int = Field(0, alias="class")
    class_decoration: Optional[str] = Field(None, alias="classDecoration")
    profile_image_url: Optional[str] = Field(None, alias="profileImageUrl")
    solved_count: int = Field(0, alias="solvedCount")
    verified: bool = False
    rank: int = 0


class UserAdditionalInfo(SolvedACModel):
    """Extended profile attributes returned by /user/additional_info"""
    country_code: Optional[str] = Field(None, alias="countryCode")
    gender: int = 0
    pronouns: Optional[str] = None
    birth_year: Optional[int] = Field(None, alias="birthYear")
    birth_month: Optional[int] = Field(None, alias="birthMonth")
    birth_day: Optional[int] = Field(None, alias="birthDay")
    name: Optional[str] = None
    name_native: Optional[str] = Field(None, alias="nameNative")


# ===== PROBLEM SCHEMAS =====

class ProblemInfo(SolvedACModel):
    """One solved problem"""
    problem_id: int = Field(alias="problemId")
    level: int = 0
    title_ko: str = Field("", alias="titleKo")
    accepted_user_count: int = Field(0, alias="acceptedUserCount")
    average_tries: float = Field(0.0, alias="averageTries")


class Top100Response(SolvedACModel):
    """Hardest 100 solved problems returned by /user/top_100"""
    count: int = 0
    items: List[ProblemInfo] = Field(default_factory=list)


# ===== ORGANIZATION SCHEMAS =====

class Organization(SolvedACModel):
    """One entry of /user/organizations"""
    organization_id: int = Field(alias="organizationId")
    name: str
    type: str = ""
    rating: int = 0
    user_count: int = Field(0, alias="userCount")
    vote_count: int = Field(0, alias="voteCount")
    solved_count: int = Field(0, alias="solvedCount")
    color: str = ""
