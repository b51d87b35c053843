from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, RootModel


# ---- Home ----


class HeroStat(BaseModel):
    value: str = ""
    title: str = ""
    subtitle: str = ""


class HomeHero(BaseModel):
    h1: str = ""
    h2: str = ""
    intro: str = ""
    stats: list[HeroStat] = Field(default_factory=lambda: [HeroStat(), HeroStat(), HeroStat()])


# ---- Directory ----


class DirectoryLabels(BaseModel):
    interestsLabel: str = ""


class FreeformContent(RootModel[dict[str, Any]]):
    root: dict[str, Any] = Field(default_factory=dict)


# ---- Match quiz ----


class QuizLocations(BaseModel):
    cities: list[str] = Field(default_factory=list)
    subLocations: dict[str, list[str]] = Field(default_factory=dict)


class QuizOptions(BaseModel):
    problems: list[str] = Field(default_factory=list)
    locations: QuizLocations = Field(default_factory=QuizLocations)
    genders: list[str] = Field(default_factory=list)
    lgbtq: list[str] = Field(default_factory=list)
    religions: list[str] = Field(default_factory=list)
    ages: list[str] = Field(default_factory=list)
    experienceBands: list[str] = Field(default_factory=list)


class QuizQuestions(BaseModel):
    problem: str = ""
    location: str = ""
    gender: str = ""
    lgbtq: str = ""
    religion: str = ""
    age: str = ""
    experience: str = ""
    budget: str = ""


class MatchQuiz(BaseModel):
    questions: QuizQuestions = Field(default_factory=QuizQuestions)
    options: QuizOptions = Field(default_factory=QuizOptions)


# key -> (schema, default title)
CONTENT_SCHEMAS: dict[str, tuple[type[BaseModel], str]] = {
    "home.hero": (HomeHero, "Homepage Hero"),
    "directory.intro": (FreeformContent, "Therapist Directory Intro"),
    "directory.labels": (DirectoryLabels, "Directory Labels (UI Text)"),
    "blog.settings": (FreeformContent, "Blog Settings"),
    "match.quiz": (MatchQuiz, "Match Quiz"),
}


class ContentEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    title: str | None
    content: dict[str, Any]


class ContentUpdate(BaseModel):
    title: str | None = Field(None, max_length=200)
    content: dict[str, Any]
