from datetime import datetime
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from watchlog.core.episodes import canonical_watched_episodes

MediaType = Literal["movie", "series"]
SubType = Literal["anime", "animation", "documentary", "live_action"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Genre(BaseModel):
    id: Optional[int] = None
    name: str = ""


class WatchItemOut(_CamelModel):
    """
    Snapshot of a stored watch item, as returned to the client and handed to
    the filter pipeline.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int = Field(..., alias="_id")
    user_id: Optional[int] = Field(None, alias="user")
    tmdb_id: int
    media_type: str
    sub_type: str = "live_action"
    title: str
    poster_path: Optional[str] = None
    origin_country: Optional[str] = None
    release_date: Optional[str] = None
    genres: List[Genre] = Field(default_factory=list)
    rating: int = 0
    user_notes: str = ""
    is_favorite: bool = False
    watch_date: Optional[datetime] = None
    watch_time_minutes: int = 0
    runtime: Optional[int] = None
    seasons: Optional[int] = None
    episodes: Optional[int] = None
    episode_duration: Optional[int] = None
    watched_seasons: List[int] = Field(default_factory=list)
    watched_episodes: List[str] = Field(default_factory=list)

    @field_validator("genres", "watched_seasons", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("watched_episodes", mode="before")
    @classmethod
    def _canonical_episodes(cls, value: Any) -> List[str]:
        return canonical_watched_episodes(value)

    @field_validator("sub_type", mode="before")
    @classmethod
    def _default_sub_type(cls, value: Any) -> Any:
        return value or "live_action"

    @field_validator("user_notes", mode="before")
    @classmethod
    def _notes_as_text(cls, value: Any) -> Any:
        return value or ""


class WatchItemCreate(_CamelModel):
    tmdb_id: int
    media_type: MediaType
    sub_type: SubType = "live_action"
    title: str = Field(..., min_length=1)
    poster_path: Optional[str] = None
    origin_country: Optional[str] = None
    release_date: Optional[str] = None
    genres: List[Genre] = Field(default_factory=list)
    rating: int = Field(0, ge=0, le=5)
    user_notes: str = ""
    is_favorite: bool = False
    watch_date: Optional[datetime] = None
    watch_time_minutes: int = Field(0, ge=0)
    runtime: Optional[int] = Field(None, ge=0)
    seasons: Optional[int] = Field(None, ge=0)
    episodes: Optional[int] = Field(None, ge=0)
    episode_duration: Optional[int] = Field(None, ge=0)
    watched_seasons: List[int] = Field(default_factory=list)
    watched_episodes: List[Union[str, dict]] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @field_validator("watched_episodes")
    @classmethod
    def _canonical_episodes(cls, value: List[Any]) -> List[str]:
        return canonical_watched_episodes(value)


class WatchItemUpdate(_CamelModel):
    """Only the user-owned fields can change after creation."""

    rating: Optional[int] = Field(None, ge=0, le=5)
    user_notes: Optional[str] = None
    is_favorite: Optional[bool] = None
    watch_date: Optional[datetime] = None
    watched_seasons: Optional[List[int]] = None
    watched_episodes: Optional[List[Union[str, dict]]] = None
    watch_time_minutes: Optional[int] = Field(None, ge=0)

    @field_validator("watched_episodes")
    @classmethod
    def _canonical_episodes(cls, value: Optional[List[Any]]) -> Optional[List[str]]:
        if value is None:
            return None
        return canonical_watched_episodes(value)


class FilterRequest(BaseModel):
    prompt: Optional[str] = None
