# regional_timeline/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from regional_timeline.models import Post, SentimentTally


class PostOut(BaseModel):
    id: str
    created_at: datetime
    content: str                              # raw HTML, passed through
    url: str
    author_handle: str
    source_domain: str

    @classmethod
    def from_post(cls, post: Post) -> "PostOut":
        return cls(
            id=post.id,
            created_at=post.created_at,
            content=post.content,
            url=post.url,
            author_handle=post.author_handle,
            source_domain=post.source_domain,
        )


class SentimentCounts(BaseModel):
    positive: int = 0
    negative: int = 0
    neutral: int = 0


class SentimentAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    positive_percentage: int = Field(0, alias="positivePercentage")
    negative_percentage: int = Field(0, alias="negativePercentage")
    neutral_percentage: int = Field(0, alias="neutralPercentage")
    total_analyzed: int = Field(0, alias="totalAnalyzed")
    counts: SentimentCounts = Field(default_factory=SentimentCounts)

    @classmethod
    def from_tally(cls, tally: SentimentTally) -> "SentimentAnalysis":
        return cls(
            positive_percentage=tally.positive_percentage,
            negative_percentage=tally.negative_percentage,
            neutral_percentage=tally.neutral_percentage,
            total_analyzed=tally.total_analyzed,
            counts=SentimentCounts(
                positive=tally.positive,
                negative=tally.negative,
                neutral=tally.neutral,
            ),
        )


class TimelineResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timeline: List[PostOut]
    sentiment_analysis: SentimentAnalysis = Field(alias="sentimentAnalysis")

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


class RegionOut(BaseModel):
    code: str
    name: str
    instances: int


class AnalyzeSentimentRequest(BaseModel):
    texts: List[str] = Field(default_factory=list)


class SentimentResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_text: str = Field(alias="originalText")
    label: str
    score: float


class AnalyzeSentimentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sentiment_results: List[Optional[SentimentResult]] = Field(alias="sentimentResults")
