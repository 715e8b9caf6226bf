from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SummaryStats(BaseModel):
    total: int = 0
    net_sum: float = 0.0
    average: float = 0.0
    win_rate_percent: float = 0.0


class HistogramBucket(BaseModel):
    range_label: str
    count: int


class Histogram(BaseModel):
    labels: list[str] = Field(default_factory=list)
    counts: list[int] = Field(default_factory=list)

    @property
    def buckets(self) -> list[HistogramBucket]:
        return [
            HistogramBucket(range_label=label, count=count)
            for label, count in zip(self.labels, self.counts)
        ]


class CumulativeSeriesPoint(BaseModel):
    timestamp: datetime
    display_label: str
    short_label: str
    running_total: float


class CumulativeSeries(BaseModel):
    labels: list[str] = Field(default_factory=list)
    short_labels: list[str] = Field(default_factory=list)
    cumulative: list[float] = Field(default_factory=list)
    points: list[CumulativeSeriesPoint] = Field(default_factory=list)
