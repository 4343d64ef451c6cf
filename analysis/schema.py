from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Canonical record shape. Earlier prompt revisions used other key names
# (totalTweetsAnalyzed, promotionalCalls, ...); those are not accepted.
SCHEMA_VERSION = "2"

Sentiment = Literal["Bullish", "Bearish", "Neutral"]
Confidence = Literal["High", "Medium", "Low"]
TradeSignal = Literal["Buy", "Sell", "Hold"]
CoinType = Literal["Memecoin", "Utility Coin"]


class Engagement(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", strict=True)

    avg_likes: float = Field(alias="avgLikes", ge=0)
    avg_retweets: float = Field(alias="avgRetweets", ge=0)
    avg_replies: float = Field(alias="avgReplies", ge=0)


class SentimentRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", strict=True)

    total_analyzed: int = Field(alias="totalAnalyzed", ge=0)
    overall_sentiment: Sentiment = Field(alias="overallSentiment")
    promotional_count: int = Field(alias="promotionalCount", ge=0)
    verified_count: int = Field(alias="verifiedCount", ge=0)
    key_takeaways: List[str] = Field(alias="keyTakeaways")

    engagement: Optional[Engagement] = None
    dominant_themes: Optional[List[str]] = Field(default=None, alias="dominantThemes")
    confidence: Optional[Confidence] = None
    trade_signal: Optional[TradeSignal] = Field(default=None, alias="tradeSignal")
    coin_type: Optional[CoinType] = Field(default=None, alias="coinType")
    utility_description: Optional[str] = Field(default=None, alias="utilityDescription")

    def to_public(self) -> dict:
        """camelCase dict as sent to API callers; unset optional fields are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)
