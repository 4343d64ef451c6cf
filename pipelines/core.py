import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from analysis.analyst import analyze_sentiment
from analysis.filters import filter_items, organize
from analysis.schema import SentimentRecord
from pipelines.errors import PipelineError
from scraper.fetcher import CollectOptions, collect_posts
from scraper.session import SessionManager
from webapp.config import Settings

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    IDLE = "Idle"
    SESSION_ESTABLISHING = "SessionEstablishing"
    COLLECTING = "Collecting"
    FILTERING = "Filtering"
    ANALYZING = "Analyzing"
    DONE = "Done"
    FAILED = "Failed"


TERMINAL_STAGES = {PipelineStage.DONE, PipelineStage.FAILED}


@dataclass
class PipelineResult:
    tweets_count: int
    analyzed_count: int
    sentiment: SentimentRecord
    stages: List[PipelineStage] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return {"tweetsCount": self.tweets_count, "sentiment": self.sentiment.to_public()}


def _log(msg: str, logger_fn: Optional[Callable[[str], None]] = None):
    logger.info(msg)
    if logger_fn:
        logger_fn(msg)


class TweetPipeline:
    """
    Idle -> SessionEstablishing -> Collecting -> Filtering -> Analyzing -> Done,
    any failure -> Failed. The browser is torn down exactly once on either
    terminal state. No stage is retried.
    """

    def __init__(
        self,
        settings: Settings,
        session_manager: Optional[SessionManager] = None,
        collector: Callable = collect_posts,
        analyzer: Callable = analyze_sentiment,
        http: Optional[Any] = None,
        logger: Optional[Callable[[str], None]] = None,
    ):
        self.settings = settings
        self.session_manager = session_manager or SessionManager(settings)
        self.collector = collector
        self.analyzer = analyzer
        self.http = http
        self.logger = logger
        self.stage = PipelineStage.IDLE
        self.history: List[PipelineStage] = [PipelineStage.IDLE]

    def _enter(self, stage: PipelineStage) -> None:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"pipeline already finished ({self.stage.value})")
        self.stage = stage
        self.history.append(stage)
        logger.debug("stage -> %s", stage.value)

    def run(self, query: str) -> PipelineResult:
        if self.stage is not PipelineStage.IDLE:
            raise RuntimeError("a TweetPipeline runs once; create a new one per query")
        _log(f"🚀 Pipeline started for query: {query}", self.logger)
        try:
            result = self._run_stages(query)
        except Exception as e:
            failed_stage = self.stage
            self._enter(PipelineStage.FAILED)
            _log(f"❌ Pipeline failed during {failed_stage.value}: {e}", self.logger)
            raise PipelineError(failed_stage.value, e) from e
        else:
            self._enter(PipelineStage.DONE)
            result.stages = list(self.history)
            _log(f"✅ Pipeline done: {result.tweets_count} collected, {result.analyzed_count} analyzed", self.logger)
            return result
        finally:
            self.session_manager.teardown()

    def _run_stages(self, query: str) -> PipelineResult:
        self._enter(PipelineStage.SESSION_ESTABLISHING)
        session = self.session_manager.establish()
        _log("Login complete", self.logger)

        self._enter(PipelineStage.COLLECTING)
        items = self.collector(session, query, CollectOptions.from_settings(self.settings))
        _log(f"Posts scraped: {len(items)}", self.logger)

        self._enter(PipelineStage.FILTERING)
        kept = filter_items(items, self.settings.min_text_length)
        batch = organize(kept)
        _log(f"Posts after filtering: {batch.count}", self.logger)

        self._enter(PipelineStage.ANALYZING)
        sentiment = self.analyzer(batch.texts, self.settings, http=self.http)
        _log(f"Sentiment: {sentiment.overall_sentiment}", self.logger)

        return PipelineResult(tweets_count=len(items), analyzed_count=batch.count, sentiment=sentiment)


def run_pipeline(
    query: str,
    settings: Settings,
    logger: Optional[Callable[[str], None]] = None,
) -> PipelineResult:
    return TweetPipeline(settings, logger=logger).run(query)
