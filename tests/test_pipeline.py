import pytest

from pipelines.core import PipelineStage, TweetPipeline
from pipelines.errors import (
    CollectionError,
    CollectionErrorKind,
    InferenceError,
    InferenceErrorKind,
    PipelineError,
    SessionError,
    SessionErrorKind,
)
from scraper.session import AUTH_LANDMARK, SessionManager

from helpers import (
    FakeHttp,
    FakePage,
    FakePlaywright,
    FakeResponse,
    completion,
    fenced,
    make_settings,
    raw_post,
    record_json,
)

RESULT_SELECTOR = 'article[data-testid="tweet"]'


def make_pipeline(page, http, settings=None, **kwargs):
    settings = settings or make_settings()
    pw = FakePlaywright(page=page)
    manager = SessionManager(settings, playwright_factory=pw.factory)
    return TweetPipeline(settings, session_manager=manager, http=http, **kwargs), pw


def fifteen_posts():
    raws = [raw_post(f"$FOO holders are early, post #{i}") for i in range(13)]
    raws.insert(4, raw_post("gm"))
    raws.insert(9, raw_post("wagmi"))
    return raws


def test_scenario_a_happy_path():
    page = FakePage(present=[AUTH_LANDMARK, RESULT_SELECTOR], raw_items=fifteen_posts())
    http = FakeHttp(completion(fenced(record_json(totalAnalyzed=13))))
    lines = []
    pipeline, pw = make_pipeline(page, http, logger=lines.append)

    result = pipeline.run("$FOO token")

    assert result.tweets_count == 15
    assert result.analyzed_count == 13
    assert result.sentiment.total_analyzed == 13
    assert result.sentiment.overall_sentiment in {"Bullish", "Bearish", "Neutral"}
    assert result.sentiment.confidence in {"High", "Medium", "Low"}
    assert result.sentiment.trade_signal in {"Buy", "Sell", "Hold"}

    prompt = http.calls[0]["json"]["messages"][0]["content"]
    assert "\ngm\n" not in prompt and "\nwagmi\n" not in prompt
    assert prompt.count("$FOO holders are early") == 13

    assert result.stages == [
        PipelineStage.IDLE,
        PipelineStage.SESSION_ESTABLISHING,
        PipelineStage.COLLECTING,
        PipelineStage.FILTERING,
        PipelineStage.ANALYZING,
        PipelineStage.DONE,
    ]
    assert pw.browser.close_calls == 1
    assert any("Posts after filtering: 13" in line for line in lines)

    response = result.to_response()
    assert response["tweetsCount"] == 15
    assert response["sentiment"]["totalAnalyzed"] == 13


def test_scenario_b_auth_landmark_missing():
    page = FakePage(present=[RESULT_SELECTOR], raw_items=fifteen_posts())
    http = FakeHttp(completion(record_json()))
    pipeline, pw = make_pipeline(page, http)

    with pytest.raises(PipelineError) as excinfo:
        pipeline.run("$FOO token")

    err = excinfo.value
    assert isinstance(err.cause, SessionError)
    assert err.kind is SessionErrorKind.AUTH_FAILED
    assert err.stage == PipelineStage.SESSION_ESTABLISHING.value
    assert err.__cause__ is err.cause
    assert pipeline.stage is PipelineStage.FAILED
    assert pw.browser.close_calls == 1
    assert http.calls == []


def test_scenario_c_rate_limited_inference():
    page = FakePage(present=[AUTH_LANDMARK, RESULT_SELECTOR], raw_items=fifteen_posts())
    http = FakeHttp(FakeResponse(429, "Too Many Requests"))
    pipeline, pw = make_pipeline(page, http)

    with pytest.raises(PipelineError) as excinfo:
        pipeline.run("$FOO token")

    assert isinstance(excinfo.value.cause, InferenceError)
    assert excinfo.value.kind is InferenceErrorKind.TRANSPORT_ERROR
    assert excinfo.value.stage == PipelineStage.ANALYZING.value
    assert len(http.calls) == 1
    assert pw.browser.close_calls == 1


def test_scenario_d_fenced_zero_total():
    page = FakePage(present=[AUTH_LANDMARK, RESULT_SELECTOR], raw_items=[raw_post("gm"), raw_post("ser")])
    content = '```json\n{"totalAnalyzed":0,"overallSentiment":"Neutral","promotionalCount":0,"verifiedCount":0,"keyTakeaways":[]}\n```'
    pipeline, _ = make_pipeline(page, FakeHttp(completion(content)))

    result = pipeline.run("$QUIET")

    assert result.tweets_count == 2
    assert result.analyzed_count == 0
    assert result.sentiment.total_analyzed == 0


def test_no_results_fails_collecting_stage_and_tears_down():
    page = FakePage(present=[AUTH_LANDMARK])
    pipeline, pw = make_pipeline(page, FakeHttp(completion(record_json())))

    with pytest.raises(PipelineError) as excinfo:
        pipeline.run("$NOTHING")

    assert isinstance(excinfo.value.cause, CollectionError)
    assert excinfo.value.kind is CollectionErrorKind.NO_RESULTS_FOUND
    assert excinfo.value.stage == PipelineStage.COLLECTING.value
    assert pw.browser.close_calls == 1


def test_malformed_model_output_is_never_a_partial_record():
    page = FakePage(present=[AUTH_LANDMARK, RESULT_SELECTOR], raw_items=fifteen_posts())
    pipeline, pw = make_pipeline(page, FakeHttp(completion('{"totalAnalyzed": 5,')))

    with pytest.raises(PipelineError) as excinfo:
        pipeline.run("$FOO")

    assert excinfo.value.kind is InferenceErrorKind.MALFORMED_JSON
    assert pw.browser.close_calls == 1


def test_teardown_runs_on_unexpected_errors():
    page = FakePage(present=[AUTH_LANDMARK, RESULT_SELECTOR], raw_items=fifteen_posts())

    def broken_collector(session, query, opts):
        raise KeyError("boom")

    pipeline, pw = make_pipeline(page, FakeHttp(completion(record_json())), collector=broken_collector)

    with pytest.raises(PipelineError) as excinfo:
        pipeline.run("$FOO")

    assert isinstance(excinfo.value.cause, KeyError)
    assert pw.browser.close_calls == 1


def test_pipeline_runs_once():
    page = FakePage(present=[AUTH_LANDMARK, RESULT_SELECTOR], raw_items=fifteen_posts())
    pipeline, pw = make_pipeline(page, FakeHttp(completion(fenced(record_json()))))
    pipeline.run("$FOO")

    with pytest.raises(RuntimeError):
        pipeline.run("$FOO")
    assert pw.browser.close_calls == 1
