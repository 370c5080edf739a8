"""Unit tests for issue models, aggregation and subscription."""

import asyncio
from unittest.mock import MagicMock

import pytest

from pagewatch.collector.aggregator import (
    AGGREGATED_ISSUE_UPDATED,
    IssueAggregator,
    create_issues_from_protocol_issue,
)
from pagewatch.collector.issues import (
    ISSUE_ADDED_EVENT,
    IssueDeduper,
    IssueSubscription,
)
from pagewatch.models.issues import AggregatedIssue, Issue


def cookie_issue(name: str = "sid", reason: str = "ExcludeSameSiteLax") -> Issue:
    return Issue(
        code="CookieIssue",
        details={
            "cookieIssueDetails": {
                "cookie": {"name": name, "domain": "example.com", "path": "/"},
                "cookieExclusionReasons": [reason],
                "operation": "SetCookie",
            }
        },
    )


class TestIssueModel:
    """Tests for Issue and AggregatedIssue models."""

    def test_primary_key_ignores_detail_order(self):
        first = Issue(code="GenericIssue", details={"a": 1, "b": 2})
        second = Issue(code="GenericIssue", details={"b": 2, "a": 1})
        assert first.primary_key() == second.primary_key()

    def test_primary_key_differs_by_details(self):
        assert cookie_issue("a").primary_key() != cookie_issue("b").primary_key()

    def test_aggregation_key_groups_same_problem(self):
        assert cookie_issue("a").aggregation_key() == cookie_issue("b").aggregation_key()

    def test_aggregation_key_separates_reasons(self):
        lax = cookie_issue(reason="ExcludeSameSiteLax")
        strict = cookie_issue(reason="ExcludeSameSiteStrict")
        assert lax.aggregation_key() != strict.aggregation_key()

    def test_unknown_code_aggregates_by_code(self):
        issue = Issue(code="FutureIssue", details={"x": 1})
        assert issue.aggregation_key() == "FutureIssue"

    def test_empty_code_rejected(self):
        with pytest.raises(ValueError):
            Issue(code="")


class TestCreateIssues:
    """Tests for create_issues_from_protocol_issue."""

    def test_builds_issue(self):
        issues = create_issues_from_protocol_issue(
            {"code": "HeavyAdIssue", "details": {"heavyAdIssueDetails": {"reason": "CpuTotalLimit"}}, "issueId": "7"}
        )
        assert len(issues) == 1
        assert issues[0].code == "HeavyAdIssue"
        assert issues[0].issue_id == "7"

    @pytest.mark.parametrize("payload", [None, "text", {}, {"code": ""}, {"code": "X", "details": []}])
    def test_unusable_payloads(self, payload):
        assert create_issues_from_protocol_issue(payload) == []


class TestIssueAggregator:
    """Tests for IssueAggregator class."""

    def test_same_aggregate_object_across_updates(self):
        aggregator = IssueAggregator()
        updates = []
        aggregator.add_listener(AGGREGATED_ISSUE_UPDATED, updates.append)

        aggregator.ingest_raw(cookie_issue("a"))
        aggregator.ingest_raw(cookie_issue("b"))

        assert len(updates) == 2
        assert updates[0] is updates[1]
        assert isinstance(updates[0], AggregatedIssue)
        assert updates[0].count == 2

    def test_different_problems_get_different_aggregates(self):
        aggregator = IssueAggregator()
        aggregator.ingest_raw(cookie_issue(reason="ExcludeSameSiteLax"))
        aggregator.ingest_raw(cookie_issue(reason="ExcludeSameSiteStrict"))
        assert len(aggregator.aggregated_issues()) == 2

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            IssueAggregator().add_listener("other", print)

    def test_listener_errors_do_not_stop_aggregation(self):
        aggregator = IssueAggregator()
        aggregator.add_listener(AGGREGATED_ISSUE_UPDATED, MagicMock(side_effect=RuntimeError("boom")))
        updates = []
        aggregator.add_listener(AGGREGATED_ISSUE_UPDATED, updates.append)

        aggregator.ingest_raw(cookie_issue())

        assert len(updates) == 1

    def test_remove_listener(self):
        aggregator = IssueAggregator()
        updates = []
        aggregator.add_listener(AGGREGATED_ISSUE_UPDATED, updates.append)
        aggregator.remove_listener(AGGREGATED_ISSUE_UPDATED, updates.append)

        aggregator.ingest_raw(cookie_issue())

        assert updates == []


class TestIssueDeduper:
    """Tests for IssueDeduper class."""

    def test_identical_issues_forwarded_once(self, page):
        deduper = IssueDeduper()
        forward = MagicMock()
        deduper.register(page, forward)

        assert deduper.offer(page, cookie_issue()) is True
        assert deduper.offer(page, cookie_issue()) is False

        forward.assert_called_once()
        assert deduper.seen_count(page) == 1

    def test_keys_are_tracked_per_page(self, page, context):
        deduper = IssueDeduper()
        other = context.new_page("other")
        forward = MagicMock()
        deduper.register(page, forward)
        deduper.register(other, forward)

        deduper.offer(page, cookie_issue())
        deduper.offer(other, cookie_issue())

        assert forward.call_count == 2

    def test_unknown_page_is_noop(self, page):
        assert IssueDeduper().offer(page, cookie_issue()) is False

    def test_unregister_drops_keys(self, page):
        deduper = IssueDeduper()
        deduper.register(page, MagicMock())
        deduper.offer(page, cookie_issue())

        deduper.unregister(page)

        assert deduper.seen_count(page) == 0
        assert deduper.offer(page, cookie_issue()) is False


class TestIssueSubscription:
    """Tests for IssueSubscription class."""

    @pytest.fixture
    def updates(self):
        return []

    @pytest.fixture
    def subscription(self, page, updates):
        return IssueSubscription(page, IssueDeduper(), updates.append)

    @pytest.mark.asyncio
    async def test_start_enables_audits(self, subscription, context, page):
        assert await subscription.start() is True

        session = context.sessions[page]
        session.send.assert_awaited_once_with("Audits.enable")
        assert session.listener_count(ISSUE_ADDED_EVENT) == 1

    @pytest.mark.asyncio
    async def test_start_without_audits(self, subscription, context, page):
        assert await subscription.start(enable_audits=False) is True
        context.sessions[page].send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_failure_is_logged(self, subscription, context):
        context.cdp_error = RuntimeError("not chromium")
        assert await subscription.start() is False
        assert subscription.session is None

    @pytest.mark.asyncio
    async def test_repeated_raw_issue_aggregated_once(self, subscription, context, page, updates, issue_event):
        await subscription.start()
        session = context.sessions[page]

        event = issue_event("GenericIssue", genericIssueDetails={"errorType": "FormLabelForNameError"})
        session.emit(ISSUE_ADDED_EVENT, event)
        session.emit(ISSUE_ADDED_EVENT, event)

        assert len(updates) == 1
        assert updates[0].count == 1

    @pytest.mark.asyncio
    async def test_similar_issues_update_same_aggregate(self, subscription, context, page, updates, issue_event):
        await subscription.start()
        session = context.sessions[page]

        session.emit(ISSUE_ADDED_EVENT, issue_event("GenericIssue", genericIssueDetails={"errorType": "E", "violatingNodeId": 1}))
        session.emit(ISSUE_ADDED_EVENT, issue_event("GenericIssue", genericIssueDetails={"errorType": "E", "violatingNodeId": 2}))

        assert len(updates) == 2
        assert updates[0] is updates[1]
        assert updates[1].count == 2

    @pytest.mark.asyncio
    async def test_unparseable_issue_ignored(self, subscription, context, page, updates):
        await subscription.start()
        context.sessions[page].emit(ISSUE_ADDED_EVENT, {"issue": {}})
        context.sessions[page].emit(ISSUE_ADDED_EVENT, None)
        assert updates == []

    @pytest.mark.asyncio
    async def test_close_detaches_session(self, subscription, context, page, updates, issue_event):
        await subscription.start()
        session = context.sessions[page]

        subscription.close()
        await asyncio.sleep(0)

        assert session.listener_count(ISSUE_ADDED_EVENT) == 0
        session.detach.assert_awaited_once()
        assert subscription.session is None
