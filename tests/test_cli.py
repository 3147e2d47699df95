"""Tests for the rankforge CLI."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from rank_forge.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_client():
    with patch("rank_forge.cli.main.RankClient") as MockClass:
        client = MagicMock()
        MockClass.return_value = client
        yield client


class TestRankingCommands:
    def test_compute(self, runner, mock_client):
        mock_client.compute_rankings.return_value = {
            "calculated": 9,
            "personal_count": 6,
            "verified_count": 3,
            "skipped": 2,
            "errors": [{"template_type": "personal", "template_id": "t4", "message": "timeout"}],
            "timed_out": False,
        }
        result = runner.invoke(cli, ["rankings", "compute", "daily"])
        assert result.exit_code == 0
        assert "Computed 9 rankings" in result.output
        assert "personal/t4" in result.output
        mock_client.compute_rankings.assert_called_once_with("daily", None)

    def test_compute_rejects_unknown_period(self, runner, mock_client):
        result = runner.invoke(cli, ["rankings", "compute", "hourly"])
        assert result.exit_code != 0
        mock_client.compute_rankings.assert_not_called()

    def test_trending_table(self, runner, mock_client):
        mock_client.trending.return_value = [
            {"rank_position": 1, "template_id": "t2", "template_type": "personal",
             "trend_score": 61.2, "usage_count": 40, "unique_users": 12},
        ]
        result = runner.invoke(cli, ["rankings", "trending", "--period", "daily", "--type", "personal"])
        assert result.exit_code == 0
        assert "TEMPLATE_ID" in result.output
        assert "t2" in result.output
        mock_client.trending.assert_called_once_with(period="daily", limit=10, template_type="personal")

    def test_trending_json(self, runner, mock_client):
        mock_client.trending.return_value = [{"template_id": "t2"}]
        result = runner.invoke(cli, ["--format", "json", "rankings", "trending"])
        assert result.exit_code == 0
        assert json.loads(result.output) == [{"template_id": "t2"}]

    def test_competition_unranked(self, runner, mock_client):
        mock_client.competition.return_value = {"rank": 0, "total_competitors": 4, "nearby": []}
        result = runner.invoke(cli, ["rankings", "competition", "personal", "t9"])
        assert result.exit_code == 0
        assert "not ranked" in result.output


class TestPromotionCommands:
    def test_create(self, runner, mock_client):
        mock_client.create_promotion.return_value = {"id": "req-1", "quality_score": 7.4}
        result = runner.invoke(
            cli,
            ["--actor", "admin-1", "--role", "admin", "promotions", "create", "t1", "--reason", "popular"],
        )
        assert result.exit_code == 0
        assert "req-1" in result.output
        sent = mock_client.create_promotion.call_args[0][0]
        assert sent["personal_template_id"] == "t1"
        assert sent["credit_to_author"] is True

    def test_review(self, runner, mock_client):
        mock_client.review_promotion.return_value = {"status": "approved"}
        result = runner.invoke(cli, ["promotions", "review", "req-1", "approve", "-m", "great"])
        assert result.exit_code == 0
        assert "approved" in result.output
        mock_client.review_promotion.assert_called_once_with(
            "req-1", {"action": "approve", "comments": "great"}
        )

    def test_implement_reports_credit(self, runner, mock_client):
        mock_client.implement_promotion.return_value = {
            "request": {"status": "implemented"},
            "credit": {"original_author_id": "author-1", "points_awarded": 800, "recognition_level": "gold"},
        }
        result = runner.invoke(cli, ["promotions", "implement", "req-1", "--verified-id", "v1"])
        assert result.exit_code == 0
        assert "800 points" in result.output
        assert mock_client.implement_promotion.call_args[0][1]["credit_type"] == "full_author"

    def test_implement_credit_type(self, runner, mock_client):
        mock_client.implement_promotion.return_value = {"request": {"status": "implemented"}, "credit": None}
        result = runner.invoke(
            cli, ["promotions", "implement", "req-1", "--verified-id", "v1", "--credit-type", "contributor"]
        )
        assert result.exit_code == 0
        sent = mock_client.implement_promotion.call_args[0][1]
        assert sent["credit_type"] == "contributor"

    def test_list_pending(self, runner, mock_client):
        mock_client.pending_promotions.return_value = [
            {"id": "req-1", "personal_template_id": "t1", "status": "pending",
             "priority": "high", "quality_score": 7.1},
        ]
        result = runner.invoke(cli, ["promotions", "list", "--pending"])
        assert result.exit_code == 0
        assert "req-1" in result.output
        mock_client.list_promotions.assert_not_called()


class TestCreditCommands:
    def test_stats(self, runner, mock_client):
        mock_client.author_stats.return_value = {"total_credits": 2, "total_points": 1400}
        result = runner.invoke(cli, ["credits", "stats", "author-1"])
        assert result.exit_code == 0
        assert "1400" in result.output

    def test_hide(self, runner, mock_client):
        result = runner.invoke(cli, ["credits", "hide", "c1"])
        assert result.exit_code == 0
        mock_client.set_credit_visibility.assert_called_once_with("c1", {"is_visible": False})


def test_actor_headers_passed_to_client(runner):
    with patch("rank_forge.cli.main.RankClient") as MockClass:
        MockClass.return_value.audit_query.return_value = []
        result = runner.invoke(cli, ["--actor", "admin-1", "--role", "admin", "audit"])
    assert result.exit_code == 0
    MockClass.assert_called_once_with(
        base_url="http://localhost:8400", actor_id="admin-1", actor_role="admin"
    )
