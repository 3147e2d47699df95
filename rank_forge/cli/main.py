"""RankForge CLI — rankforge command."""

from __future__ import annotations

import json
from typing import Any

import click

from rank_forge.cli.client import RankClient

PERIODS = ["daily", "weekly", "monthly", "yearly"]
TEMPLATE_TYPES = ["personal", "verified"]
CREDIT_TYPES = ["full_author", "contributor", "inspiration", "collaborator", "reviewer"]


def _format_table(rows: list[dict], columns: list[str]) -> str:
    """Simple table formatter."""
    if not rows:
        return "No results."
    widths = {c: len(c) for c in columns}
    for row in rows:
        for c in columns:
            widths[c] = max(widths[c], len(str(row.get(c, ""))))

    header = "  ".join(c.upper().ljust(widths[c]) for c in columns)
    separator = "  ".join("-" * widths[c] for c in columns)
    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(str(row.get(c, "")).ljust(widths[c]) for c in columns))
    return "\n".join(lines)


@click.group()
@click.option("--api", default="http://localhost:8400", envvar="RANKFORGE_API", help="API base URL")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.option("--actor", default=None, envvar="RANKFORGE_ACTOR", help="Acting user id")
@click.option(
    "--role",
    type=click.Choice(["user", "admin"]),
    default="user",
    envvar="RANKFORGE_ROLE",
    help="Acting user role",
)
@click.pass_context
def cli(
    ctx: click.Context, api: str, output_format: str, actor: str | None, role: str
) -> None:
    """RankForge CLI — template rankings, promotions, and author credits."""
    ctx.obj = RankClient(base_url=api, actor_id=actor, actor_role=role)
    ctx.meta["output_format"] = output_format


def _output(ctx: click.Context, data: Any, columns: list[str] | None = None) -> None:
    fmt = ctx.meta.get("output_format", "table")
    if fmt == "table" and isinstance(data, list) and columns:
        click.echo(_format_table(data, columns))
    else:
        click.echo(json.dumps(data, indent=2, default=str))


RANKING_COLUMNS = ["rank_position", "template_id", "template_type", "trend_score", "usage_count", "unique_users"]
PROMOTION_COLUMNS = ["id", "personal_template_id", "status", "priority", "quality_score"]


# --- Ranking commands ---


@cli.group()
def rankings() -> None:
    """Compute and inspect rankings."""


@rankings.command("compute")
@click.argument("period", type=click.Choice(PERIODS))
@click.option("--deadline", type=float, default=None, help="Seconds before remaining work is abandoned")
@click.pass_context
def rankings_compute(ctx: click.Context, period: str, deadline: float | None) -> None:
    """Recompute rankings for the current PERIOD."""
    client: RankClient = ctx.obj
    result = client.compute_rankings(period, deadline)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, result)
        return
    click.echo(
        f"Computed {result['calculated']} rankings for {period} "
        f"({result['personal_count']} personal, {result['verified_count']} verified, "
        f"{result['skipped']} without usage)"
    )
    for error in result.get("errors", []):
        click.echo(f"  failed: {error['template_type']}/{error['template_id']}: {error['message']}")
    if result.get("timed_out"):
        click.echo("  deadline exceeded; ranks were not reassigned")


@rankings.command("recalculate")
@click.option("--period", "periods", multiple=True, type=click.Choice(PERIODS))
@click.option("--days", default=30, type=int)
@click.pass_context
def rankings_recalculate(ctx: click.Context, periods: tuple[str, ...], days: int) -> None:
    """Backfill rankings over the last N days."""
    client: RankClient = ctx.obj
    results = client.recalculate(list(periods) or ["daily", "weekly", "monthly"], days)
    click.echo(f"Recalculated {len(results)} periods")


@rankings.command("trending")
@click.option("--period", type=click.Choice(PERIODS), default="weekly")
@click.option("--type", "template_type", type=click.Choice(TEMPLATE_TYPES), default=None)
@click.option("--limit", default=10, type=int)
@click.pass_context
def rankings_trending(
    ctx: click.Context, period: str, template_type: str | None, limit: int
) -> None:
    """Show trending templates."""
    client: RankClient = ctx.obj
    params: dict[str, Any] = {"period": period, "limit": limit}
    if template_type:
        params["template_type"] = template_type
    _output(ctx, client.trending(**params), RANKING_COLUMNS)


@rankings.command("top")
@click.option("--period", type=click.Choice(PERIODS), default="monthly")
@click.option("--metric", type=click.Choice(["usage", "users", "rating", "trend"]), default="trend")
@click.option("--limit", default=10, type=int)
@click.pass_context
def rankings_top(ctx: click.Context, period: str, metric: str, limit: int) -> None:
    """Show top performers by a single metric."""
    client: RankClient = ctx.obj
    _output(ctx, client.top_performers(period=period, metric=metric, limit=limit), RANKING_COLUMNS)


@rankings.command("competition")
@click.argument("template_type", type=click.Choice(TEMPLATE_TYPES))
@click.argument("template_id")
@click.option("--period", type=click.Choice(PERIODS), default="weekly")
@click.pass_context
def rankings_competition(
    ctx: click.Context, template_type: str, template_id: str, period: str
) -> None:
    """Show where a template stands among its competitors."""
    client: RankClient = ctx.obj
    data = client.competition(template_type, template_id, period)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, data)
        return
    if data["rank"] == 0:
        click.echo(f"{template_id} is not ranked for the current {period} period")
        return
    click.echo(
        f"{template_id}: rank {data['rank']} of {data['total_competitors']} "
        f"(percentile {data['percentile']:.1f})"
    )
    click.echo(_format_table(data["nearby"], RANKING_COLUMNS))


@rankings.command("history")
@click.argument("template_type", type=click.Choice(TEMPLATE_TYPES))
@click.argument("template_id")
@click.option("--period", type=click.Choice(PERIODS), default="weekly")
@click.option("--months", default=6, type=int)
@click.pass_context
def rankings_history(
    ctx: click.Context, template_type: str, template_id: str, period: str, months: int
) -> None:
    """Show a template's rank over time."""
    client: RankClient = ctx.obj
    data = client.history(template_type, template_id, period, months)
    _output(ctx, data, ["period_start", "rank_position", "trend_score"])


# --- Promotion commands ---


@cli.group()
def promotions() -> None:
    """Manage promotion requests."""


@promotions.command("list")
@click.option("--status", default=None)
@click.option("--pending", is_flag=True, help="Only pending and under-review requests")
@click.pass_context
def promotions_list(ctx: click.Context, status: str | None, pending: bool) -> None:
    """List promotion requests."""
    client: RankClient = ctx.obj
    if pending:
        data = client.pending_promotions()
    else:
        data = client.list_promotions(**({"status": status} if status else {}))
    _output(ctx, data, PROMOTION_COLUMNS)


@promotions.command("show")
@click.argument("request_id")
@click.pass_context
def promotions_show(ctx: click.Context, request_id: str) -> None:
    client: RankClient = ctx.obj
    _output(ctx, client.get_promotion(request_id))


@promotions.command("stats")
@click.pass_context
def promotions_stats(ctx: click.Context) -> None:
    """Show promotion workflow statistics."""
    client: RankClient = ctx.obj
    _output(ctx, client.promotion_stats())


@promotions.command("create")
@click.argument("template_id")
@click.option("--reason", required=True)
@click.option("--justification", default=None)
@click.option("--priority", type=click.Choice(["low", "medium", "high", "urgent"]), default="medium")
@click.option("--no-credit", is_flag=True, help="Do not credit the original author")
@click.pass_context
def promotions_create(
    ctx: click.Context,
    template_id: str,
    reason: str,
    justification: str | None,
    priority: str,
    no_credit: bool,
) -> None:
    """Request promotion of a personal template."""
    client: RankClient = ctx.obj
    data: dict[str, Any] = {
        "personal_template_id": template_id,
        "reason": reason,
        "priority": priority,
        "credit_to_author": not no_credit,
    }
    if justification:
        data["detailed_justification"] = justification
    result = client.create_promotion(data)
    click.echo(f"Created promotion request {result['id']} (quality {result['quality_score']})")


@promotions.command("review")
@click.argument("request_id")
@click.argument("action", type=click.Choice(["approve", "reject", "request_changes"]))
@click.option("--comments", "-m", required=True)
@click.pass_context
def promotions_review(ctx: click.Context, request_id: str, action: str, comments: str) -> None:
    """Review a promotion request."""
    client: RankClient = ctx.obj
    result = client.review_promotion(request_id, {"action": action, "comments": comments})
    click.echo(f"Request {request_id} is now {result['status']}")


@promotions.command("implement")
@click.argument("request_id")
@click.option("--verified-id", required=True, help="Id of the new verified template")
@click.option("--notes", default=None)
@click.option(
    "--credit-type",
    type=click.Choice(CREDIT_TYPES),
    default="full_author",
    show_default=True,
)
@click.pass_context
def promotions_implement(
    ctx: click.Context, request_id: str, verified_id: str, notes: str | None, credit_type: str
) -> None:
    """Mark an approved request implemented."""
    client: RankClient = ctx.obj
    result = client.implement_promotion(
        request_id,
        {
            "verified_template_id": verified_id,
            "implementation_notes": notes,
            "credit_type": credit_type,
        },
    )
    click.echo(f"Request {request_id} implemented as {verified_id}")
    if result.get("credit"):
        credit = result["credit"]
        click.echo(
            f"  credited {credit['original_author_id']}: {credit['points_awarded']} points "
            f"({credit['recognition_level']})"
        )


# --- Credit commands ---


@cli.group()
def credits() -> None:
    """Inspect author credits."""


@credits.command("list")
@click.argument("author_id")
@click.pass_context
def credits_list(ctx: click.Context, author_id: str) -> None:
    client: RankClient = ctx.obj
    _output(
        ctx,
        client.author_credits(author_id),
        ["id", "verified_template_id", "points_awarded", "recognition_level", "is_visible"],
    )


@credits.command("stats")
@click.argument("author_id")
@click.pass_context
def credits_stats(ctx: click.Context, author_id: str) -> None:
    """Show an author's credit totals."""
    client: RankClient = ctx.obj
    _output(ctx, client.author_stats(author_id))


@credits.command("hide")
@click.argument("credit_id")
@click.pass_context
def credits_hide(ctx: click.Context, credit_id: str) -> None:
    client: RankClient = ctx.obj
    client.set_credit_visibility(credit_id, {"is_visible": False})
    click.echo(f"Hidden credit {credit_id}")


@credits.command("show")
@click.argument("credit_id")
@click.pass_context
def credits_show_visible(ctx: click.Context, credit_id: str) -> None:
    """Make a hidden credit visible again."""
    client: RankClient = ctx.obj
    client.set_credit_visibility(credit_id, {"is_visible": True})
    click.echo(f"Credit {credit_id} is visible")


# --- Audit ---


@cli.command()
@click.option("--entity-type", default=None)
@click.option("--entity-id", default=None)
@click.option("--limit", default=50, type=int)
@click.pass_context
def audit(ctx: click.Context, entity_type: str | None, entity_id: str | None, limit: int) -> None:
    """Query the audit log."""
    client: RankClient = ctx.obj
    params: dict[str, Any] = {"limit": limit}
    if entity_type:
        params["entity_type"] = entity_type
    if entity_id:
        params["entity_id"] = entity_id
    _output(ctx, client.audit_query(**params), ["created_at", "action", "entity_id", "actor"])


if __name__ == "__main__":
    cli()
