"""Digest rendering: subject line, HTML body and run summary.

Rendering never fails. Missing optional fields fall back to placeholder
text, and a broken or missing template falls back to inline HTML.
"""

import html
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from focusroom.config import get_config, get_settings
from focusroom.core.datetime_utils import describe_elapsed, format_date, utc_now
from focusroom.core.logging import get_logger
from focusroom.digest.aggregator import ActivitySet

logger = get_logger(__name__)

template_dir = Path(__file__).parent.parent / "emails" / "templates"
jinja_env = Environment(loader=FileSystemLoader(template_dir), autoescape=True)


@dataclass
class DigestLine:
    headline: str
    detail: str = ""


@dataclass
class DigestSection:
    title: str
    lines: list[DigestLine]


@dataclass
class DigestReport:
    subject: str
    html: str
    content_summary: str
    has_activity: bool


def build_sections(activity: ActivitySet) -> list[DigestSection]:
    """Turn an ActivitySet into display sections, skipping empty streams."""
    sections = [
        DigestSection(
            "New Projects",
            [
                DigestLine(p.name or "Untitled Project", p.description or "No description")
                for p in activity.projects
            ],
        ),
        DigestSection(
            "New Tasks",
            [
                DigestLine(
                    t.title or "Untitled Task",
                    f"{t.description or 'No description'} (Priority: {t.priority or 'Normal'})",
                )
                for t in activity.tasks
            ],
        ),
        DigestSection(
            "New Events",
            [
                DigestLine(
                    e.title or "Untitled Event",
                    " ".join(
                        part
                        for part in (
                            e.description or "No description",
                            f"on {format_date(e.start_at)}" if e.start_at else "",
                        )
                        if part
                    ),
                )
                for e in activity.events
            ],
        ),
        DigestSection(
            "New Polls",
            [
                DigestLine(
                    p.question or "Untitled Poll",
                    f"(Ends {format_date(p.ends_at)})" if p.ends_at else "",
                )
                for p in activity.polls
            ],
        ),
        DigestSection(
            "New Spotlights",
            [
                DigestLine(
                    s.name or "Unnamed",
                    f"{s.title or 'Untitled'} ({s.type or 'spotlight'})",
                )
                for s in activity.spotlights
            ],
        ),
        DigestSection(
            "Community Feedback",
            [
                DigestLine(f"User feedback received ({f.status or 'open'})")
                for f in activity.feedback
            ],
        ),
    ]
    return [section for section in sections if section.lines]


def _render_fallback(
    title: str,
    period: str,
    sections: list[DigestSection],
    community_name: str,
    dashboard_url: str,
) -> str:
    if sections:
        body = "".join(
            f"<h3>{html.escape(section.title)}</h3><ul>"
            + "".join(
                f"<li><strong>{html.escape(line.headline)}</strong>"
                + (f" - {html.escape(line.detail)}" if line.detail else "")
                + "</li>"
                for line in section.lines
            )
            + "</ul>"
            for section in sections
        )
    else:
        body = (
            "<h2>Staying Connected</h2>"
            f"<p>No new activity in the past {html.escape(period)}, but we wanted to check in "
            f"and keep you connected with the {html.escape(community_name)} community.</p>"
        )

    return f"""
    <html>
    <body style="font-family: sans-serif; padding: 20px;">
        <h1>{html.escape(title)}</h1>
        <p>Activity from the past {html.escape(period)}</p>
        {body}
        <p>
            <a href="{html.escape(dashboard_url)}">
                Visit {html.escape(community_name)} Dashboard
            </a>
        </p>
    </body>
    </html>
    """


def render(activity: ActivitySet, now: datetime | None = None) -> DigestReport:
    """Render the digest for an ActivitySet."""
    config = get_config().digest
    settings = get_settings()
    now = now or utc_now()

    has_activity = activity.has_activity
    subject = f"{config.subject_prefix} - {'New Activity' if has_activity else 'Staying Connected'}"
    period = describe_elapsed(activity.since, now)
    sections = build_sections(activity)
    dashboard_url = f"{settings.base_url.rstrip('/')}/dashboard"

    try:
        template = jinja_env.get_template("weekly_digest.html")
        body = template.render(
            title=config.subject_prefix,
            period=period,
            sections=sections,
            has_activity=has_activity,
            community_name=config.community_name,
            dashboard_url=dashboard_url,
        )
    except Exception as e:
        logger.bind(error=str(e)).warning("digest_template_fallback")
        body = _render_fallback(
            config.subject_prefix, period, sections, config.community_name, dashboard_url
        )

    return DigestReport(
        subject=subject,
        html=body,
        content_summary=activity.summary(),
        has_activity=has_activity,
    )
