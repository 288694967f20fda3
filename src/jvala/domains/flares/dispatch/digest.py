"""Weekly digest — formats a WeeklyReport and hands it to a sender.

Delivery is fire-and-forget: ``dispatch_digest`` logs sender failures and
reports them in its return value, but never raises.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from jvala.core.storage.models import EngagementState, WeeklyReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DigestPayload:
    """A rendered digest, ready for any transport."""

    subject: str
    text: str
    html: str


@runtime_checkable
class DigestSender(Protocol):
    """Transport for digests (email, push, ...)."""

    def send(self, destination: str, payload: DigestPayload) -> None: ...


class LoggingDigestSender:
    """Logs digests instead of sending them. Keeps the last one for inspection."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, DigestPayload]] = []

    def send(self, destination: str, payload: DigestPayload) -> None:
        self.sent.append((destination, payload))
        # Subject only: the body holds health data
        logger.info("Digest for %s: %s", destination, payload.subject)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def build_digest(report: WeeklyReport, engagement: EngagementState | None = None) -> DigestPayload:
    """Render a report (and the user's streak, if any) as subject, text and HTML."""
    streak = engagement.current_streak if engagement else 0
    period = f"{report.week_start:%b %d} - {report.week_end:%b %d, %Y}"
    subject = f"Your Weekly Health Digest - {_plural(report.flare_count, 'flare')} this week"

    lines = [
        f"Your week: {period}",
        "",
        f"Health score: {report.health_score}/100 ({report.trend})",
        f"Flares: {report.flare_count}",
        f"Average severity: {report.avg_severity:.1f}",
        f"Logging consistency: {report.logging_consistency}%",
    ]
    if report.top_symptoms:
        lines.append(
            "Top symptoms: " + ", ".join(f"{s['name']} ({s['count']})" for s in report.top_symptoms)
        )
    if report.top_triggers:
        lines.append(
            "Top triggers: " + ", ".join(f"{t['name']} ({t['count']})" for t in report.top_triggers)
        )
    if report.key_insights:
        lines.append("")
        lines.append("Insights:")
        lines.extend(f"- {insight}" for insight in report.key_insights)
    if streak > 0:
        lines.append("")
        lines.append(f"{streak} Day Streak! Keep logging to uncover more insights about your health patterns.")
    text = "\n".join(lines)

    esc = html.escape
    parts = [
        "<html><body>",
        "<h1>Your Weekly Health Digest</h1>",
        f"<p>{esc(period)}</p>",
        "<table>",
        f"<tr><td>Health score</td><td>{report.health_score}/100 ({esc(report.trend)})</td></tr>",
        f"<tr><td>Flares</td><td>{report.flare_count}</td></tr>",
        f"<tr><td>Average severity</td><td>{report.avg_severity:.1f}</td></tr>",
        f"<tr><td>Logging consistency</td><td>{report.logging_consistency}%</td></tr>",
        "</table>",
    ]
    if report.top_symptoms:
        parts.append("<h2>Top symptoms</h2><ul>")
        parts.extend(f"<li>{esc(s['name'])} ({s['count']})</li>" for s in report.top_symptoms)
        parts.append("</ul>")
    if report.top_triggers:
        parts.append("<h2>Top triggers</h2><ul>")
        parts.extend(f"<li>{esc(t['name'])} ({t['count']})</li>" for t in report.top_triggers)
        parts.append("</ul>")
    if report.key_insights:
        parts.append("<h2>Insights</h2><ul>")
        parts.extend(f"<li>{esc(i)}</li>" for i in report.key_insights)
        parts.append("</ul>")
    if streak > 0:
        parts.append(f"<p><strong>{streak} Day Streak!</strong></p>")
    parts.append("</body></html>")

    return DigestPayload(subject=subject, text=text, html="".join(parts))


def dispatch_digest(sender: DigestSender, destination: str, payload: DigestPayload) -> bool:
    """Send a digest; failures are logged and reported as False."""
    try:
        sender.send(destination, payload)
    except Exception:
        logger.exception("Digest delivery to %s failed", destination)
        return False
    return True
