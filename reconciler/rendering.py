"""
HTML rendering for change notifications and the weekly digest.
"""

from datetime import date
from html import escape
from typing import List, Optional

from reconciler.models import DigestEntry, StatusChangeNotification
from tracker.models import ACTIONABLE_STATUSES, LibraryStatus, TrackedBook

_FONT = "Inter, -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif"

DIGEST_SUBJECT = "📚 Next Reads Weekly Summary"


def format_status(status: Optional[LibraryStatus]) -> str:
    """Display label for a status."""
    if status is None:
        return "New"
    return status.label


def format_date(value: date) -> str:
    """Format as e.g. "Jan 23, 2024"."""
    return f"{value:%b} {value.day}, {value.year}"


def status_change_subject(notification: StatusChangeNotification) -> str:
    return f'📚 "{notification.title}" is now {format_status(notification.new_status)}'


def _footer(dashboard_url: str) -> str:
    return f"""
        <div style="margin-top: 32px; padding-top: 24px; border-top: 1px solid #e5e5e5;">
          <a href="{escape(dashboard_url)}"
             style="color: #0a0a0a; text-decoration: none; font-weight: 500;">
            View Full Dashboard →
          </a>
        </div>"""


def render_status_change(
    notification: StatusChangeNotification,
    catalog_url: Optional[str],
    dashboard_url: str,
) -> str:
    """
    Render the change email for one book.

    Args:
        notification: The transition to report
        catalog_url: Catalog page for the matched entry, if any
        dashboard_url: Link to the dashboard
    """
    action = ""
    if catalog_url and notification.new_status in ACTIONABLE_STATUSES:
        verb = "Borrow" if notification.new_status == LibraryStatus.AVAILABLE_TO_CHECKOUT else "Place Hold"
        action = f"""
        <a href="{escape(catalog_url)}"
           style="display: inline-block; background: #0a0a0a; color: white; text-decoration: none; padding: 12px 24px; border-radius: 6px; font-weight: 500; margin-bottom: 24px;">
          {verb} on Overdrive →
        </a>"""

    return f"""
      <div style="font-family: {_FONT}; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #0a0a0a; margin-bottom: 24px;">📚 Library Status Update</h1>

        <div style="background: #fafafa; border-radius: 8px; padding: 20px; margin-bottom: 24px;">
          <h2 style="color: #0a0a0a; font-size: 18px; margin: 0 0 8px 0;">{escape(notification.title)}</h2>
          <p style="color: #737373; margin: 0 0 16px 0;">by {escape(notification.author)}</p>

          <div style="background: white; border-radius: 6px; padding: 16px;">
            <p style="color: #737373; margin: 0 0 8px 0; font-size: 14px;">Status changed:</p>
            <p style="color: #0a0a0a; margin: 0; font-size: 16px;">
              <span style="text-decoration: line-through; color: #737373;">{format_status(notification.old_status)}</span>
              →
              <strong>{format_status(notification.new_status)}</strong>
            </p>
          </div>
        </div>
{action}
{_footer(dashboard_url)}
      </div>
    """


def render_weekly_digest(
    upcoming: List[TrackedBook],
    changes: List[DigestEntry],
    catalog_url_for,
    dashboard_url: str,
) -> str:
    """
    Render the weekly digest.

    Args:
        upcoming: Books releasing in the coming week, earliest first
        changes: Latest transition per book within the past week
        catalog_url_for: Callable mapping a catalog id to its page URL
        dashboard_url: Link to the dashboard
    """
    parts = [f"""
      <div style="font-family: {_FONT}; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #0a0a0a; margin-bottom: 24px;">📚 Next Reads Weekly Summary</h1>
    """]

    if upcoming:
        parts.append("""
        <h2 style="color: #0a0a0a; font-size: 18px; margin-top: 32px; margin-bottom: 16px;">📅 Releasing This Week</h2>
        <ul style="list-style: none; padding: 0;">""")
        for book in upcoming:
            parts.append(f"""
          <li style="margin-bottom: 12px; padding: 12px; background: #fafafa; border-radius: 6px;">
            <strong style="color: #0a0a0a;">{escape(book.title)}</strong> by {escape(book.author)}
            <br>
            <span style="color: #737373; font-size: 14px;">{format_date(book.release_date)}</span>
          </li>""")
        parts.append("</ul>")

    if changes:
        parts.append("""
        <h2 style="color: #0a0a0a; font-size: 18px; margin-top: 32px; margin-bottom: 16px;">📖 Library Updates</h2>
        <ul style="list-style: none; padding: 0;">""")
        for entry in changes:
            parts.append(f"""
          <li style="margin-bottom: 12px; padding: 12px; background: #fafafa; border-radius: 6px;">
            <strong style="color: #0a0a0a;">{escape(entry.title)}</strong>
            <br>
            <span style="color: #737373; font-size: 14px;">
              {format_status(entry.old_status)} → {format_status(entry.new_status)}
            </span>""")
            if entry.catalog_id and entry.current_status in ACTIONABLE_STATUSES:
                parts.append(f"""
            <br>
            <a href="{escape(catalog_url_for(entry.catalog_id))}"
               style="color: #0a0a0a; text-decoration: underline; font-size: 14px; margin-top: 4px; display: inline-block;">
              View on Overdrive →
            </a>""")
            parts.append("""
          </li>""")
        parts.append("</ul>")

    parts.append(_footer(dashboard_url))
    parts.append("""
      </div>
    """)
    return "".join(parts)
