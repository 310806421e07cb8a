"""Subject and HTML body of the periodic journal email."""
from datetime import date, timedelta
from html import escape


def frequency_label(frequency: str) -> str:
    return frequency[:1].upper() + frequency[1:]


def format_date_range(start: date, end_exclusive: date) -> str:
    last = end_exclusive - timedelta(days=1)
    return f"{start.strftime('%b')} {start.day}-{last.strftime('%b')} {last.day}, {last.year}"


def _long_date(d: date) -> str:
    return f"{d.strftime('%B')} {d.day}, {d.year}"


def build_subject(frequency: str, start: date, end_exclusive: date) -> str:
    return f"Your {frequency_label(frequency)} Journal - {format_date_range(start, end_exclusive)}"


def build_html(name: str, frequency: str, start: date, end_exclusive: date, entry_count: int) -> str:
    label = frequency_label(frequency)
    noun = "entry" if entry_count == 1 else "entries"
    last = end_exclusive - timedelta(days=1)
    return f"""
<div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #1a1a1a;">Your {label} Journal</h2>
  <p style="color: #4a4a4a; line-height: 1.6;">Hi {escape(name)},</p>
  <p style="color: #4a4a4a; line-height: 1.6;">
    Your journal for <strong>{_long_date(start)}</strong> through <strong>{_long_date(last)}</strong> is attached.
    This export includes {entry_count} {noun}.
  </p>
  <p style="color: #999; font-size: 13px; margin-top: 30px;">
    You received this email because you have an active {label.lower()} email subscription in Journalizer.
    To unsubscribe, visit your Settings page.
  </p>
</div>"""
