from collections.abc import Callable, Mapping
from html import escape
from typing import Any

from ..config import settings

TemplateData = Mapping[str, Any]

_STYLE = """
        <style>
            body {
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                line-height: 1.6;
                color: #374151;
                max-width: 600px;
                margin: 0 auto;
                padding: 20px;
                background-color: #f9fafb;
            }
            .container {
                background-color: white;
                border-radius: 8px;
                padding: 32px;
                box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
            }
            .button {
                display: inline-block;
                background-color: #6366f1;
                color: white;
                text-decoration: none;
                padding: 12px 24px;
                border-radius: 6px;
                font-weight: 500;
                margin: 16px 0;
            }
            table { border-collapse: collapse; }
            th, td { border: 1px solid #e5e7eb; padding: 4px 8px; text-align: center; }
            .p-yes { background-color: #d1fae5; }
            .p-maybe { background-color: #fef3c7; }
            .p-no { background-color: #fee2e2; }
        </style>
"""


def poll_url(poll_id: object, suffix: str = "participate") -> str:
    return f"{settings.FRONTEND_URL}/poll/{poll_id}/{suffix}"


def _page(title: str, body: str) -> str:
    return f"""
    <html>
    <head>
        <meta charset="UTF-8">
        <title>{escape(title)}</title>
        {_STYLE}
    </head>
    <body>
        <div class="container">
            {body}
        </div>
    </body>
    </html>
    """


def render_participated(*, recipient_name: str, data: TemplateData) -> str:
    """Confirmation for a participant who left a mail address."""
    poll = data["poll"]
    url = poll_url(poll["id"])

    return _page(
        "Participated in Poll",
        f"""
            <h2>Hi {escape(recipient_name)},</h2>
            <p>you participated in the poll <b>{escape(poll["title"])}</b>.</p>
            <p>You can review or change your answers at any time:</p>
            <a href="{url}" class="button">Open poll</a>
        """,
    )


def render_participant(*, recipient_name: str, data: TemplateData) -> str:
    """Admin notification with one row per participant and one cell per event."""
    poll = data["poll"]
    url = poll_url(poll["id"])

    header = "".join(
        f"<th>{escape(event['label'])}</th>" for event in data["events"]
    )
    rows = "".join(
        "<tr><td>{name}</td>{cells}</tr>".format(
            name=escape(row["name"]),
            cells="".join(
                f'<td class="{marker["class"]}">{marker["icon"]}</td>'
                for marker in row["participation"]
            ),
        )
        for row in data["participants"]
    )

    return _page(
        "Updates in Poll",
        f"""
            <h2>Hi {escape(recipient_name)},</h2>
            <p>There is a new participation in your poll <b>{escape(poll["title"])}</b>:</p>
            <table>
                <tr><th></th>{header}</tr>
                {rows}
            </table>
            <a href="{url}" class="button">Open poll</a>
        """,
    )


def render_book(*, recipient_name: str, data: TemplateData) -> str:
    """Booking announcement; appointments marked with ``*`` were voted on."""
    poll = data["poll"]
    url = poll_url(poll["id"])
    appointments = "".join(
        f"<li>{escape(line)}</li>" for line in data["appointments"]
    )

    return _page(
        "Poll booked",
        f"""
            <h2>Hi {escape(recipient_name)},</h2>
            <p>The poll <b>{escape(poll["title"])}</b> has been booked for:</p>
            <ul>{appointments}</ul>
            <p><small>* you answered yes or maybe for this date.</small></p>
            <a href="{url}" class="button">Open poll</a>
        """,
    )


EMAIL_TEMPLATES: dict[str, Callable[..., str]] = {
    "participated": render_participated,
    "participant": render_participant,
    "book": render_book,
}


def render_template(template_name: str, recipient_name: str, data: TemplateData) -> str:
    try:
        renderer = EMAIL_TEMPLATES[template_name]
    except KeyError:
        raise ValueError(f"Unknown email template: {template_name}") from None
    return renderer(recipient_name=recipient_name, data=data)
