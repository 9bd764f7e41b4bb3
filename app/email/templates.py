# app/email/templates.py
import html
from app.models.email import EmailContent

UNSUBSCRIBE_PLACEHOLDER = "{{UNSUBSCRIBE_URL}}"
FEEDBACK_PLACEHOLDER = "{{FEEDBACK_URL}}"

NEWSLETTER_NAME = "Daily System Design Newsletter"

_BASE_STYLE = """
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            color: #333;
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f9fafb;
        }
        .container {
            background-color: white;
            padding: 30px;
            border-radius: 8px;
            box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
        }
        .title {
            color: #1f2937;
            font-size: 24px;
            font-weight: 600;
            margin: 0;
        }
        .subtitle {
            color: #6b7280;
            font-size: 14px;
            margin: 5px 0 0 0;
        }
        .content {
            color: #374151;
            font-size: 16px;
            white-space: pre-wrap;
            margin: 30px 0;
        }
        .footer {
            border-top: 1px solid #e5e7eb;
            padding-top: 20px;
            font-size: 12px;
            color: #6b7280;
            text-align: center;
        }
        .footer a {
            color: #9ca3af;
        }
"""

def _wrap_html(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title)}</title>
    <style>{_BASE_STYLE}</style>
</head>
<body>
    <div class="container">
{body}
        <div class="footer">
            <p>{NEWSLETTER_NAME}</p>
            <p><a href="{UNSUBSCRIBE_PLACEHOLDER}">Unsubscribe</a></p>
        </div>
    </div>
</body>
</html>
"""

def render_newsletter_html(title: str, content: str) -> str:
    """Render an issue's plain content; the unsubscribe placeholder is left for per-user substitution"""
    body = f"""        <h1 class="title">{html.escape(title)}</h1>
        <p class="subtitle">{NEWSLETTER_NAME}</p>
        <div class="content">{html.escape(content)}</div>"""
    return _wrap_html(title, body)

def render_newsletter_text(title: str, content: str) -> str:
    return f"""{title}
{NEWSLETTER_NAME}

{content}

---
Unsubscribe: {UNSUBSCRIBE_PLACEHOLDER}
"""

def welcome_content() -> EmailContent:
    subject = f"Welcome to the {NEWSLETTER_NAME}"
    body = f"""        <h1 class="title">Welcome aboard!</h1>
        <p class="subtitle">{NEWSLETTER_NAME}</p>
        <div class="content">Thanks for subscribing. Starting tomorrow you will get one system design topic in your inbox every day.

Each issue takes about five minutes to read.</div>"""
    text = f"""Welcome aboard!

Thanks for subscribing to the {NEWSLETTER_NAME}. Starting tomorrow you will get one system design topic in your inbox every day.

Each issue takes about five minutes to read.

---
Unsubscribe: {UNSUBSCRIBE_PLACEHOLDER}
"""
    return EmailContent(subject=subject, html=_wrap_html(subject, body), text=text)

def launch_announcement_content() -> EmailContent:
    subject = f"The {NEWSLETTER_NAME} has launched"
    body = f"""        <h1 class="title">We're live</h1>
        <p class="subtitle">{NEWSLETTER_NAME}</p>
        <div class="content">Daily issues now follow a structured syllabus, from load balancers to consensus protocols.

Every issue ends with a short quiz so you can check what stuck.</div>"""
    text = f"""We're live

Daily issues now follow a structured syllabus, from load balancers to consensus protocols.

Every issue ends with a short quiz so you can check what stuck.

---
Unsubscribe: {UNSUBSCRIBE_PLACEHOLDER}
"""
    return EmailContent(subject=subject, html=_wrap_html(subject, body), text=text)

def product_update_content() -> EmailContent:
    subject = f"{NEWSLETTER_NAME} - January 2026 Updates"
    body = f"""        <h1 class="title">What's new this month</h1>
        <p class="subtitle">{NEWSLETTER_NAME}</p>
        <div class="content">Issues are now shorter, with diagrams in every deep dive, and you can browse the full archive online.

We would love to hear what you think: <a href="{FEEDBACK_PLACEHOLDER}">share your feedback</a>.</div>"""
    text = f"""What's new this month

Issues are now shorter, with diagrams in every deep dive, and you can browse the full archive online.

We would love to hear what you think: {FEEDBACK_PLACEHOLDER}

---
Unsubscribe: {UNSUBSCRIBE_PLACEHOLDER}
"""
    return EmailContent(subject=subject, html=_wrap_html(subject, body), text=text)
