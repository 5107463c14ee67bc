"""Small HTML outcome pages for links clicked from email (confirm, unsubscribe)."""

from __future__ import annotations

import html

from fastapi.responses import HTMLResponse

PAGE_TEMPLATE = """<!doctype html>
<meta charset="utf-8">
<title>{title}</title>
<style>
  :root {{ color-scheme: light dark; }}
  body {{ font-family: system-ui,-apple-system,Segoe UI,Roboto,Arial,sans-serif; display:grid; place-items:center; min-height:100dvh; margin:0; background:#f8fafc; }}
  .card {{ background:#fff; padding:28px 32px; border-radius:16px; box-shadow:0 6px 24px rgba(0,0,0,.08); max-width:520px; text-align:center; }}
  h1 {{ margin:0 0 10px; font-size:26px; color:#7c3aed; }}
  p {{ margin:8px 0; color:#111827; }}
</style>
<body>
  <div class="card">
    <h1>{heading}</h1>
    <p>{message}</p>
  </div>
</body>"""


def render_page(title: str, heading: str, message: str, status_code: int = 200) -> HTMLResponse:
    content = PAGE_TEMPLATE.format(
        title=html.escape(title),
        heading=html.escape(heading),
        message=html.escape(message),
    )
    return HTMLResponse(content=content, status_code=status_code)


def confirmed_page() -> HTMLResponse:
    return render_page(
        "Confirmed",
        "You're confirmed 🎉",
        "You can return to your previous tab. It will update on its own.",
    )


def already_subscribed_page() -> HTMLResponse:
    return render_page(
        "Already Subscribed",
        "You've already subscribed!",
        "Wait for the Magic! ✨ Check your inbox soon.",
    )


def invalid_link_page() -> HTMLResponse:
    return render_page(
        "Invalid link",
        "Invalid or expired link",
        "This link has already been used or never existed.",
        status_code=404,
    )


def unsubscribed_page() -> HTMLResponse:
    return render_page("Unsubscribed", "Unsubscribed", "You've been removed from the list.")


def missing_token_page() -> HTMLResponse:
    return render_page("Missing token", "Missing token", "The link is incomplete.", status_code=400)
