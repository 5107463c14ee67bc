"""
Per-recipient additions to a pick's HTML: feedback votes and the
unsubscribe footer.
"""

from __future__ import annotations

from urllib.parse import quote, urlencode

from toolplug.config import SITE_NAME
from toolplug.pipeline.periods import PeriodKind
from toolplug.utils.email import b64url_email

FEEDBACK_SOURCES = {
    PeriodKind.DAY: "daily",
    PeriodKind.WEEK: "weekly",
    PeriodKind.MONTH: "monthly",
}

FEEDBACK_BLOCK = """<div style="margin-top:18px;padding:12px 14px;border:1px solid #eee;border-radius:12px">
<div style="font-weight:600;margin-bottom:8px">Did you enjoy this pick?</div>
<div>
<a href="{up}" style="display:inline-block;margin-right:10px;padding:.5rem .8rem;border-radius:10px;background:#16a34a;color:#fff;text-decoration:none">👍 Loved it</a>
<a href="{down}" style="display:inline-block;padding:.5rem .8rem;border-radius:10px;background:#ef4444;color:#fff;text-decoration:none">👎 Needs work</a>
</div>
<div style="margin-top:8px;font-size:12px;color:#666">Tap to vote, then leave an optional note.</div>
</div>
"""

UNSUBSCRIBE_FOOTER = (
    '<hr style="margin:24px 0;border:none;border-top:1px solid #eee">'
    '<p style="font-size:12px;color:#666">You\'re receiving this because you subscribed to '
    '{site}.<br><a href="{url}">Unsubscribe</a></p>'
)


def feedback_url(domain: str, source: str, product_name: str, vote: str, email: str | None) -> str:
    params = {"src": source, "pid": product_name, "v": vote}
    if email:
        params["e"] = b64url_email(email.lower())
    return f"https://{domain}/api/feedback?{urlencode(params, quote_via=quote)}"


def unsubscribe_url(domain: str, unsub_token: str) -> str:
    return f"https://{domain}/api/unsubscribe?token={quote(unsub_token, safe='')}"


def decorate(
    body_html: str,
    *,
    domain: str,
    kind: PeriodKind,
    product_name: str,
    email: str,
    unsub_token: str,
) -> str:
    """Pick HTML plus feedback block and unsubscribe footer for one recipient."""
    source = FEEDBACK_SOURCES[kind]
    feedback = FEEDBACK_BLOCK.format(
        up=feedback_url(domain, source, product_name, "up", email).replace("&", "&amp;"),
        down=feedback_url(domain, source, product_name, "down", email).replace("&", "&amp;"),
    )
    footer = UNSUBSCRIBE_FOOTER.format(site=SITE_NAME, url=unsubscribe_url(domain, unsub_token))
    return body_html + feedback + footer
