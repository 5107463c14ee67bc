"""
Blurb generation for a chosen launch.

Gemini is asked for ``{summary, why_bullets[3], best_bullets[3]}`` and the
answer is poured into a fixed email template.  Two failure policies:

- STRICT (weekly batches): any LLM error or invalid field raises
  ContentGenerationError.  A week with a made-up blurb is worse than no
  update, so the caller aborts the whole batch.
- LENIENT (daily/monthly picks, previews): each invalid field falls back to
  a fixed default and the call never raises for LLM or parse problems.

Missing LLM credentials (ConfigurationError) are fatal in both modes.
"""

from __future__ import annotations

import html
import json
import re
from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from toolplug.curation.categories import Category
from toolplug.errors import ConfigurationError, ContentGenerationError
from toolplug.feed.models import CandidateItem
from toolplug.llm.prompts import get_blurb_system_prompt, get_blurb_user_prompt
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter, log_event
from toolplug.pipeline.periods import PeriodKind
from toolplug.utils.redaction import sanitize_for_prompt

logger = get_logger(__name__)

BULLET_COUNT = 3

DEFAULT_SUMMARY_FALLBACK = "A fresh Product Hunt launch."
DEFAULT_WHY_BULLETS = (
    "Useful out of the box ✨",
    "Focused workflow improvements ✅",
    "Simple setup 🛠️",
)
DEFAULT_BEST_BULLETS = (
    "Solo builders 🧑‍💻",
    "Small teams 👥",
    "Anyone trying new tools 🚀",
)

HEADLINES = {
    PeriodKind.DAY: "Daily Favorite",
    PeriodKind.WEEK: "Weekly Product Highlight",
    PeriodKind.MONTH: "Monthly Product Highlight",
}
SUBJECTS = {
    PeriodKind.DAY: "Daily Launch Favorite - {name}",
    PeriodKind.WEEK: "Weekly Product Launch Highlight - {name}",
    PeriodKind.MONTH: "Monthly Launch Highlight - {name}",
}

_H3 = '<h3 style="margin-bottom:0.4em;color:#000 !important;">{}</h3>'
_UL = '<ul style="margin-top:0.1em;margin-bottom:1.1em;color:#000 !important;">'
_LI = '<li style="color:#000 !important;">{}</li>'

PICK_TEMPLATE = """<div style="color:#000;">
<h2 style="font-size:1.5em;margin-bottom:0.3em;color:#000 !important;">📅 {headline}: {name} 🚀</h2>
{category_pill}{logo}{what_heading}
<p style="font-size:1.05em;margin-top:0;margin-bottom:1.1em;color:#000 !important;">{summary}</p>
{why_heading}
{why_list}
{best_heading}
{best_list}
<p style="margin-top:1.2em;">
👉 <a href="{link}" target="_blank" style="font-weight:bold;text-decoration:none;color:#3366cc;">Try {name}</a>
</p>
</div>"""

CATEGORY_PILL = (
    '<span style="display:inline-block;margin:8px 0 12px;padding:6px 10px;border-radius:999px;'
    'background:#f1f5f9;color:#0f172a;font-size:12px;font-weight:600;">Category: {label}</span>\n'
)
LOGO = (
    '<img src="{src}" alt="{name} logo" width="72" height="72" '
    'style="display:block;margin-bottom:18px;border-radius:14px;">\n'
)


class GenerationMode(str, Enum):
    STRICT = "strict"
    LENIENT = "lenient"


def _clean_bullets(value: object) -> list[str]:
    """Exactly BULLET_COUNT non-empty strings, stripped.

    Raises:
        ValueError: On any other shape
    """
    if not isinstance(value, list) or len(value) != BULLET_COUNT:
        raise ValueError(f"expected a list of exactly {BULLET_COUNT} bullets")
    cleaned = [bullet.strip() for bullet in value if isinstance(bullet, str) and bullet.strip()]
    if len(cleaned) != BULLET_COUNT:
        raise ValueError(f"expected {BULLET_COUNT} non-empty bullets, got {len(cleaned)}")
    return cleaned


class BlurbSchema(BaseModel):
    """Validated model answer."""

    summary: str
    why_bullets: list[str]
    best_bullets: list[str]

    @field_validator("summary")
    @classmethod
    def summary_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("summary must be non-empty")
        return v.strip()

    @field_validator("why_bullets", "best_bullets")
    @classmethod
    def three_bullets(cls, v: list[str]) -> list[str]:
        return _clean_bullets(v)


class GeneratedContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    body_html: str
    link: str
    product_name: str
    used_defaults: bool = False


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        counter("generator.code_fence")
        text = re.sub(r"^```(?:json)?\n?", "", text)
        text = re.sub(r"\n?```$", "", text)
    return text


def _lenient_blurb(raw: str | None, item: CandidateItem) -> tuple[BlurbSchema, bool]:
    """Best-effort parse: keep every valid field, default the rest."""
    summary = f"{item.tagline or DEFAULT_SUMMARY_FALLBACK} 🚀"
    why = list(DEFAULT_WHY_BULLETS)
    best = list(DEFAULT_BEST_BULLETS)
    defaulted = True

    data: object = None
    if raw:
        try:
            data = json.loads(_strip_code_fence(raw))
        except json.JSONDecodeError:
            data = None

    if isinstance(data, dict):
        defaulted = False
        if isinstance(data.get("summary"), str) and data["summary"].strip():
            summary = data["summary"].strip()
        else:
            defaulted = True
        for key, target in (("why_bullets", why), ("best_bullets", best)):
            try:
                target[:] = _clean_bullets(data.get(key))
            except ValueError:
                defaulted = True

    return BlurbSchema(summary=summary, why_bullets=why, best_bullets=best), defaulted


def render_pick_html(
    item: CandidateItem,
    blurb: BlurbSchema,
    kind: PeriodKind,
    category: Category | None = None,
) -> str:
    """Fill the email template. All model and feed text is HTML-escaped."""
    name = html.escape(item.name)
    category_pill = CATEGORY_PILL.format(label=html.escape(category.label)) if category else ""
    logo = (
        LOGO.format(src=html.escape(item.thumbnail_url, quote=True), name=name)
        if item.thumbnail_url
        else ""
    )

    def bullet_list(bullets: list[str]) -> str:
        items = "\n".join(_LI.format(html.escape(bullet)) for bullet in bullets)
        return f"{_UL}\n{items}\n</ul>"

    return PICK_TEMPLATE.format(
        headline=HEADLINES[kind],
        name=name,
        category_pill=category_pill,
        logo=logo,
        what_heading=_H3.format("What is it?"),
        summary=html.escape(blurb.summary),
        why_heading=_H3.format("Why you'll love it:"),
        why_list=bullet_list(blurb.why_bullets),
        best_heading=_H3.format("Best for:"),
        best_list=bullet_list(blurb.best_bullets),
        link=html.escape(item.site_url, quote=True),
    )


class ContentGenerator:
    """Turns one candidate into subject, HTML body and link."""

    def __init__(self, llm_call: Callable[..., str] | None = None):
        if llm_call is None:
            from toolplug.llm.retry import call_llm

            llm_call = call_llm
        self._llm_call = llm_call

    def _build_prompt(self, item: CandidateItem) -> str:
        return get_blurb_user_prompt(
            name=sanitize_for_prompt(item.name, max_length=120),
            tagline=sanitize_for_prompt(item.tagline, max_length=300),
            description=sanitize_for_prompt(item.description, max_length=1200),
            site=item.site_url,
        )

    def _ask(self, item: CandidateItem) -> str:
        return self._llm_call(
            self._build_prompt(item),
            counter_prefix="generator",
            system_instruction=get_blurb_system_prompt(),
        )

    def _strict_blurb(self, item: CandidateItem) -> BlurbSchema:
        try:
            raw = self._ask(item)
        except ConfigurationError:
            raise
        except Exception as e:
            counter("generator.strict.llm_error")
            raise ContentGenerationError(
                f"LLM call failed for {item.name}: {e}", product_name=item.name
            ) from e

        try:
            data = json.loads(_strip_code_fence(raw or ""))
            return BlurbSchema.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            counter("generator.strict.invalid")
            raise ContentGenerationError(
                f"Invalid blurb for {item.name}: {e}", product_name=item.name
            ) from e

    def _lenient(self, item: CandidateItem) -> tuple[BlurbSchema, bool]:
        try:
            raw = self._ask(item)
        except ConfigurationError:
            raise
        except Exception as e:
            # Lenient callers must always get something to show
            counter("generator.lenient.llm_error")
            logger.warning("LLM call failed for %s, using defaults: %s", item.name, e)
            raw = None
        return _lenient_blurb(raw, item)

    def generate(
        self,
        item: CandidateItem,
        category: Category | None = None,
        mode: GenerationMode = GenerationMode.STRICT,
        kind: PeriodKind = PeriodKind.WEEK,
    ) -> GeneratedContent:
        """
        Generate the email copy for one pick.

        Raises:
            ContentGenerationError: In STRICT mode, on LLM failure or any
                invalid field
            ConfigurationError: If no LLM backend is configured (both modes)
        """
        if mode is GenerationMode.STRICT:
            blurb, used_defaults = self._strict_blurb(item), False
        else:
            blurb, used_defaults = self._lenient(item)
            if used_defaults:
                counter("generator.lenient.defaults")

        log_event(
            "generator.generated",
            product=item.id,
            category=category.value if category else None,
            mode=mode.value,
            kind=kind.value,
            used_defaults=used_defaults,
        )
        return GeneratedContent(
            subject=SUBJECTS[kind].format(name=item.name),
            body_html=render_pick_html(item, blurb, kind, category),
            link=item.site_url,
            product_name=item.name,
            used_defaults=used_defaults,
        )
