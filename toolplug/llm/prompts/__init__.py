"""
Prompt templates for launch blurbs, kept as text files so the copy can be
tuned without touching code.
"""

from __future__ import annotations

from pathlib import Path

PROMPTS_DIR = Path(__file__).parent


class PromptLoader:
    """Load and cache prompt templates from files"""

    def __init__(self):
        self._cache: dict[str, str] = {}

    def load_prompt(self, prompt_name: str) -> str:
        if prompt_name not in self._cache:
            prompt_path = PROMPTS_DIR / f"{prompt_name}.txt"
            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")
            self._cache[prompt_name] = prompt_path.read_text(encoding="utf-8").strip()
        return self._cache[prompt_name]


_loader = PromptLoader()


def get_blurb_system_prompt() -> str:
    return _loader.load_prompt("blurb_system")


def get_blurb_user_prompt(**kwargs: str) -> str:
    """Product details formatted into the user prompt (name, tagline, description, site)."""
    return _loader.load_prompt("blurb_user").format(**kwargs)
