"""Text helpers: input sanitising and question-text placeholders.

Question texts may reference the caregiver's profile with two placeholders:

  - ``{{X}}``: the person being cared for (``caregiving_subject``)
  - ``{{Y}}``: the caregiver's own name (``name``)

Missing values fall back to neutral Spanish phrases.  Any other
placeholder renders as its own name, so a typo in authored copy shows up
verbatim instead of disappearing.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping

from jinja2 import Environment, TemplateSyntaxError, Undefined

from caregiver_questionnaire.constants import (
    DEFAULT_NAME_TEXT,
    DEFAULT_SUBJECT_TEXT,
    NAME_PLACEHOLDER,
    SUBJECT_PLACEHOLDER,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class _NameUndefined(Undefined):
    """Renders an unknown placeholder as its bare name."""

    def __str__(self) -> str:
        return self._undefined_name or ""


_env = Environment(undefined=_NameUndefined, autoescape=False, keep_trailing_newline=True)


def sanitize_string(value: str | None) -> str:
    """Trim and collapse internal whitespace runs to a single space."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def render_question_text(text: str, profile: Mapping[str, str | None] | None = None) -> str:
    """Fill ``{{X}}`` / ``{{Y}}`` in ``text`` from captured profile fields."""
    if "{{" not in text:
        return text
    profile = profile or {}
    context = {
        SUBJECT_PLACEHOLDER: sanitize_string(profile.get("caregiving_subject")) or DEFAULT_SUBJECT_TEXT,
        NAME_PLACEHOLDER: sanitize_string(profile.get("name")) or DEFAULT_NAME_TEXT,
    }
    try:
        return _env.from_string(text).render(context)
    except TemplateSyntaxError as exc:
        logger.warning("Question text is not a valid template (%s): %r", exc, text)
        return text
