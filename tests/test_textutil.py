"""Tests for input sanitising and {{X}}/{{Y}} placeholder rendering."""

from caregiver_questionnaire.textutil import render_question_text, sanitize_string


class TestSanitizeString:

    def test_trims_and_collapses_whitespace(self):
        assert sanitize_string("  Ana \n  María\t") == "Ana María"

    def test_empty_and_none(self):
        assert sanitize_string(None) == ""
        assert sanitize_string("   ") == ""


class TestRenderQuestionText:

    def test_fills_both_placeholders(self):
        text = "Hola, {{Y}}. ¿Cómo está {{X}}?"
        profile = {"name": "Ana", "caregiving_subject": "mi madre"}
        assert render_question_text(text, profile) == "Hola, Ana. ¿Cómo está mi madre?"

    def test_missing_fields_use_fallbacks(self):
        text = "Hola, {{Y}}. ¿Cómo está {{X}}?"
        assert render_question_text(text, {}) == (
            "Hola, Cuidadores. ¿Cómo está la persona que acompañas?"
        )

    def test_blank_field_uses_fallback(self):
        assert render_question_text("{{Y}}", {"name": "   "}) == "Cuidadores"

    def test_unknown_placeholder_renders_its_name(self):
        assert render_question_text("Hola {{Z}}", {}) == "Hola Z"

    def test_plain_text_is_untouched(self):
        assert render_question_text("¿Cómo te llamas?", None) == "¿Cómo te llamas?"

    def test_broken_template_returns_raw_text(self):
        text = "Hola {{Y"
        assert render_question_text(text, {"name": "Ana"}) == text
