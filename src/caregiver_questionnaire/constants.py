"""Questionnaire constants shared across the SDK.

These values are referenced by the traversal engine, the guest buffer, the
scoring engine and the text templating helpers.

Several constants can be overridden via environment variables so that
deployments can adjust copy or storage keys without code changes.
"""

import os

# Key under which the guest buffer blob is stored in local storage.
# Overridable via GUEST_BUFFER_KEY env var.
GUEST_BUFFER_KEY = os.getenv("GUEST_BUFFER_KEY", "guest_onboarding_progress")

# WHO-5 raw score (0-25) is multiplied by this factor to get the 0-100 scale.
WHO5_SCORE_FACTOR = 4
WHO5_QUESTION_COUNT = 5
WHO5_MAX_ANSWER = 5

# Identifier of the standard WHO-5 definition seeded into the database.
WHO5_DEFINITION_ID = os.getenv("WHO5_DEFINITION_ID", "who-5")

# Default scoring policy for definitions of kind "scored" that do not name one.
DEFAULT_SCORING_POLICY = "sum"

# Label of the hidden option that carries a free-text question's edge.
PHANTOM_OPTION_LABEL = "Respuesta libre"

# Placeholder fallbacks used when the profile field has not been captured yet.
# {{X}} is the person being cared for, {{Y}} is the caregiver's own name.
SUBJECT_PLACEHOLDER = "X"
NAME_PLACEHOLDER = "Y"
DEFAULT_SUBJECT_TEXT = os.getenv("DEFAULT_SUBJECT_TEXT", "la persona que acompañas")
DEFAULT_NAME_TEXT = os.getenv("DEFAULT_NAME_TEXT", "Cuidadores")
