"""Configuration constants.

Re-exports all defaults for convenient importing:
    from faqdesk.constants import STRONG_SIMILARITY, MAX_HISTORY_TURNS
"""

from faqdesk.constants.retrieval import *  # noqa: F403
from faqdesk.constants.conversation import *  # noqa: F403
from faqdesk.constants.tickets import *  # noqa: F403
from faqdesk.constants.llm import *  # noqa: F403
