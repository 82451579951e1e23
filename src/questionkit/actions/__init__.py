"""Query action collaborators: card transformations and query modes."""

from questionkit.actions.card_actions import (
    breakout,
    drill_underlying_records,
    filter,
    guess_visualization,
    pivot,
    start_new_card,
    summarize,
    to_underlying_records,
)
from questionkit.actions.modes import ClickAction, QueryMode, get_mode

__all__ = [
    "ClickAction",
    "QueryMode",
    "breakout",
    "drill_underlying_records",
    "filter",
    "get_mode",
    "guess_visualization",
    "pivot",
    "start_new_card",
    "summarize",
    "to_underlying_records",
]
