"""Prompts module."""
from prompts.services import (
    DEFAULT_TEMPLATES,
    get_history,
    save_prompt,
    clear_history,
    list_templates,
    save_template,
    delete_template
)

__all__ = [
    "DEFAULT_TEMPLATES",
    "get_history",
    "save_prompt",
    "clear_history",
    "list_templates",
    "save_template",
    "delete_template"
]
