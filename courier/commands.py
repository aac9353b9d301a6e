"""Slash command definitions registered with the platform."""

from typing import Any

from courier.core.interactions import ASK_COMMAND, CLEAR_COMMAND

_STRING_OPTION = 3

COMMANDS: list[dict[str, Any]] = [
    {
        "name": ASK_COMMAND,
        "description": "Ask the AI a question",
        "options": [
            {
                "name": "question",
                "description": "What would you like to ask?",
                "type": _STRING_OPTION,
                "required": True,
            }
        ],
    },
    {
        "name": CLEAR_COMMAND,
        "description": "Delete the bot's messages in this DM",
    },
]
