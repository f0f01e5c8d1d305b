"""
Response constraints for every oracle line.

Plain JSON-Schema dicts. Each classifier schema has exactly one enum-valued
``action`` field; generator schemas describe one structured payload.
"""

from typing import Any, Dict, List

from src.models.actions import ActionType, DiagramOpType

PAUSED_ACTIONS: List[ActionType] = [
    ActionType.RESUME_PRESENTATION,
    ActionType.NO_OPERATION,
]

RUNNING_ACTIONS: List[ActionType] = [
    ActionType.PAUSE_PRESENTATION,
    ActionType.CHANGE_SUBJECT,
    ActionType.ADD_SINGLE_BULLET_POINT,
    ActionType.ADD_MULTIPLE_BULLET_POINTS,
    ActionType.BEGIN_DIAGRAM,
    ActionType.NO_OPERATION,
]

RUNNING_ACTIONS_NO_DIAGRAM: List[ActionType] = [
    action for action in RUNNING_ACTIONS if action != ActionType.BEGIN_DIAGRAM
]

DIAGRAM_ACTIONS: List[ActionType] = [
    ActionType.DIAGRAM_ACTION,
    ActionType.END_DIAGRAM,
    ActionType.NO_OPERATION,
]


def action_schema(actions: List[ActionType]) -> Dict[str, Any]:
    """Build a classifier schema allowing exactly the given action tokens."""
    return {
        "type": "object",
        "properties": {
            "action": {
                "type": "string",
                "enum": [action.value for action in actions],
            }
        },
        "required": ["action"],
    }


PAUSED_ACTION_SCHEMA = action_schema(PAUSED_ACTIONS)
RUNNING_ACTION_SCHEMA = action_schema(RUNNING_ACTIONS)
RUNNING_NO_DIAGRAM_ACTION_SCHEMA = action_schema(RUNNING_ACTIONS_NO_DIAGRAM)
DIAGRAM_ACTION_SCHEMA = action_schema(DIAGRAM_ACTIONS)

SUBJECT_CHANGE_INTENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "hasSubjectChangeIntent": {"type": "boolean"},
    },
    "required": ["hasSubjectChangeIntent"],
}

TITLE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
    },
    "required": ["title"],
}

BULLET_POINT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "text": {"type": "string"},
    },
    "required": ["text"],
}

MULTIPLE_BULLET_POINTS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "bulletPoints": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "text": {"type": "string"},
                },
                "required": ["text"],
            },
        },
    },
    "required": ["bulletPoints"],
}

DIAGRAM_ACTIONS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "actions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {
                        "type": "string",
                        "enum": [op.value for op in DiagramOpType],
                    },
                    "title": {"type": "string"},
                    "id": {"type": "string"},
                    "label": {"type": "string"},
                    "from": {"type": "string"},
                    "to": {"type": "string"},
                },
                "required": ["type"],
            },
        },
    },
    "required": ["actions"],
}
