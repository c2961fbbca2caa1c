"""Function-calling definitions for the writing agent's tools.

Names and argument keys are camelCase, as the agent sees them.
"""

_EDIT_FIELDS = {
    "selectionMode": {
        "type": "string",
        "enum": ["search", "section", "range"],
        "description": "How to select content.",
    },
    "searchText": {
        "type": "string",
        "description": "Text to search for (required when selectionMode='search').",
    },
    "sectionTitle": {
        "type": "string",
        "description": "Section heading to find (required when selectionMode='section').",
    },
    "startLine": {
        "type": "integer",
        "description": "0-based start line (required when selectionMode='range').",
    },
    "endLine": {
        "type": "integer",
        "description": (
            "0-based end line, exclusive (required when selectionMode='range' "
            "for replace and delete)."
        ),
    },
    "newContent": {
        "type": "string",
        "description": "New content (required for replace and insert operations).",
    },
}

WRITE_TO_EDITOR_TOOL = {
    "type": "function",
    "function": {
        "name": "writeToEditor",
        "description": (
            "Write markdown content to the document editor. Creates the document if the "
            "chat has none yet. Use action 'set' to replace everything, 'append' to add to "
            "the end, or 'prepend' to add to the beginning."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": ["set", "append", "prepend"],
                    "description": "How to combine the content with the existing document.",
                },
                "content": {
                    "type": "string",
                    "description": "Markdown content to write.",
                },
                "title": {
                    "type": "string",
                    "description": "Document title, used when the content has no '# ' heading.",
                },
            },
            "required": ["content"],
        },
    },
}

REPLACE_CONTENT_TOOL = {
    "type": "function",
    "function": {
        "name": "replaceContent",
        "description": (
            "Replace specific text in the document. Every exact occurrence of oldText is "
            "replaced; if there is none, the closest approximate match is replaced instead. "
            "Quote oldText from the document as precisely as you can."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "oldText": {"type": "string", "description": "The text to find."},
                "newText": {"type": "string", "description": "The replacement text."},
                "description": {
                    "type": "string",
                    "description": (
                        "Brief description of what changed (e.g. 'Updated citation format', "
                        "'Fixed grammar in introduction')."
                    ),
                },
            },
            "required": ["oldText", "newText"],
        },
    },
}

EDIT_CONTENT_TOOL = {
    "type": "function",
    "function": {
        "name": "editContent",
        "description": (
            "Make one targeted edit: select content by search text, section heading or "
            "line range, then replace or delete it."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                **_EDIT_FIELDS,
                "operation": {
                    "type": "string",
                    "enum": ["replace", "delete"],
                    "description": "What to do with the selected content.",
                },
            },
            "required": ["selectionMode"],
        },
    },
}

BATCH_EDIT_TOOL = {
    "type": "function",
    "function": {
        "name": "batchEdit",
        "description": (
            "Apply multiple edits to the document in a single operation. This creates only "
            "one version regardless of the number of edits. Edits run in order, each against "
            "the result of the previous one; an edit that fails is skipped."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "edits": {
                    "type": "array",
                    "description": "Edit operations to apply in sequence.",
                    "items": {
                        "type": "object",
                        "properties": {
                            "type": {
                                "type": "string",
                                "enum": ["replace", "delete", "insert"],
                                "description": "Type of edit operation.",
                            },
                            **_EDIT_FIELDS,
                        },
                        "required": ["type", "selectionMode"],
                    },
                },
                "summary": {
                    "type": "string",
                    "description": (
                        "Brief summary of all changes (e.g. 'Added 3 new sections and "
                        "reorganized the introduction')."
                    ),
                },
            },
            "required": ["edits", "summary"],
        },
    },
}

REMOVE_CITATIONS_TOOL = {
    "type": "function",
    "function": {
        "name": "removeCitations",
        "description": (
            "Remove numbered citation markers like [1] from the document and, optionally, "
            "the '## References' section at the end."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "removeReferencesSection": {
                    "type": "boolean",
                    "description": "Also remove the References section (default true).",
                },
            },
        },
    },
}

INSERT_CONTENT_TOOL = {
    "type": "function",
    "function": {
        "name": "insertContent",
        "description": (
            "Insert new content before or after a section, or at a specific line, "
            "without touching the rest of the document."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "position": {
                    "type": "string",
                    "enum": ["before-section", "after-section", "at-line"],
                    "description": "Where to insert.",
                },
                "sectionTitle": {
                    "type": "string",
                    "description": "Section heading (for before-section / after-section).",
                },
                "lineNumber": {
                    "type": "integer",
                    "description": "0-based line number (for at-line).",
                },
                "content": {"type": "string", "description": "Markdown content to insert."},
            },
            "required": ["position", "content"],
        },
    },
}

GET_DOCUMENT_STRUCTURE_TOOL = {
    "type": "function",
    "function": {
        "name": "getDocumentStructure",
        "description": (
            "Get the document's outline: its title, every heading with its level and line "
            "range, and the word count. Use this before section or range edits."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "includeContent": {
                    "type": "boolean",
                    "description": "Include each section's text (default false).",
                },
            },
        },
    },
}

PLAN_STEPS_TOOL = {
    "type": "function",
    "function": {
        "name": "planSteps",
        "description": (
            "Create or update a plan with steps for completing a complex task. Use this when "
            "you need to break down a task into multiple steps (like writing an article, essay, "
            "or research piece). Update the plan as you progress through the steps."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "steps": {
                    "type": "array",
                    "description": "List of steps in the plan.",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string", "description": "Short title for this step."},
                            "description": {
                                "type": "string",
                                "description": "Brief description of what this step involves.",
                            },
                            "status": {
                                "type": "string",
                                "enum": ["pending", "in_progress", "completed"],
                                "description": "Current status of this step.",
                            },
                        },
                        "required": ["title", "status"],
                    },
                },
            },
            "required": ["steps"],
        },
    },
}

GET_ACTIVE_PLAN_TOOL = {
    "type": "function",
    "function": {
        "name": "getActivePlan",
        "description": "Get the current chat's active plan and its steps, if there is one.",
        "parameters": {"type": "object", "properties": {}},
    },
}

COMPLETE_PLAN_TOOL = {
    "type": "function",
    "function": {
        "name": "completePlan",
        "description": "Mark a plan as completed. Defaults to the chat's active plan.",
        "parameters": {
            "type": "object",
            "properties": {
                "planId": {"type": "string", "description": "Plan to complete (optional)."},
            },
        },
    },
}

GET_PLAN_HISTORY_TOOL = {
    "type": "function",
    "function": {
        "name": "getPlanHistory",
        "description": "List every plan of the current chat, newest first.",
        "parameters": {"type": "object", "properties": {}},
    },
}

TOOL_DEFINITIONS = [
    WRITE_TO_EDITOR_TOOL,
    REPLACE_CONTENT_TOOL,
    EDIT_CONTENT_TOOL,
    BATCH_EDIT_TOOL,
    REMOVE_CITATIONS_TOOL,
    INSERT_CONTENT_TOOL,
    GET_DOCUMENT_STRUCTURE_TOOL,
    PLAN_STEPS_TOOL,
    GET_ACTIVE_PLAN_TOOL,
    COMPLETE_PLAN_TOOL,
    GET_PLAN_HISTORY_TOOL,
]
