"""User-facing reply texts for the task agent."""

from __future__ import annotations

from boardbot.agent.types import TaskRecord

WORKSPACE_NOT_CONNECTED = (
    "❌ Your Slack workspace isn't connected to a board yet. "
    "Please contact your admin to set up the integration."
)
GENERIC_APOLOGY = "Sorry, I encountered an error processing your request. Please try again."

EMPTY_LIST = (
    "Your task list is empty! 🎉\n\n"
    "Add a task by saying something like 'Add call John about the project'."
)
ADD_NEEDS_TEXT = (
    "I couldn't understand what task you want to add. "
    "Try saying something like 'Add call John about the meeting'."
)
EDIT_NEEDS_TEXT = (
    "I couldn't understand what you want to change. "
    "Try saying something like 'Change task 1 to call Sarah instead'."
)
TASK_NOT_FOUND = "I couldn't find that task. Try saying 'list my tasks' first to see what's available."
EDIT_NEEDS_NUMBER = (
    "I couldn't find that task. "
    "Try specifying the task number, like 'Change task 1 to call Sarah'."
)
TASK_GONE = "That task doesn't exist anymore."

ADD_FAILED = "Sorry, I couldn't add that task. Please try again."
COMPLETE_FAILED = "Sorry, I couldn't complete that task. Please try again."
REMOVE_FAILED = "Sorry, I couldn't remove that task. Please try again."
EDIT_FAILED = "Sorry, I couldn't edit that task. Please try again."

HELP = """🤖 **Board Bot Help**

I can help you manage your tasks using natural language! Here's what I can do:

📋 **List tasks**: "What's on my list?" or "Show my tasks"
➕ **Add tasks**: "Add call John about pricing" or "Remind me to finish the report"
✅ **Complete tasks**: "Complete task 2" or "Mark the homepage redesign as done"
✏️ **Edit tasks**: "Change task 1 to call Sarah instead"
🗑️ **Remove tasks**: "Delete the meeting task" or "Remove task 3"

💡 **Tips:**
• I understand natural language - speak normally!
• Reference tasks by number or description
• I remember our recent conversation context

Try saying something like "Add prepare presentation for Monday"!"""

NOT_SURE_PREAMBLE = "I'm not sure what you want to do."
BE_MORE_SPECIFIC = (
    "I didn't quite understand that. "
    "Try being more specific, or say 'help' to see what I can do."
)

DONE_GLYPH = "✅"
PENDING_GLYPH = "⏳"


def task_list(tasks: list[TaskRecord]) -> str:
    lines = [
        f"{i}. {task.content} {DONE_GLYPH if task.checked else PENDING_GLYPH} _[{task.board_name}]_"
        for i, task in enumerate(tasks, start=1)
    ]
    completed = sum(1 for task in tasks if task.checked)
    pending = len(tasks) - completed
    body = "\n".join(lines)
    return f"📋 **Your Tasks:**\n\n{body}\n\n📊 *{pending} pending* • *{completed} completed*"


def added(task_text: str, board_name: str) -> str:
    return f"✅ **Added:** {task_text}\n_Added to {board_name} board_"


def completed(content: str) -> str:
    return f'🎉 **Great work!** "{content}" is now completed.'


def removed(content: str) -> str:
    return f"🗑️ **Removed:** {content}"


def edited(old: str, new: str) -> str:
    return f'✏️ **Updated:** "{old}" → "{new}"'


def unknown(confidence: float) -> str:
    if confidence < 0.3:
        return f"{NOT_SURE_PREAMBLE} {HELP}"
    return BE_MORE_SPECIFIC
