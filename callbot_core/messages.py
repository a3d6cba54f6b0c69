"""User-facing reply texts."""

TEXT_CONTEXT_SET = "Text context is set. Proceed with your query either by text or call."
TEXT_CONTEXT_DELETED = "Text context is deleted"
DOCUMENT_CONTEXT_SET = "Document context is set. Proceed with your query either by text or call."
MEETING_CONTEXT_SET = "Meeting context is set. Proceed with your query either by text or call."

WORKING_ON_IT = "Working on that, you can close this dialog now."
CALL_NOT_FOUND = "Call not found. It may have already ended or been transferred."
MEETING_NOT_FOUND = "Meeting not found. Are you calling this from a meeting chat?"
INCIDENT_CREATED = "Created incident call successfully."
UNKNOWN_COMMAND = "Sorry, I didn't get that. Say \"hi\" to see what I can do."

SOMETHING_WENT_WRONG = "Something went wrong 😖"


def something_went_wrong(detail: str | None = None) -> str:
    """Apology text, with the failure message appended when there is one."""
    if detail:
        return f"{SOMETHING_WENT_WRONG}. {detail}"
    return SOMETHING_WENT_WRONG
