from __future__ import annotations

from .types import TypeDescriptor

MANUAL_TRIGGER = "n8n-nodes-base.manualTrigger"
SCHEDULE_TRIGGER = "n8n-nodes-base.scheduleTrigger"
WEBHOOK_TRIGGER = "n8n-nodes-base.webhook"
EMAIL_TRIGGER = "n8n-nodes-base.gmailTrigger"
FILE_TRIGGER = "n8n-nodes-base.localFileTrigger"

IF = "n8n-nodes-base.if"
SWITCH = "n8n-nodes-base.switch"
FILTER = "n8n-nodes-base.filter"
SET = "n8n-nodes-base.set"
MERGE = "n8n-nodes-base.merge"
CODE = "n8n-nodes-base.code"
HTTP_REQUEST = "n8n-nodes-base.httpRequest"
SLACK = "n8n-nodes-base.slack"
SEND_EMAIL = "n8n-nodes-base.send-email"
POSTGRES = "n8n-nodes-base.postgres"
READ_WRITE_FILE = "n8n-nodes-base.readWriteFile"
GOOGLE_SHEETS = "n8n-nodes-base.googleSheets"
TWILIO = "n8n-nodes-base.twilio"

# Non-trigger fallback for unknown mappings and for nodes with no type at all.
GENERIC_STEP = CODE

# Retired type identifiers and their current replacements.
DEPRECATED_TYPES: dict[str, str] = {
    "n8n-nodes-base.emailSend": SEND_EMAIL,
    "n8n-nodes-base.function": CODE,
    "n8n-nodes-base.functionItem": CODE,
}

GENERIC_DESCRIPTOR = TypeDescriptor(
    type_id=GENERIC_STEP,
    input_arity=1,
    output_arity=1,
    required_params=frozenset({"jsCode"}),
    description="Run custom code against incoming items",
)


def _type(
    type_id: str,
    inputs: int,
    outputs: int,
    *required: str,
    trigger: bool = False,
    description: str = "",
) -> TypeDescriptor:
    return TypeDescriptor(
        type_id=type_id,
        input_arity=inputs,
        output_arity=outputs,
        is_trigger=trigger,
        required_params=frozenset(required),
        description=description,
    )


BUILTIN_TYPES: list[TypeDescriptor] = [
    # --- Triggers ---
    _type(MANUAL_TRIGGER, 0, 1, trigger=True, description="Start the workflow on demand"),
    _type(SCHEDULE_TRIGGER, 0, 1, "rule", trigger=True, description="Start the workflow on a cron schedule"),
    _type(WEBHOOK_TRIGGER, 0, 1, "httpMethod", "path", trigger=True, description="Start the workflow on an incoming HTTP call"),
    _type(EMAIL_TRIGGER, 0, 1, "filters", trigger=True, description="Start the workflow when matching email arrives"),
    _type(FILE_TRIGGER, 0, 1, "path", trigger=True, description="Start the workflow when a watched file changes"),
    # --- Flow control ---
    _type(IF, 1, 2, "conditions", description="Route items by a boolean condition"),
    _type(SWITCH, 1, 4, "rules", description="Route items to one of several outputs"),
    _type(FILTER, 1, 1, "conditions", description="Drop items that fail a condition"),
    _type(MERGE, 2, 1, "mode", description="Combine two input streams"),
    # --- Data ---
    _type(SET, 1, 1, "assignments", description="Set or reshape item fields"),
    GENERIC_DESCRIPTOR,
    # --- Services ---
    _type(HTTP_REQUEST, 1, 1, "method", "url", description="Call an HTTP endpoint"),
    _type(SLACK, 1, 1, "channelId", "text", description="Post a message to a Slack channel"),
    _type(SEND_EMAIL, 1, 1, "toEmail", "subject", description="Send an email over SMTP"),
    _type(POSTGRES, 1, 1, "operation", "table", description="Read or write rows in Postgres"),
    _type(READ_WRITE_FILE, 1, 1, "operation", "fileName", description="Read or write a file on disk"),
    _type(GOOGLE_SHEETS, 1, 1, "operation", "documentId", "sheetName", description="Append or update spreadsheet rows"),
    _type(TWILIO, 1, 1, "from", "to", "message", description="Send an SMS"),
]
