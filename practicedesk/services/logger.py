import json
from datetime import datetime

from practicedesk.core.config import settings


def log_debug(event: str, data: dict):
    """
    Logs structured debug info if enabled.

    Only pass ids and counts here; patient names, phones and emails
    must never reach the console.
    """
    if not settings.DEBUG_MODE:
        return

    entry = {
        "timestamp": datetime.now().isoformat(),
        "event": event,
        "data": data
    }

    # In a real deployment, this might go to Cloud Logging.
    print(f"\n[PRACTICEDESK DEBUG] {event}:")
    print(json.dumps(entry, indent=2, default=str))
