import json
import logging
import os
import urllib.error
import urllib.request

logger = logging.getLogger(__name__)

SLACK_URL = "https://slack.com/api/chat.postMessage"


def slack_configured() -> bool:
    return bool(os.getenv("SLACK_CHANNEL") and os.getenv("SLACK_TOKEN"))


def send_to_slack(text: str) -> bool:
    """Post ``text`` to SLACK_CHANNEL. Returns False when unconfigured or on delivery failure."""
    if not slack_configured():
        logger.debug("Slack not configured, skipping alert")
        return False

    payload = json.dumps({
        "channel": os.getenv("SLACK_CHANNEL"),
        "text": text,
    }).encode("utf-8")

    req = urllib.request.Request(SLACK_URL, data=payload, headers={
        "Content-Type": "application/json",
        "Authorization": f"Bearer {os.getenv('SLACK_TOKEN')}",
    })

    try:
        with urllib.request.urlopen(req, timeout=10) as response:
            response_body = response.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        logger.error(f"HTTPError: {e.code}, {e.read().decode('utf-8', errors='replace')}")
        return False
    except (urllib.error.URLError, OSError) as e:
        logger.error(f"Error sending message to Slack: {e}")
        return False

    logger.info(f"Slack response: {response_body}")
    try:
        # Slack answers 200 with {"ok": false, "error": ...} on API errors
        return bool(json.loads(response_body).get("ok", False))
    except json.JSONDecodeError:
        logger.error(f"Unexpected Slack response: {response_body}")
        return False


def format_failure(failure: dict) -> str:
    completed = ", ".join(failure.get("completed_steps", [])) or "none"
    return (
        f"*Abalone pipeline failed*\n"
        f"*Step:* `{failure['failed_step']}`\n"
        f"*Error:* {failure['error_type']}: {failure['error']}\n"
        f"*Completed steps:* {completed}\n"
    )
