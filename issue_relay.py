"""
=============================================================================
ISSUE_RELAY.PY — Tree reports → GitHub issues
=============================================================================
After a tree report is stored, a tracking issue is opened on GitHub so the
moderators see it.

Fire-and-forget: the report is already committed when this runs (as a
FastAPI background task). Any failure is logged and swallowed, it never
changes what the user was told.
"""

import os
import logging
from typing import Optional

import requests

logger = logging.getLogger("tamagotree.issue_relay")

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
GITHUB_REPO = os.getenv("GITHUB_REPO", "tamagotree/tamagotree")
GITHUB_API_URL = "https://api.github.com"
REQUEST_TIMEOUT = 10

REASON_LABELS = {
    "fake": "Fake Tree",
    "duplicate": "Duplicate",
    "wrong_location": "Wrong Location",
    "incorrect_info": "Incorrect Information",
    "inappropriate": "Inappropriate Content",
    "other": "Other Issue",
}


def build_issue(report: dict) -> dict:
    """
    report: {tree_id, tree_name, reason, details, reporter_username,
             latitude, longitude}
    Returns the GitHub issue payload.
    """
    reason_label = REASON_LABELS.get(report["reason"], report["reason"])
    lat, lon = report["latitude"], report["longitude"]

    body = (
        "## Tree Report\n\n"
        f"**Tree Name:** {report['tree_name']}\n"
        f"**Tree ID:** `{report['tree_id']}`\n"
        f"**Issue Type:** {reason_label}\n"
        f"**Reported by:** @{report['reporter_username']}\n\n"
        "### Location\n"
        f"Latitude: {lat}\n"
        f"Longitude: {lon}\n\n"
        f"[View on Google Maps](https://www.google.com/maps?q={lat},{lon})\n\n"
        "### Details\n"
        f"{report.get('details') or '_No additional details provided_'}\n\n"
        "---\n"
        "*This issue was automatically created from a user report.*"
    )

    return {
        "title": f"[Tree Report] {reason_label}: {report['tree_name']}",
        "body": body,
        "labels": ["tree-report", report["reason"]],
    }


def create_tree_report_issue(report: dict) -> Optional[dict]:
    """
    Opens the issue. Returns {"issue_url", "issue_number"} or None when the
    relay is not configured or GitHub refused it.
    """
    if not GITHUB_TOKEN:
        logger.warning("GITHUB_TOKEN not set, tree report issue not created")
        return None

    try:
        response = requests.post(
            f"{GITHUB_API_URL}/repos/{GITHUB_REPO}/issues",
            json=build_issue(report),
            headers={
                "Authorization": f"Bearer {GITHUB_TOKEN}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error(f"❌ GitHub issue relay failed for tree {report['tree_id']}: {e}")
        return None

    if not response.ok:
        logger.error(f"❌ GitHub API error ({response.status_code}): {response.text}")
        return None

    issue = response.json()
    logger.info(f"📝 Tree report issue #{issue.get('number')} created for tree {report['tree_id']}")
    return {"issue_url": issue.get("html_url"), "issue_number": issue.get("number")}
