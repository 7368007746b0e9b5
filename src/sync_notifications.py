"""Slack notifications for device group sync runs.

This module provides functions to send Slack notifications for:
- Devices added to the target group
- Run summaries, including failed and skipped devices
- Fatal run errors
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from config import get_logger
from sync_report import DeviceOutcome

if TYPE_CHECKING:
    from slack_sdk import WebClient

    from sync_report import DeviceSyncOutcome, SyncRunReport

logger = get_logger(service="sync_notifications")

MAX_ISSUES_TO_DISPLAY = 5


@dataclass
class SyncNotificationResult:
    """Result of a notification attempt."""

    success: bool
    message: str
    error: str | None = None


def _post(slack_client: WebClient, channel_id: str, text: str, description: str) -> SyncNotificationResult:
    try:
        slack_client.chat_postMessage(channel=channel_id, text=text)
        logger.info(f"Sent {description} notification")
        return SyncNotificationResult(success=True, message="Notification sent successfully")
    except Exception as e:
        logger.exception(f"Failed to send {description} notification: {e}")
        return SyncNotificationResult(success=False, message="Failed to send notification", error=str(e))


def notify_device_added(
    slack_client: WebClient,
    outcome: DeviceSyncOutcome,
    group_id: str,
    channel_id: str,
) -> SyncNotificationResult:
    """Send Slack notification when a device is added to the target group."""
    text = (
        f":white_check_mark: *Device Sync: Device Added to Group*\n"
        f"• Device: {outcome.device_name or 'N/A'}\n"
        f"• Device ID: {outcome.canonical_device_id}\n"
        f"• Owner: {outcome.user_id}\n"
        f"• Group: {group_id}\n"
        f"• Source: {outcome.record_source}"
    )
    return _post(slack_client, channel_id, text, "device addition")


def notify_sync_error(
    slack_client: WebClient,
    error_message: str,
    channel_id: str,
) -> SyncNotificationResult:
    """Send Slack notification when the run was aborted."""
    text = f":rotating_light: *Device Sync: Run Aborted*\n• Details: {error_message}"
    return _post(slack_client, channel_id, text, "sync error")


def _format_issue(outcome: DeviceSyncOutcome) -> str:
    name = outcome.device_name or outcome.canonical_device_id or "unknown device"
    detail = f": {outcome.detail}" if outcome.detail else ""
    return f"  - {name} ({outcome.outcome.value}, user {outcome.user_id}){detail}"


def format_summary(report: SyncRunReport) -> str:
    counts = report.counts()
    issues = [
        o
        for o in report.outcomes
        if o.outcome not in (DeviceOutcome.ADDED, DeviceOutcome.ALREADY_MEMBER) or o.ambiguous_matches
    ]

    if report.has_failures or report.has_warnings:
        emoji = ":warning:"
        status = "Completed with Errors"
    else:
        emoji = ":white_check_mark:"
        status = "Completed Successfully"

    text = (
        f"{emoji} *Device Sync: {status}*\n"
        f"• Target Group: {report.target_device_group_id}\n"
        f"• Users Evaluated: {report.users_evaluated}\n"
        f"• Devices Processed: {len(report.outcomes)}\n"
        f"• Added: {counts[DeviceOutcome.ADDED.value]}\n"
        f"• Already Members: {counts[DeviceOutcome.ALREADY_MEMBER.value]}\n"
        f"• Add Failures: {counts[DeviceOutcome.ADD_FAILED.value]}\n"
        f"• Unresolvable: {counts[DeviceOutcome.UNRESOLVABLE_DEVICE_IDENTITY.value]}\n"
        f"• Not Found: {counts[DeviceOutcome.DIRECTORY_OBJECT_NOT_FOUND.value]}"
    )
    if report.user_warnings:
        text += f"\n• User Warnings: {len(report.user_warnings)}"
    for warning in report.run_warnings:
        text += f"\n• Run Warning: {warning}"

    if issues:
        issue_text = "\n".join(_format_issue(o) for o in issues[:MAX_ISSUES_TO_DISPLAY])
        if len(issues) > MAX_ISSUES_TO_DISPLAY:
            issue_text += f"\n  ... and {len(issues) - MAX_ISSUES_TO_DISPLAY} more"
        text += f"\n• Issues ({len(issues)}):\n{issue_text}"
    return text


def notify_sync_summary(
    slack_client: WebClient,
    report: SyncRunReport,
    channel_id: str,
) -> SyncNotificationResult:
    """Send Slack notification with the run summary."""
    return _post(slack_client, channel_id, format_summary(report), "sync summary")
