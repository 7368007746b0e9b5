"""Device group sync Lambda function.

This module provides the Lambda handler and orchestration logic that keeps
the target device group populated with the devices owned by members of the
source user group.

Pipeline: source users -> device discovery -> identity normalization ->
group convergence. Each stage only consumes the output of the previous one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

import boto3
from azure.identity import ClientSecretCredential
from pydantic import ValidationError
from slack_sdk import WebClient

import errors
import s3 as s3_module
from config import Config, get_config, get_logger
from device_discovery import discover_user_devices, fetch_inventory
from graph import GraphClient
from group_convergence import GroupConverger
from identity_normalizer import DirectoryObjectResolver, canonical_device_id
from source_resolver import resolve_source_users
from sync_notifications import notify_device_added, notify_sync_error, notify_sync_summary
from sync_report import DeviceOutcome, DeviceSyncOutcome, SyncRunReport

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

    from entities.directory import DeviceRecord

logger = get_logger(service="device_syncer")

# Module-level boto3 client, reused across invocations of a warm container
_s3_client: S3Client = boto3.client("s3")


@dataclass
class SyncContext:
    """Collaborators and settings for one sync run."""

    graph: GraphClient
    source_user_group_id: str
    target_device_group_id: str
    cache_target_group_membership: bool = True


def process_device(
    record: DeviceRecord,
    user_id: str,
    resolver: DirectoryObjectResolver,
    converger: GroupConverger,
) -> DeviceSyncOutcome:
    """Carry one discovered device record to its terminal outcome."""
    base = {
        "user_id": user_id,
        "device_name": record.display_name,
        "record_source": record.source,
    }

    try:
        canonical_id = canonical_device_id(record)
    except errors.UnresolvableDeviceIdentity as e:
        logger.warning(str(e), extra={"user_id": user_id})
        return DeviceSyncOutcome(**base, outcome=DeviceOutcome.UNRESOLVABLE_DEVICE_IDENTITY, detail=str(e))

    try:
        resolved = resolver.resolve(canonical_id)
    except errors.DirectoryObjectNotFound as e:
        logger.warning(str(e), extra={"user_id": user_id, "canonical_device_id": canonical_id})
        return DeviceSyncOutcome(
            **base,
            outcome=DeviceOutcome.DIRECTORY_OBJECT_NOT_FOUND,
            canonical_device_id=canonical_id,
            detail=str(e),
        )

    outcome, detail = converger.converge(resolved.device_object)
    return DeviceSyncOutcome(
        **base,
        outcome=outcome,
        canonical_device_id=canonical_id,
        directory_object_id=resolved.device_object.id,
        detail=detail,
        ambiguous_matches=resolved.match_count if resolved.is_ambiguous else None,
    )


def _finalize_report(report: SyncRunReport) -> SyncRunReport:
    report.success = not report.has_failures
    report.end_time = datetime.now(timezone.utc)
    report.log_completion()
    return report


def perform_sync(ctx: SyncContext) -> SyncRunReport:
    """Run one reconciliation pass.

    Only the fatal conditions (empty or unreachable source group) stop the
    run; they are recorded as `fatal_error` on the returned report. Every
    other failure becomes a per-user warning or a per-device outcome.
    """
    report = SyncRunReport(
        source_user_group_id=ctx.source_user_group_id,
        target_device_group_id=ctx.target_device_group_id,
        start_time=datetime.now(timezone.utc),
    )
    report.log_start()

    try:
        user_ids = resolve_source_users(ctx.graph, ctx.source_user_group_id)
    except errors.FatalSyncError as e:
        logger.error(f"Aborting device sync: {e}", extra={"error_type": type(e).__name__})
        report.fatal_error = f"{type(e).__name__}: {e}"
        return _finalize_report(report)
    report.users_evaluated = len(user_ids)

    inventory = fetch_inventory(ctx.graph, report)
    report.managed_devices_in_inventory = len(inventory)

    resolver = DirectoryObjectResolver(ctx.graph)
    converger = GroupConverger(ctx.graph, ctx.target_device_group_id, cache_membership=ctx.cache_target_group_membership)

    for user_id in user_ids:
        for record in discover_user_devices(ctx.graph, inventory, user_id, report):
            report.record(process_device(record, user_id, resolver, converger))

    return _finalize_report(report)


def build_graph_client(cfg: Config) -> GraphClient:
    credential = ClientSecretCredential(
        tenant_id=cfg.azure_tenant_id,
        client_id=cfg.azure_client_id,
        client_secret=cfg.azure_client_secret,
    )
    return GraphClient(credential, base_url=cfg.graph_base_url, timeout_seconds=cfg.graph_request_timeout_seconds)


def publish_report(report: SyncRunReport, cfg: Config, s3_client: S3Client, slack_client: Optional[WebClient]) -> None:
    """Store the report and send Slack notifications; failures are logged only."""
    if cfg.s3_bucket_for_reports_name:
        try:
            s3_module.store_run_report(s3_client, report, cfg.s3_bucket_for_reports_name, cfg.s3_bucket_prefix_for_partitions)
        except Exception as e:
            logger.exception(f"Failed to store device sync report: {e}")

    if slack_client is None:
        return

    if report.fatal_error:
        notify_sync_error(slack_client, report.fatal_error, cfg.slack_channel_id)
        return

    for outcome in report.outcomes_with(DeviceOutcome.ADDED):
        notify_device_added(slack_client, outcome, report.target_device_group_id, cfg.slack_channel_id)

    has_changes = report.devices_added > 0 or report.has_failures or report.has_warnings
    if has_changes:
        notify_sync_summary(slack_client, report, cfg.slack_channel_id)
    else:
        logger.info("No changes detected, skipping notification")


def lambda_handler(event: dict[str, Any], context: object) -> dict[str, Any]:  # noqa: ARG001
    """Lambda handler entry point, typically invoked by an EventBridge schedule."""
    logger.info("Device syncer Lambda invoked", extra={"event": event})

    try:
        cfg = get_config()
    except ValidationError as e:
        logger.exception(f"Configuration error: {e}")
        return {
            "statusCode": 500,
            "body": {"error": str(e), "success": False},
        }

    ctx = SyncContext(
        graph=build_graph_client(cfg),
        source_user_group_id=cfg.source_user_group_id,
        target_device_group_id=cfg.target_device_group_id,
        cache_target_group_membership=cfg.cache_target_group_membership,
    )
    report = perform_sync(ctx)

    slack_client = WebClient(token=cfg.slack_bot_token) if cfg.post_update_to_slack else None
    publish_report(report, cfg, _s3_client, slack_client)

    return {
        "statusCode": 200 if report.success else 500,
        "body": {
            "success": report.success,
            "fatal_error": report.fatal_error,
            "users_evaluated": report.users_evaluated,
            "devices_processed": len(report.outcomes),
            "user_warnings": len(report.user_warnings),
            "run_warnings": len(report.run_warnings),
            **report.counts(),
        },
    }
