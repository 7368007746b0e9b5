from __future__ import annotations

from typing import TYPE_CHECKING

import errors
from config import get_logger
from entities.directory import USER_ODATA_TYPE

if TYPE_CHECKING:
    from graph import GraphClient

logger = get_logger(service="source_resolver")


def resolve_source_users(graph: GraphClient, group_id: str) -> list[str]:
    """Expand the source group into the ids of its user members.

    Raises:
        DirectoryUnavailable: The member listing could not be completed.
        SourceEmpty: The group has no user members.
    """
    try:
        members = graph.list_group_members(group_id)
    except errors.GraphRequestError as e:
        raise errors.DirectoryUnavailable(f"Failed to list members of source group {group_id}: {e}") from e

    user_ids: list[str] = []
    seen: set[str] = set()
    for member in members:
        member_id = member.get("id")
        odata_type = member.get("@odata.type")
        if not member_id:
            continue
        if odata_type and odata_type != USER_ODATA_TYPE:
            logger.debug(f"Skipping non-user member {member_id} of type {odata_type}")
            continue
        if member_id in seen:
            continue
        seen.add(member_id)
        user_ids.append(member_id)

    if not user_ids:
        raise errors.SourceEmpty(f"Source group {group_id} has no user members")

    logger.info(f"Resolved {len(user_ids)} users from source group {group_id}")
    return user_ids
