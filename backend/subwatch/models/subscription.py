"""
Subscription record and its normalization rules.
"""
import uuid
from typing import Any, Dict, Iterable, Optional, Set, Union

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from subwatch.constants import REMOTE_URL_SCHEMES

# Wire (camelCase) name for every field that has one
FIELD_ALIASES = {
    "node_count": "nodeCount",
    "user_info": "userInfo",
    "is_updating": "isUpdating",
    "update_interval": "updateInterval",
}


class UserInfo(BaseModel):
    """Quota usage reported by the subscription provider (bytes)."""
    upload: float = 0
    download: float = 0
    total: float = 0

    @field_validator("upload", "download", "total", mode="before")
    @classmethod
    def _missing_as_zero(cls, value):
        return 0 if value is None or value == "" else value

    @property
    def used(self) -> float:
        return self.upload + self.download

    @property
    def remaining(self) -> float:
        return max(0, self.total - self.used)


class Subscription(BaseModel):
    """
    One subscription entry.

    Unknown fields sent by the host are kept as-is and written back on save.
    Timer handles are owned by the item scheduler, never by the record.
    """
    id: str
    name: Optional[str] = None
    url: str = ""
    enabled: bool = True
    node_count: int = Field(0, alias="nodeCount")
    user_info: Optional[UserInfo] = Field(None, alias="userInfo")
    is_updating: bool = Field(False, alias="isUpdating")
    exclude: str = ""
    update_interval: Optional[int] = Field(None, alias="updateInterval")

    class Config:
        populate_by_name = True
        extra = "allow"

    @property
    def is_remote(self) -> bool:
        """Whether the URL points at something that can be refreshed."""
        return (self.url or "").lower().startswith(REMOTE_URL_SCHEMES)

    @property
    def remaining_quota(self) -> float:
        if self.user_info is None or self.user_info.total <= 0:
            return 0
        return self.user_info.remaining

    def to_wire(self, include_transient: bool = True) -> Dict[str, Any]:
        """Serialize with camelCase keys, the shape the host stores."""
        exclude = None if include_transient else {"is_updating"}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


def _to_wire_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Accept snake_case keys from Python callers; camelCase wins on conflict."""
    for field_name, alias in FIELD_ALIASES.items():
        if field_name in data:
            value = data.pop(field_name)
            data.setdefault(alias, value)
    return data


def _recover_user_info(raw: Any, sub_id: Any) -> Optional[UserInfo]:
    """Quota usage, or None when the stored value is unusable (it is refetched on refresh)."""
    if not raw:
        return None
    try:
        return UserInfo.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Discarding unreadable quota info for subscription {sub_id}: {e.error_count()} error(s)")
        return None


def normalize_subscription(
    raw: Union[Dict[str, Any], Subscription],
    taken_ids: Optional[Set[str]] = None,
) -> Subscription:
    """
    Build a canonical record from host input, filling documented defaults.

    A fresh identifier is generated when the input has none, or when its
    identifier is already in ``taken_ids``.
    """
    if isinstance(raw, Subscription):
        data = raw.to_wire()
    else:
        data = _to_wire_keys(dict(raw or {}))

    sub_id = data.get("id")
    if sub_id and taken_ids is not None and str(sub_id) in taken_ids:
        logger.warning(f"Duplicate subscription id {sub_id}, assigning a new one")
        sub_id = None
    if not sub_id:
        sub_id = uuid.uuid4().hex

    enabled = data.get("enabled")
    data.update({
        "id": str(sub_id),
        "url": data.get("url") or "",
        "enabled": True if enabled is None else bool(enabled),
        "nodeCount": data.get("nodeCount") or 0,
        "isUpdating": False,
        "userInfo": _recover_user_info(data.get("userInfo"), sub_id),
        "exclude": data.get("exclude") or "",
        "updateInterval": data.get("updateInterval") or None,
    })
    return Subscription.model_validate(data)


def remote_ids(subscriptions: Iterable[Subscription]) -> list[str]:
    """Ids of the records that participate in refreshes, in order."""
    return [s.id for s in subscriptions if s.is_remote]
