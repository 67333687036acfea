"""Normalization kernel shared by the in-memory and SQL repositories.

Every write path runs its input through one of the ``normalize_*`` functions
below before it is persisted, and every read path builds its records from the
already-normalized values, so both backends agree on semantics exactly.

The kernel never rejects input. Blank identifiers fall back to documented
defaults, unknown enum values fall back to the safe member, non-object maps
become ``{}`` and non-numeric amounts become zero (or ``None`` for limits).

Inputs may be pydantic models or plain mappings; mapping keys may be spelled
in snake_case or in the camelCase used on the wire.
"""

from __future__ import annotations

import copy
import json
import math
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from ..core.config import StoreDefaults
from ..core.logging_config import get_logger
from ..models.domain import (
    AgentDefinition,
    AuditLogEntry,
    BudgetPolicy,
    ExecutionTarget,
    ModelSecret,
    ModelSecretMeta,
)
from ..models.enums import ExecutionTargetKind, RuntimeMode

logger = get_logger(__name__)

RawInput = Union[BaseModel, Mapping[str, Any], None]

DEFAULT_AGENT_ID = "a_default"
DEFAULT_AGENT_NAME = "default-agent"
DEFAULT_PROVIDER = "openai"
DEFAULT_ACTOR = "system"
DEFAULT_ACTION = "unknown"

AGENT_NAME_MAX_LENGTH = 80
AUDIT_DEFAULT_LIMIT = 50
AUDIT_MAX_LIMIT = 500
MAX_INT64 = 2**63 - 1

_YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_WHITESPACE_RE = re.compile(r"\s+")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


# ---------------------------------------------------------------------------
# Input access
# ---------------------------------------------------------------------------


def as_mapping(raw: RawInput, *, exclude_unset: bool = False) -> Dict[str, Any]:
    """Return a shallow dict view of a model or mapping input."""
    if raw is None:
        return {}
    if isinstance(raw, BaseModel):
        return raw.model_dump(exclude_unset=exclude_unset)
    return dict(raw)


def has_field(data: Mapping[str, Any], name: str) -> bool:
    return name in data or to_camel(name) in data


def field(data: Mapping[str, Any], name: str, *aliases: str) -> Any:
    """Look a field up by its snake_case name, its camelCase alias or extra aliases."""
    for key in (name, to_camel(name), *aliases):
        if key in data:
            return data[key]
    return None


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def today_ymd() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def round6(value: float) -> float:
    return round(float(value), 6)


def sanitize_id(value: Any, fallback: str) -> str:
    compact = "" if value is None else str(value).strip()
    return compact or fallback


def sanitize_optional(value: Any) -> Optional[str]:
    """Trim an optional string; blank collapses to ``None``."""
    compact = "" if value is None else str(value).strip()
    return compact or None


def sanitize_name(value: Any, fallback: str) -> str:
    compact = _WHITESPACE_RE.sub(" ", "" if value is None else str(value)).strip()
    if not compact:
        return fallback
    return compact[:AGENT_NAME_MAX_LENGTH]


def sanitize_provider(value: Any) -> str:
    return sanitize_id(value, DEFAULT_PROVIDER).lower()


def optional_provider(value: Any) -> Optional[str]:
    """Provider filter: ``None`` when absent or blank, otherwise lower-cased."""
    provider = sanitize_optional(value)
    return provider.lower() if provider else None


def first_version(value: Any) -> int:
    """Version of a record on its first insert: ``max(1, floor(value))``."""
    if not is_number(value):
        return 1
    return min(max(1, math.floor(value)), MAX_INT64)


def normalize_int(value: Any) -> int:
    """Non-negative integer increment capped to a signed 64-bit column; anything non-numeric counts as zero."""
    if not is_number(value):
        return 0
    return min(max(0, math.floor(value)), MAX_INT64)


def normalize_number(value: Any) -> float:
    if not is_number(value):
        return 0.0
    return float(value)


def normalize_cost(value: Any) -> float:
    """Non-negative monetary increment rounded to six decimals."""
    return round6(max(0.0, normalize_number(value)))


def normalize_nullable_limit(value: Any) -> Optional[float]:
    """Budget limit: ``None`` is unlimited, non-positive values clamp to zero."""
    if not is_number(value):
        return None
    if value <= 0:
        return 0.0
    return round6(value)


def normalize_date(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not _YMD_RE.match(trimmed):
        return None
    return trimmed


def normalize_limit(value: Any) -> int:
    if not is_number(value):
        return AUDIT_DEFAULT_LIMIT
    parsed = math.floor(value)
    if parsed <= 0:
        return AUDIT_DEFAULT_LIMIT
    return min(parsed, AUDIT_MAX_LIMIT)


def normalize_cursor(value: Any) -> Optional[int]:
    if not is_number(value):
        return None
    parsed = math.floor(value)
    if parsed <= 0:
        return None
    return min(parsed, MAX_INT64)


def copy_object(value: Any) -> Dict[str, Any]:
    """Deep-copy an object-like map; any other value becomes an empty map."""
    if isinstance(value, Mapping):
        return copy.deepcopy(dict(value))
    return {}


def parse_json_object(text: Optional[str], *, source: str = "blob") -> Dict[str, Any]:
    """Parse a serialized map column; malformed or non-object JSON degrades to ``{}``."""
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Malformed JSON in {source}; using empty map")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Non-object JSON in {source}; using empty map")
        return {}
    return parsed


def dump_json_object(value: Mapping[str, Any]) -> str:
    return json.dumps(dict(value), default=str)


def generated_target_id() -> str:
    """``target_<base36 epoch millis>`` for targets upserted without an id."""
    millis = int(time.time() * 1000)
    digits = []
    while millis:
        millis, rem = divmod(millis, 36)
        digits.append(_BASE36[rem])
    return "target_" + ("".join(reversed(digits)) or "0")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def agent_key(raw: RawInput, defaults: StoreDefaults) -> tuple[str, str, str]:
    data = as_mapping(raw)
    return (
        sanitize_id(field(data, "tenant_id"), defaults.tenant_id),
        sanitize_id(field(data, "workspace_id"), defaults.workspace_id),
        sanitize_id(field(data, "agent_id"), DEFAULT_AGENT_ID),
    )


def normalize_agent(raw: RawInput, *, version: int, defaults: StoreDefaults) -> AgentDefinition:
    data = as_mapping(raw)
    tenant_id, workspace_id, agent_id = agent_key(data, defaults)
    return AgentDefinition(
        tenant_id=tenant_id,
        workspace_id=workspace_id,
        agent_id=agent_id,
        name=sanitize_name(field(data, "name"), DEFAULT_AGENT_NAME),
        runtime_mode=RuntimeMode.cloud if field(data, "runtime_mode") == RuntimeMode.cloud.value else RuntimeMode.local,
        execution_target_id=sanitize_optional(field(data, "execution_target_id")),
        policy_scope_key=sanitize_optional(field(data, "policy_scope_key")),
        enabled=field(data, "enabled") is not False,
        config=copy_object(field(data, "config")),
        version=version,
        updated_at=sanitize_id(field(data, "updated_at"), "") or now_iso(),
    )


def target_id_of(raw: RawInput) -> Optional[str]:
    return sanitize_optional(field(as_mapping(raw), "target_id"))


def normalize_target(
    raw: RawInput, *, version: int, defaults: StoreDefaults, target_id: Optional[str] = None
) -> ExecutionTarget:
    data = as_mapping(raw)
    workspace_id = sanitize_optional(field(data, "workspace_id"))
    kind = field(data, "kind")
    return ExecutionTarget(
        target_id=target_id or sanitize_id(field(data, "target_id"), "") or generated_target_id(),
        tenant_id=sanitize_id(field(data, "tenant_id"), defaults.tenant_id),
        workspace_id=workspace_id,
        kind=(
            ExecutionTargetKind.docker_runner
            if kind == ExecutionTargetKind.docker_runner.value
            else ExecutionTargetKind.local_host
        ),
        endpoint=sanitize_optional(field(data, "endpoint")),
        auth_token=sanitize_optional(field(data, "auth_token")),
        is_default=field(data, "is_default") is True,
        enabled=field(data, "enabled") is not False,
        config=copy_object(field(data, "config")),
        version=version,
        updated_at=sanitize_id(field(data, "updated_at"), "") or now_iso(),
    )


def bootstrap_target(defaults: StoreDefaults) -> ExecutionTarget:
    """The default local-host target every empty target store starts with."""
    return ExecutionTarget(
        target_id=defaults.target_id,
        tenant_id=defaults.tenant_id,
        workspace_id=defaults.workspace_id,
        kind=ExecutionTargetKind.local_host,
        is_default=True,
        enabled=True,
        config={},
        version=1,
        updated_at=now_iso(),
    )


def same_target_scope(target: ExecutionTarget, tenant_id: str, workspace_id: Optional[str]) -> bool:
    return target.tenant_id == tenant_id and (target.workspace_id or "") == (workspace_id or "")


def budget_scope_key(value: Any, defaults: StoreDefaults) -> str:
    return sanitize_id(value, defaults.budget_scope_key)


def new_budget_policy(scope_key: str) -> BudgetPolicy:
    return BudgetPolicy(
        scope_key=scope_key,
        token_daily_limit=None,
        cost_monthly_usd_limit=None,
        hard_limit=True,
        version=1,
        updated_at=now_iso(),
    )


def apply_budget_patch(current: BudgetPolicy, patch: RawInput) -> BudgetPolicy:
    """Apply only the fields present in ``patch``; bump version and ``updated_at``."""
    data = as_mapping(patch, exclude_unset=True)
    token_limit = current.token_daily_limit
    cost_limit = current.cost_monthly_usd_limit
    hard_limit = current.hard_limit
    if has_field(data, "token_daily_limit"):
        token_limit = normalize_nullable_limit(field(data, "token_daily_limit"))
    if has_field(data, "cost_monthly_usd_limit"):
        cost_limit = normalize_nullable_limit(field(data, "cost_monthly_usd_limit"))
    if has_field(data, "hard_limit"):
        hard_limit = field(data, "hard_limit") is not False
    return BudgetPolicy(
        scope_key=current.scope_key,
        token_daily_limit=token_limit,
        cost_monthly_usd_limit=cost_limit,
        hard_limit=hard_limit,
        version=current.version + 1,
        updated_at=now_iso(),
    )


def normalize_audit_entry(raw: RawInput, *, entry_id: int, defaults: StoreDefaults) -> AuditLogEntry:
    data = as_mapping(raw)
    return AuditLogEntry(
        id=entry_id,
        tenant_id=sanitize_id(field(data, "tenant_id"), defaults.tenant_id),
        workspace_id=sanitize_id(field(data, "workspace_id"), defaults.workspace_id),
        action=sanitize_id(field(data, "action"), DEFAULT_ACTION),
        actor=sanitize_id(field(data, "actor"), DEFAULT_ACTOR),
        resource_type=sanitize_optional(field(data, "resource_type")),
        resource_id=sanitize_optional(field(data, "resource_id")),
        metadata=copy_object(field(data, "metadata")),
        created_at=sanitize_id(field(data, "created_at"), "") or now_iso(),
    )


def normalize_model_secret(raw: RawInput, defaults: StoreDefaults) -> ModelSecret:
    data = as_mapping(raw)
    return ModelSecret(
        tenant_id=sanitize_id(field(data, "tenant_id"), defaults.tenant_id),
        workspace_id=sanitize_optional(field(data, "workspace_id")),
        provider=sanitize_provider(field(data, "provider")),
        model_id=sanitize_optional(field(data, "model_id")),
        base_url=sanitize_optional(field(data, "base_url")),
        api_key="" if field(data, "api_key") is None else str(field(data, "api_key")).strip(),
        updated_by=sanitize_id(field(data, "updated_by"), DEFAULT_ACTOR),
        updated_at=sanitize_id(field(data, "updated_at"), "") or now_iso(),
    )


def mask_secret(value: str) -> str:
    """Display-safe rendering of a credential.

    Up to 4 characters mask completely, up to 8 reveal the first character and the last two
    characters, longer secrets reveal the first two and the last four.
    """
    raw = value or ""
    if len(raw) <= 4:
        return "****"
    if len(raw) <= 8:
        return f"{raw[:1]}***{raw[-2:]}"
    return f"{raw[:2]}***{raw[-4:]}"


def to_model_secret_meta(secret: ModelSecret) -> ModelSecretMeta:
    return ModelSecretMeta(
        tenant_id=secret.tenant_id,
        workspace_id=secret.workspace_id,
        provider=secret.provider,
        model_id=secret.model_id,
        base_url=secret.base_url,
        masked_key=mask_secret(secret.api_key),
        key_last4=secret.api_key[-4:],
        updated_by=secret.updated_by,
        updated_at=secret.updated_at,
    )


def secret_rank(secret: ModelSecret, workspace_id: Optional[str]) -> tuple[int, str, str]:
    """Resolution order without a provider: exact workspace, tenant-wide, any other workspace."""
    if workspace_id and secret.workspace_id == workspace_id:
        score = 0
    elif not secret.workspace_id:
        score = 1
    else:
        score = 2
    return score, secret.provider, secret.workspace_id or ""
