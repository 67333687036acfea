"""Closed value sets used by control-plane records."""

from __future__ import annotations

from enum import Enum


class RuntimeMode(str, Enum):
    """Where an agent definition expects its runs to execute."""

    local = "local"  # First member doubles as the fallback for unknown values.
    cloud = "cloud"


class ExecutionTargetKind(str, Enum):
    """Kind of host an execution target points at."""

    local_host = "local-host"
    docker_runner = "docker-runner"
