"""Verification harness: provisioning, artifact serving, browser sessions, and retries."""

from asc_bridge.harness.artifacts import (
    Artifact,
    ArtifactMap,
    BuildResult,
    OutputAsset,
    OutputChunk,
    flatten_build_output,
)
from asc_bridge.harness.errors import ProvisionError
from asc_bridge.harness.host import BuildHost, CommandBuildHost, DevServer, FileWatcher
from asc_bridge.harness.provisioner import (
    LiveProvisioner,
    ProvisionedServer,
    ProvisionStrategy,
    StaticProvisioner,
    make_provisioner,
)
from asc_bridge.harness.retry import RetryAttempt, RetrySupervisor, run_with_retry
from asc_bridge.harness.runner import run_verification, run_verification_with_retry
from asc_bridge.harness.server import ArtifactServer, RunningArtifactServer
from asc_bridge.harness.session import (
    Failure,
    FailureCause,
    Success,
    VerificationFailure,
    VerificationVerdict,
    verify,
)

__all__ = [
    "Artifact",
    "ArtifactMap",
    "ArtifactServer",
    "BuildHost",
    "BuildResult",
    "CommandBuildHost",
    "DevServer",
    "Failure",
    "FailureCause",
    "FileWatcher",
    "LiveProvisioner",
    "OutputAsset",
    "OutputChunk",
    "ProvisionError",
    "ProvisionStrategy",
    "ProvisionedServer",
    "RetryAttempt",
    "RetrySupervisor",
    "RunningArtifactServer",
    "StaticProvisioner",
    "Success",
    "VerificationFailure",
    "VerificationVerdict",
    "flatten_build_output",
    "make_provisioner",
    "run_verification",
    "run_verification_with_retry",
    "run_with_retry",
    "verify",
]
