"""Decide, without executing, whether running a script is safe and meaningful.

Classification is a pure function of the script text, its syntax result, the
traits its interpreter backend reads from it, and the privilege probe. The
checks form an explicit total order (``CLASSIFICATION_ORDER``); the first
check that objects decides the outcome, otherwise the script is executable.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from script_test_action.interpreters.base import ScriptTraits
from script_test_action.models.result import (
    Classification,
    ClassificationKind,
    SyntaxResult,
)
from script_test_action.privilege import PrivilegeProbe

METADATA_ENDPOINTS = (
    "169.254.169.254",
    "fd00:ec2::254",
    "169.254.170.2",
    "100.100.100.200",
    "metadata.google.internal",
)

CLOUD_AGENTS = (
    "amazon-ssm-agent",
    "AmazonSSMAgent",
    "ec2-instance-connect",
    "EC2Launch",
    "WALinuxAgent",
    "waagent",
    "WindowsAzureGuestAgent",
    "google-guest-agent",
    "google_osconfig_agent",
    "GCEWindowsAgent",
)

CLOUD_PATTERN = re.compile(
    "|".join(
        [re.escape(endpoint) for endpoint in METADATA_ENDPOINTS]
        + [rf"\b{re.escape(agent)}\b" for agent in CLOUD_AGENTS]
    ),
    re.IGNORECASE,
)


@dataclass(frozen=True, kw_only=True)
class ClassificationInput:
    """Everything a classification check may look at."""

    source: str
    syntax: SyntaxResult
    traits: ScriptTraits
    privilege_probe: PrivilegeProbe


Check = Callable[[ClassificationInput], Classification | None]


def check_syntax_failed(subject: ClassificationInput) -> Classification | None:
    """Scripts that do not parse are never executed."""
    if subject.syntax.passed:
        return None
    count = len(subject.syntax.errors)
    return Classification(
        kind=ClassificationKind.SKIP_SYNTAX_FAILED,
        reason=f"syntax check failed with {count} error(s)",
    )


def check_mandatory_params(subject: ClassificationInput) -> Classification | None:
    """Required inputs without defaults cannot be synthesized."""
    if subject.traits.mandatory_parameter is None:
        return None
    return Classification(
        kind=ClassificationKind.SKIP_MANDATORY_PARAMS,
        reason=subject.traits.mandatory_parameter,
    )


def check_privilege_required(subject: ClassificationInput) -> Classification | None:
    """Privileged scripts run only when the harness itself is elevated."""
    requirement = subject.traits.privilege_requirement
    if requirement is None or subject.privilege_probe.is_privileged():
        return None
    return Classification(
        kind=ClassificationKind.SKIP_PRIVILEGE_REQUIRED,
        reason=f"requires elevated privileges ({requirement})",
    )


def check_cloud_dependent(subject: ClassificationInput) -> Classification | None:
    """Metadata endpoints and cloud agents only exist inside their cloud."""
    if not (match := CLOUD_PATTERN.search(subject.source)):
        return None
    return Classification(
        kind=ClassificationKind.SKIP_CLOUD_DEPENDENT,
        reason=f"references cloud-specific '{match.group(0)}'",
    )


CLASSIFICATION_ORDER: Sequence[Check] = (
    check_syntax_failed,
    check_mandatory_params,
    check_privilege_required,
    check_cloud_dependent,
)


def classify(
    source: str,
    syntax: SyntaxResult,
    traits: ScriptTraits,
    privilege_probe: PrivilegeProbe,
) -> Classification:
    """Classify a script for the execution stage.

    Args:
        source: Decoded script text
        syntax: Result of the syntax stage
        traits: Conventions read from the script by its backend
        privilege_probe: Host privilege capability, queried only when needed

    Returns:
        The first objecting check's classification, or ``executable``

    """
    subject = ClassificationInput(
        source=source, syntax=syntax, traits=traits, privilege_probe=privilege_probe
    )
    for check in CLASSIFICATION_ORDER:
        if (classification := check(subject)) is not None:
            return classification

    return Classification(
        kind=ClassificationKind.EXECUTABLE, reason="no blocking signals found"
    )
