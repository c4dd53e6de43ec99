# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Error taxonomy for the publish pipeline.

Every failure a publish can hit is one of these. Each class carries the
short message the caller sees and whether the failure is the caller's
fault (`client_error`, mapped to HTTP 400) or the server's (HTTP 500).
The underlying cause stays in the server log, never in the message.
"""

from typing import Optional


class PublishError(Exception):
    """Base for all publish failures."""

    default_message: str = "Publish failed"
    client_error: bool = False

    def __init__(self, message: Optional[str] = None, stage: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.stage = stage
        super().__init__(self.message)


class InputValidationError(PublishError):
    """A required request field is missing or malformed."""

    default_message = "Invalid request"
    client_error = True


class InvalidReferenceError(PublishError):
    """The repository URL doesn't point at a recognisable owner/repo."""

    default_message = "Invalid Github URL"
    client_error = True


class FetchError(PublishError):
    """The tag archive could not be downloaded."""

    default_message = "Cannot fetch project tar.gz"


class ExtractError(PublishError):
    """The downloaded archive could not be unpacked."""

    default_message = "Cannot untar project tar.gz"


class ManifestError(PublishError):
    """The project's manifest is missing, unreadable or malformed."""

    default_message = "Cannot read project package.json"


class DependencyInstallError(PublishError):
    """The dependency manager failed to load or to install dependencies."""

    default_message = "Cannot install project dependencies"


class BuildError(PublishError):
    """The project's build script failed."""

    default_message = "Cannot build project"


class ChecksumMismatchError(PublishError):
    """The artifact was built but its digest isn't the declared one."""

    default_message = "Build SHA1 checksum is different"
    client_error = True


class ArtifactReadError(PublishError):
    """The build artifact could not be read for hashing."""

    default_message = "Cannot check project checksum"


class PipelineCancelledError(PublishError):
    """The run was cancelled or ran past its deadline."""

    default_message = "Publish cancelled"
