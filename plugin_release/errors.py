"""Exception hierarchy for the plugin release pipeline."""


class ReleaseError(Exception):
    """Base class for all release pipeline errors."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class ConfigurationError(ReleaseError):
    """Missing working directory, config file, or invalid settings."""


class SourceFormatError(ReleaseError):
    """The main source file lacks a required marker."""


class NoVersionFound(SourceFormatError):
    """No version declaration exists anywhere in the source."""


class MissingIntegration(SourceFormatError):
    """The update-checker registration call is absent or has an empty URL."""

    def __init__(self, path: str):
        super().__init__(
            f"No valid update checker integration (buildUpdateChecker) found in {path}",
            path=path,
        )


class SourceIOError(ReleaseError):
    """Reading, backing up, or rewriting the source file failed."""


class DescriptorError(ReleaseError):
    """Base class for release-metadata (update_info.json) errors."""


class DescriptorMissing(DescriptorError):
    pass


class DescriptorUnreadable(DescriptorError):
    pass


class DescriptorMalformed(DescriptorError):
    """The descriptor is not valid JSON."""


class DescriptorSchemaMismatch(DescriptorError):
    """Valid JSON whose known fields do not have the expected types."""

    def __init__(self, message: str, path: str | None = None, field: str | None = None):
        self.field = field
        super().__init__(message, path=path)


class DescriptorWriteError(DescriptorError):
    pass


class ArchiveError(ReleaseError):
    pass


class ArchiveWriteError(ArchiveError):
    pass


class RemotePathError(ReleaseError):
    """The download URL cannot be mapped onto a remote file path."""


class UrlEndsInDirectory(RemotePathError):
    pass


class UrlHasNoFilename(RemotePathError):
    pass


class InvalidDownloadUrl(RemotePathError):
    pass


class AuthError(ReleaseError):
    pass


class NoAuthMethod(AuthError):
    def __init__(self):
        super().__init__(
            "No SSH authentication method available (configure ssh_key_file or ssh_password)"
        )


class NetworkError(ReleaseError):
    """Dial, handshake, or session setup failed."""


class RemoteIOError(ReleaseError):
    """A remote command or data stream failed."""

    def __init__(self, message: str, path: str | None = None, exit_status: int | None = None):
        self.exit_status = exit_status
        super().__init__(message, path=path)


class SideStageError(ReleaseError):
    """An optional stage (changelog, images, version control) failed."""


class ImageConversionError(SideStageError):
    pass


class VcsError(SideStageError):
    """A git command failed."""

    def __init__(self, message: str, path: str | None = None, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message, path=path)
