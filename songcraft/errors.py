from __future__ import annotations


class SongcraftError(RuntimeError):
    pass


class CredentialProbeFailure(SongcraftError):
    def __init__(self, capability: str, message: str) -> None:
        super().__init__(f"Capability probe failed (capability={capability}): {message}")
        self.capability = capability


class CredentialVerificationFailure(SongcraftError):
    pass


class CredentialMissingError(SongcraftError):
    pass


class GenerationError(SongcraftError):
    """Base class for failures of a single generation call; the project is never mutated."""


class GenerationBackendError(GenerationError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GenerationParseError(GenerationError):
    pass


class GenerationEmptyError(GenerationError):
    pass


class GenerationNoImageError(GenerationError):
    pass


class GenerationInvalidValueError(GenerationError):
    pass


class GenerationPreconditionError(GenerationError):
    pass


class PersistenceFailure(SongcraftError):
    pass


class ProjectNotFoundError(SongcraftError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class VariationIndexError(SongcraftError):
    pass


class BlockNotFoundError(SongcraftError):
    pass


class ProjectFieldError(SongcraftError):
    pass


class PresetNotFoundError(SongcraftError):
    pass
