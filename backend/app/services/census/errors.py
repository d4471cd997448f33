from __future__ import annotations


class CensusImportError(RuntimeError):
    pass


class CensusImportBlocked(CensusImportError):
    def __init__(self, error_keys: list[str]) -> None:
        self.error_keys = list(error_keys)
        super().__init__(
            f"{len(self.error_keys)} selected row(s) have validation errors; "
            "set allow_error_override to import them anyway."
        )


class AuditAppendError(CensusImportError):
    pass


class DocumentStoreError(CensusImportError):
    pass


class EpisodeNotFound(CensusImportError):
    def __init__(self, kind: str, episode_id: str) -> None:
        self.kind = kind
        self.episode_id = episode_id
        super().__init__(f"No {kind} record with id {episode_id}")


class InvalidStatusTransition(CensusImportError):
    def __init__(self, kind: str, current: str, target: str) -> None:
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"{kind} record cannot move from {current!r} to {target!r}")
