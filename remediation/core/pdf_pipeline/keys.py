"""
Key deriver for every pipeline artifact.

Pure functions (no I/O, no state) that map an input object key onto the
canonical keys used by every stage. All stages obtain keys here; none of
them rebuilds paths locally. The folder path is threaded through every key
so artifacts of different jobs never collide and the compliant document
lands at the same relative folder as the input.

Layout (folder segment omitted when empty):
    input     pdf/<folder>/<base>.pdf
    chunk     temp/<folder>/<base>/<base>_chunk_<i>.pdf
    autotag   temp/<folder>/<base>/output_autotag/<base>_chunk_<i>.pdf
    enriched  temp/<folder>/<base>/FINAL_<base>_chunk_<i>.pdf
    merged    temp/<folder>/<base>/merged_<base>.pdf
    report    temp/<folder>/<base>/accessability-report/<phase>.json
    manifest  temp/<folder>/<base>/manifest.json
    outcome   temp/<folder>/<base>/job-outcome.json
    final     result/<folder>/COMPLIANT_<base>.pdf

Dependencies: None
System role: Canonical naming scheme shared by all stages
"""

from dataclasses import dataclass
from enum import Enum

from remediation.core.exceptions import InvalidInputKeyError

SEPARATOR = "/"
PDF_EXTENSION = ".pdf"
REPORT_DIR = "accessability-report"
AUTOTAG_DIR = "output_autotag"


class KeyStage(str, Enum):
    """Every artifact the pipeline reads or writes."""

    INPUT = "input"
    CHUNK = "chunk"
    AUTOTAG = "autotag"
    ENRICHED = "enriched"
    MERGED = "merged"
    REPORT = "report"
    MANIFEST = "manifest"
    OUTCOME = "outcome"
    FINAL = "final"


_CHUNK_STAGES = {KeyStage.CHUNK, KeyStage.AUTOTAG, KeyStage.ENRICHED}


def _join(*parts: str) -> str:
    return SEPARATOR.join(part for part in parts if part)


def _check_folder(folder_path: str) -> None:
    if not folder_path:
        return
    if any(not segment for segment in folder_path.split(SEPARATOR)):
        raise InvalidInputKeyError(f"Folder path has empty segments: {folder_path!r}")


def _check_base(base_name: str) -> None:
    if not base_name or SEPARATOR in base_name:
        raise InvalidInputKeyError(f"Invalid base name: {base_name!r}")


def _check_index(chunk_index: int | None) -> int:
    if chunk_index is None or isinstance(chunk_index, bool) or chunk_index < 0:
        raise ValueError(f"chunk_index must be a non-negative int, got {chunk_index!r}")
    return int(chunk_index)


@dataclass(frozen=True)
class KeyLayout:
    """Key roots plus the derivation rules for one deployment."""

    input_root: str = "pdf"
    temp_root: str = "temp"
    result_root: str = "result"

    def parse_input_key(self, input_key: str) -> tuple[str, str]:
        """
        Split an input key into (folder_path, base_name).

        A file directly under the input root has an empty folder path.

        Args:
            input_key: Key of the form <input_root>/[<folder>/]<base>.<ext>

        Returns:
            tuple[str, str]: Folder path (possibly empty) and base name

        Raises:
            InvalidInputKeyError: Key is outside the input root or malformed
        """
        prefix = self.input_root.rstrip(SEPARATOR) + SEPARATOR
        if not input_key or not input_key.startswith(prefix):
            raise InvalidInputKeyError(
                f"Key is not under '{prefix}'", input_key=input_key
            )

        relative = input_key[len(prefix):]
        folder_path, separator, filename = relative.rpartition(SEPARATOR)
        if not filename:
            raise InvalidInputKeyError("Key has no file name", input_key=input_key)

        base_name, dot, extension = filename.rpartition(".")
        if not dot or not extension:
            raise InvalidInputKeyError("Key has no file extension", input_key=input_key)
        if not base_name:
            raise InvalidInputKeyError("Key has an empty base name", input_key=input_key)

        if separator and any(not segment for segment in folder_path.split(SEPARATOR)):
            raise InvalidInputKeyError(
                f"Folder path has empty segments: {folder_path!r}", input_key=input_key
            )
        return folder_path, base_name

    def folder_path(self, input_key: str) -> str:
        return self.parse_input_key(input_key)[0]

    def base_name(self, input_key: str) -> str:
        return self.parse_input_key(input_key)[1]

    def input_key(self, folder_path: str, base_name: str) -> str:
        """Rebuild the canonical input key for a folder/base pair."""
        _check_folder(folder_path)
        _check_base(base_name)
        return _join(self.input_root, folder_path, f"{base_name}{PDF_EXTENSION}")

    def job_prefix(self, folder_path: str, base_name: str) -> str:
        """Temp prefix owning every intermediate artifact of one document."""
        _check_folder(folder_path)
        _check_base(base_name)
        return _join(self.temp_root, folder_path, base_name)

    def chunk_key(self, folder_path: str, base_name: str, chunk_index: int) -> str:
        index = _check_index(chunk_index)
        return _join(
            self.job_prefix(folder_path, base_name),
            f"{base_name}_chunk_{index}{PDF_EXTENSION}",
        )

    def autotag_key(self, folder_path: str, base_name: str, chunk_index: int) -> str:
        index = _check_index(chunk_index)
        return _join(
            self.job_prefix(folder_path, base_name),
            AUTOTAG_DIR,
            f"{base_name}_chunk_{index}{PDF_EXTENSION}",
        )

    def enriched_key(self, folder_path: str, base_name: str, chunk_index: int) -> str:
        index = _check_index(chunk_index)
        return _join(
            self.job_prefix(folder_path, base_name),
            f"FINAL_{base_name}_chunk_{index}{PDF_EXTENSION}",
        )

    def merged_key(self, folder_path: str, base_name: str) -> str:
        return _join(
            self.job_prefix(folder_path, base_name),
            f"merged_{base_name}{PDF_EXTENSION}",
        )

    def report_key(self, folder_path: str, base_name: str, phase: str) -> str:
        phase = str(getattr(phase, "value", phase))
        if not phase or SEPARATOR in phase:
            raise ValueError(f"Invalid report phase: {phase!r}")
        return _join(self.job_prefix(folder_path, base_name), REPORT_DIR, f"{phase}.json")

    def manifest_key(self, folder_path: str, base_name: str) -> str:
        return _join(self.job_prefix(folder_path, base_name), "manifest.json")

    def outcome_key(self, folder_path: str, base_name: str) -> str:
        return _join(self.job_prefix(folder_path, base_name), "job-outcome.json")

    def final_key(self, folder_path: str, base_name: str) -> str:
        _check_folder(folder_path)
        _check_base(base_name)
        return _join(self.result_root, folder_path, f"COMPLIANT_{base_name}{PDF_EXTENSION}")

    def derive(
        self,
        folder_path: str,
        base_name: str,
        stage: KeyStage,
        chunk_index: int | None = None,
        phase: str | None = None,
    ) -> str:
        """
        Derive the key of any artifact.

        Args:
            folder_path: Folder path of the job (may be empty)
            base_name: Base name of the job
            stage: Artifact kind
            chunk_index: Required for chunk, autotag and enriched keys
            phase: Required for report keys

        Returns:
            str: Canonical key
        """
        stage = KeyStage(stage)
        if stage in _CHUNK_STAGES:
            builders = {
                KeyStage.CHUNK: self.chunk_key,
                KeyStage.AUTOTAG: self.autotag_key,
                KeyStage.ENRICHED: self.enriched_key,
            }
            return builders[stage](folder_path, base_name, chunk_index)
        if stage is KeyStage.REPORT:
            if phase is None:
                raise ValueError("phase is required for report keys")
            return self.report_key(folder_path, base_name, phase)
        builders = {
            KeyStage.INPUT: self.input_key,
            KeyStage.MERGED: self.merged_key,
            KeyStage.MANIFEST: self.manifest_key,
            KeyStage.OUTCOME: self.outcome_key,
            KeyStage.FINAL: self.final_key,
        }
        return builders[stage](folder_path, base_name)


DEFAULT_LAYOUT = KeyLayout()


def derive_folder_path(input_key: str, layout: KeyLayout = DEFAULT_LAYOUT) -> str:
    """Folder path of an input key; '' for files directly under the input root."""
    return layout.folder_path(input_key)


def derive_base_name(input_key: str, layout: KeyLayout = DEFAULT_LAYOUT) -> str:
    """File name of an input key without folder or extension."""
    return layout.base_name(input_key)
