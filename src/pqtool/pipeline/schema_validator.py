from typing import Sequence

from pqtool.canonical.file import LogicalFile
from pqtool.utils.exceptions import SchemaMismatch


class SchemaCompatibilityValidator:
    """
    Checks that every file shares the first file's schema exactly.

    This class:
    - NEVER reads row data
    - Compares column name, type, nullability and order
    - Names the first divergent column and the offending file
    """

    def __init__(self, files: Sequence[LogicalFile]):
        self.files = list(files)

    def _compare(self, reference: LogicalFile, candidate: LogicalFile):
        for position, (expected, actual) in enumerate(zip(reference.columns, candidate.columns)):
            if expected.structural_key() == actual.structural_key():
                continue

            if expected.name != actual.name:
                raise SchemaMismatch(
                    candidate.path,
                    actual.name,
                    f"at position {position} does not match '{expected.name}' in {reference.path}",
                )

            if (expected.physical_type, expected.logical_type) != (
                actual.physical_type, actual.logical_type
            ):
                raise SchemaMismatch(
                    candidate.path,
                    actual.name,
                    f"has type {actual.logical_type} ({actual.physical_type}), "
                    f"expected {expected.logical_type} ({expected.physical_type}) as in {reference.path}",
                )

            if expected.nullable != actual.nullable:
                raise SchemaMismatch(
                    candidate.path,
                    actual.name,
                    f"has nullable={actual.nullable}, expected nullable={expected.nullable} "
                    f"as in {reference.path}",
                )

        if len(candidate.columns) > len(reference.columns):
            extra = candidate.columns[len(reference.columns)]
            raise SchemaMismatch(
                candidate.path,
                extra.name,
                f"is not present in {reference.path}",
            )

        if len(candidate.columns) < len(reference.columns):
            missing = reference.columns[len(candidate.columns)]
            raise SchemaMismatch(
                candidate.path,
                missing.name,
                f"is missing (present in {reference.path})",
            )

    def validate(self) -> bool:
        if not self.files:
            return True

        reference = self.files[0]
        for candidate in self.files[1:]:
            self._compare(reference, candidate)
        return True
