from dataclasses import dataclass
from typing import Optional

import pyarrow as pa


# Column kinds; the aggregator reads NESTED to skip footer statistics
INTEGER = "INTEGER"
FLOAT = "FLOAT"
BOOLEAN = "BOOLEAN"
STRING = "STRING"
BINARY = "BINARY"
DECIMAL = "DECIMAL"
DATE = "DATE"
TIME = "TIME"
TIMESTAMP = "TIMESTAMP"
NESTED = "NESTED"
NULL = "NULL"


def map_arrow_type_to_kind(arrow_type: pa.DataType) -> str:
    if pa.types.is_dictionary(arrow_type):
        return map_arrow_type_to_kind(arrow_type.value_type)

    if pa.types.is_boolean(arrow_type):
        return BOOLEAN

    if pa.types.is_integer(arrow_type):
        return INTEGER

    if pa.types.is_floating(arrow_type):
        return FLOAT

    if pa.types.is_decimal(arrow_type):
        return DECIMAL

    if pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
        return STRING

    if (
        pa.types.is_binary(arrow_type)
        or pa.types.is_large_binary(arrow_type)
        or pa.types.is_fixed_size_binary(arrow_type)
    ):
        return BINARY

    if pa.types.is_timestamp(arrow_type):
        return TIMESTAMP

    if pa.types.is_date(arrow_type):
        return DATE

    if pa.types.is_time(arrow_type):
        return TIME

    if pa.types.is_null(arrow_type):
        return NULL

    return NESTED


@dataclass(frozen=True)
class ColumnSpec:
    """
    One top-level column of a file schema.

    physical_type is the Parquet storage type for flat columns and
    "GROUP" for nested ones; logical_type is the Arrow type string.
    leaf_index points at the column chunk holding this column's data,
    or None when the column spans several leaves.
    """
    name: str
    physical_type: str
    logical_type: str
    nullable: bool
    kind: str
    leaf_index: Optional[int] = None

    @property
    def display_type(self) -> str:
        if self.leaf_index is None:
            return self.logical_type
        return self.physical_type

    def structural_key(self):
        return (self.name, self.physical_type, self.logical_type, self.nullable)
