"""Column types shared by the models."""

from decimal import Decimal

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON, Numeric, String
from sqlalchemy.types import TypeDecorator

EMBEDDING_DIMENSION = 768


class FixedPointNumeric(TypeDecorator):
    """NUMERIC(p, s) on PostgreSQL, exact decimal string on SQLite. Always yields Decimal.

    SQLite's NUMERIC affinity goes through float, which silently corrupts
    78-digit token amounts.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int, scale: int) -> None:
        super().__init__(precision=precision, scale=scale)
        self.precision = precision
        self.scale = scale

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(self.precision + 2))
        return dialect.type_descriptor(Numeric(self.precision, self.scale))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = value if isinstance(value, Decimal) else Decimal(str(value))
        if dialect.name == "sqlite":
            return format(value, "f")
        return value

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, Decimal):
            return value
        return Decimal(str(value))


def embedding_vector(dimension: int = EMBEDDING_DIMENSION):
    """pgvector column on PostgreSQL, JSON list elsewhere."""
    return JSON().with_variant(Vector(dimension), "postgresql")
