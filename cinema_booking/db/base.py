from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase, declared_attr

# sqlite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all models."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Get the table name for the model."""
        return cls.__name__.lower()
