from sqlalchemy.orm import as_declarative, declared_attr


@as_declarative()
class Base:
    """Declarative base for resilience tables; models set their own keys."""

    __name__: str

    # table name defaults to the lowercased class name
    @declared_attr
    def __tablename__(cls) -> str:  # noqa: N805
        return cls.__name__.lower()  # type: ignore[no-any-return]
