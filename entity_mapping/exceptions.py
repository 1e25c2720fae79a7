from sqlalchemy.orm import exc


class MappingError(TypeError):
    pass


class UnknownEntityName(LookupError):
    pass


class AmbiguousEntityName(LookupError):
    pass


class EntityNameMismatch(ValueError):
    pass


class UnknownFetchProfile(LookupError):
    pass


class EntityNotFound(exc.NoResultFound):
    def __init__(self, entity_name: str, identity: object) -> None:
        super().__init__(f"No {entity_name} with identity {identity!r}")
        self.entity_name = entity_name
        self.identity = identity
