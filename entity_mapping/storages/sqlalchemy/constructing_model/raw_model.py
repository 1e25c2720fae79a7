from typing import Any, Dict, Tuple, Type

import attr
from sqlalchemy import Column
from sqlalchemy.orm import relationship


@attr.s(auto_attribs=True)
class RawModel:
    name: str
    bases: Tuple[Type, ...]
    namespace: Dict

    def append_column(self, name: str, column: Column) -> None:
        self.namespace[name] = column

    def append_relationship(self, name: str, related_model_name: str, **kwargs: Any) -> None:
        self.namespace[name] = relationship(related_model_name, **kwargs)

    def materialize(self) -> Type:
        return type(self.name, self.bases, self.namespace)
