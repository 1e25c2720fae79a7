from typing import Any, List, Optional, Union

from sqlalchemy import orm

from entity_mapping.abstract_entity_tree import Visitor, EntityNode, ListOfEntitiesNode
from entity_mapping.fetch import FetchMode, FetchProfile
from entity_mapping.storages.sqlalchemy.registry import SaRegistry

LOADER_BY_FETCH_MODE = {FetchMode.JOIN: "joinedload", FetchMode.SELECT: "lazyload", FetchMode.SUBSELECT: "subqueryload"}

AssociationNode = Union[EntityNode, ListOfEntitiesNode]


class QueryBuildingVisitor(Visitor):
    """Collects loader options for every association of an aggregate, at any depth."""

    def __init__(self, registry: SaRegistry, fetch_profile: Optional[FetchProfile] = None) -> None:
        self._registry = registry
        self._fetch_profile = fetch_profile
        self._nodes_stack: List[AssociationNode] = []
        # loader chain leading to the node at the same position, None for the root
        self._loaders_stack: List[Any] = []
        self._options: List[Any] = []

    @property
    def options(self) -> List[Any]:
        return list(self._options)

    def fetch_mode(self, owner: AssociationNode, association: AssociationNode) -> FetchMode:
        if self._fetch_profile is not None:
            mode = self._fetch_profile.mode_for(owner.entity_name, association.name)
            if mode is not None:
                return mode
        return association.fetch_mode

    def visit_entity(self, entity: EntityNode) -> None:
        self._stack(entity)

    def leave_entity(self, entity: EntityNode) -> None:
        self._unstack()

    def visit_list_of_entities(self, list_of_entities: ListOfEntitiesNode) -> None:
        self._stack(list_of_entities)

    def leave_list_of_entities(self, list_of_entities: ListOfEntitiesNode) -> None:
        self._unstack()

    def _stack(self, node: AssociationNode) -> None:
        if not self._nodes_stack:
            loader = None
        else:
            owner = self._nodes_stack[-1]
            owner_model = self._registry.entities_models[owner.entity_name]
            relationship = getattr(owner_model, node.name)
            mode = self.fetch_mode(owner, node)
            kwargs = {"innerjoin": not node.nullable and not node.is_collection} if mode is FetchMode.JOIN else {}
            parent_loader = self._loaders_stack[-1]
            strategy = getattr(orm if parent_loader is None else parent_loader, LOADER_BY_FETCH_MODE[mode])
            loader = strategy(relationship, **kwargs)
            self._options.append(loader)
        self._nodes_stack.append(node)
        self._loaders_stack.append(loader)

    def _unstack(self) -> None:
        self._nodes_stack.pop()
        self._loaders_stack.pop()
