from typing import Any, Dict, List, Optional, Tuple, Type

import attr

from entity_mapping.registry import Registry


@attr.s(auto_attribs=True)
class SaRegistry(Registry):
    # entity name -> declarative model
    entities_models: Dict[str, Type] = attr.Factory(dict)
    # (entity name, fetch profile name) -> loader options
    loader_options: Dict[Tuple[str, Optional[str]], List[Any]] = attr.Factory(dict)
