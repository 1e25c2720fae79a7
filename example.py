import typing
from decimal import Decimal

import attr
from sqlalchemy import String, create_engine
from sqlalchemy.orm import close_all_sessions, declarative_base, sessionmaker

from entity_mapping import Entity, FetchMode, FetchProfile, Identity, Repository, UserType, ValueObject, fetch
from entity_mapping.cache import EntityCache
from entity_mapping.storages.sqlalchemy import SqlAlchemyRepo
from entity_mapping.storages.sqlalchemy.entity_manager import EntityManager
from entity_mapping.storages.sqlalchemy.registry import SaRegistry


PlanId = int
SubscriberId = int


@attr.s(auto_attribs=True, frozen=True)
class Money:
    amount: Decimal
    currency: str


class MoneyType(UserType[Money]):
    sql_type = String
    returned_class = Money

    def null_safe_get(self, value, dialect, owner=None):
        if value is None:
            return None
        amount, currency = value.split(" ")
        return Money(Decimal(amount), currency)

    def null_safe_set(self, value, dialect):
        return None if value is None else f"{value.amount} {value.currency}"


class Plan(Entity):
    id: Identity[PlanId]
    price: Money


class Subscription(ValueObject):
    plan_id: PlanId
    tier: int


class Subscriber(Entity):
    id: Identity[SubscriberId]
    name: str
    plan: Plan = fetch(FetchMode.SELECT)
    subscription: typing.Optional[Subscription] = None
    archived: bool = False

    def subscribe(self, tier: int) -> None:
        if not self.subscription:
            self.subscription = Subscription(self.plan.id, tier)


Base = declarative_base()
registry = SaRegistry()
registry.register_user_type(MoneyType())
registry.add_entity_name_resolver(
    lambda entity: ("archived_subscriber" if entity.archived else "subscriber") if isinstance(entity, Subscriber) else None
)
registry.add_fetch_profile(FetchProfile("with-plan", {("subscriber", "plan"): FetchMode.JOIN}))


class SubscriberRepo(SqlAlchemyRepo, Repository[Subscriber, SubscriberId]):
    base = Base
    registry = registry
    cache = EntityCache(default_ttl_seconds=60)


class ArchivedSubscriberRepo(SqlAlchemyRepo, Repository[Subscriber, SubscriberId]):
    base = Base
    registry = registry
    entity_name = "archived_subscriber"


engine = create_engine("sqlite://", echo=True)
Base.metadata.create_all(engine)
SessionC = sessionmaker(bind=engine)

manager = EntityManager(SessionC(), registry)

basic = Plan(1, Money(Decimal("9.99"), "EUR"))
subscriber = Subscriber(1, "Seba", basic)
subscriber.subscribe(tier=1)
manager.save(subscriber)

got_subscriber = manager.get("subscriber", 1, fetch_profile="with-plan")
assert got_subscriber == subscriber, f"\n{got_subscriber}\n{subscriber}"

former = Subscriber(2, "Ana", basic, archived=True)
assert manager.save(former) == "archived_subscriber"
assert manager.get("archived_subscriber", 2) == former

close_all_sessions()
Base.metadata.drop_all(engine)
