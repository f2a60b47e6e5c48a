"""
Category Service - the catalog of groups and categories

Categories are the envelopes money is assigned to; groups only order
and label them. Names are unique case-insensitively, and deleting a
category also deletes every allocation it had and its target.
"""

from envelope_ledger.kernel.errors import (
    CategoryGroupNotFound,
    CategoryNotFound,
    Duplicate,
    ValidationError,
)
from envelope_ledger.kernel.ids import DefaultIdFactory, IdFactory
from envelope_ledger.kernel.logging import get_logger
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, EntityType
from envelope_ledger.ledger.models import (
    DEFAULT_CATEGORY_GROUPS,
    MAX_CATEGORY_NAME,
    MAX_GROUP_NAME,
    Category,
    CategoryGroup,
)
from envelope_ledger.ledger.store import Collection, LedgerStore, WriteOp

logger = get_logger(__name__)


def _clean_name(name: str, kind: str, max_length: int) -> str:
    name = name.strip()
    if not name:
        raise ValidationError(f"{kind} name cannot be empty")
    if len(name) > max_length:
        raise ValidationError(f"{kind} name too long ({len(name)} chars, max {max_length})")
    return name


class CategoryService:
    """Create, find, order and delete categories and their groups"""

    def __init__(
        self,
        store: LedgerStore,
        audit: AuditRecorder,
        time_provider: TimeProvider,
        id_factory: IdFactory | None = None,
    ) -> None:
        self.store = store
        self.audit = audit
        self.time_provider = time_provider
        self.id_factory = id_factory or DefaultIdFactory()

    # ========== Groups ==========

    def create_group(self, name: str) -> CategoryGroup:
        """
        Create a group at the end of the current order

        Raises:
            ValidationError: If the name is empty or too long
            Duplicate: If a group with this name exists
        """
        name = _clean_name(name, "Category group", MAX_GROUP_NAME)
        groups = self.store.list_groups()
        if any(g.name.lower() == name.lower() for g in groups):
            raise Duplicate("Category Group", name)

        now = self.time_provider.now()
        group = CategoryGroup(
            id=self.id_factory.generate(),
            name=name,
            sort_order=max((g.sort_order for g in groups), default=-1) + 1,
            created_at=now,
            updated_at=now,
        )
        self.store.upsert_group(group)
        self.audit.record_create(EntityType.CATEGORY_GROUP, group.id, group, group.name)
        return group

    def create_default_groups(self) -> list[CategoryGroup]:
        """Create Bills/Needs/Wants/Savings, skipping any that already exist"""
        existing = {g.name.lower() for g in self.store.list_groups()}
        return [
            self.create_group(name)
            for name in DEFAULT_CATEGORY_GROUPS
            if name.lower() not in existing
        ]

    def get_group(self, group_id: str) -> CategoryGroup:
        group = self.store.get_group(group_id)
        if group is None:
            raise CategoryGroupNotFound(group_id)
        return group

    def find_group(self, identifier: str) -> CategoryGroup:
        """Look up by id, then by case-insensitive name"""
        group = self.store.get_group(identifier)
        if group is not None:
            return group
        for candidate in self.store.list_groups():
            if candidate.name.lower() == identifier.strip().lower():
                return candidate
        raise CategoryGroupNotFound(identifier)

    def list_groups(self) -> list[CategoryGroup]:
        return self.store.list_groups()

    # ========== Categories ==========

    def create_category(
        self, name: str, group_id: str, goal_amount: Money | None = None
    ) -> Category:
        """
        Create a category at the end of its group

        Raises:
            ValidationError: If the name is empty or too long
            CategoryGroupNotFound: If the group does not exist
            Duplicate: If any category already has this name
        """
        name = _clean_name(name, "Category", MAX_CATEGORY_NAME)
        self.get_group(group_id)
        categories = self.store.list_categories()
        if any(c.name.lower() == name.lower() for c in categories):
            raise Duplicate("Category", name)

        now = self.time_provider.now()
        category = Category(
            id=self.id_factory.generate(),
            name=name,
            group_id=group_id,
            sort_order=max(
                (c.sort_order for c in categories if c.group_id == group_id), default=-1
            )
            + 1,
            goal_amount=goal_amount,
            created_at=now,
            updated_at=now,
        )
        self.store.upsert_category(category)
        self.audit.record_create(EntityType.CATEGORY, category.id, category, category.name)
        logger.info("Category created", category_id=category.id, group_id=group_id)
        return category

    def get_category(self, category_id: str) -> Category:
        category = self.store.get_category(category_id)
        if category is None:
            raise CategoryNotFound(category_id)
        return category

    def find_category(self, identifier: str) -> Category:
        """Look up by id, then by case-insensitive name"""
        category = self.store.get_category(identifier)
        if category is not None:
            return category
        for candidate in self.store.list_categories():
            if candidate.name.lower() == identifier.strip().lower():
                return candidate
        raise CategoryNotFound(identifier)

    def list_categories(self) -> list[Category]:
        """All categories, by group order then category order"""
        group_order = {g.id: (g.sort_order, g.name.lower()) for g in self.store.list_groups()}
        return sorted(
            self.store.list_categories(),
            key=lambda c: (group_order.get(c.group_id, (len(group_order), "")), c.sort_order),
        )

    def list_categories_in_group(self, group_id: str) -> list[Category]:
        return [c for c in self.list_categories() if c.group_id == group_id]

    def set_goal(self, category_id: str, goal_amount: Money | None) -> Category:
        before = self.get_category(category_id)
        if goal_amount is not None and goal_amount.is_negative():
            raise ValidationError("Goal amount cannot be negative")
        category = before.model_copy(deep=True)
        category.goal_amount = goal_amount
        category.updated_at = self.time_provider.now()
        self.store.upsert_category(category)
        self.audit.record_update(EntityType.CATEGORY, category.id, before, category, category.name)
        return category

    def delete_category(self, category_id: str) -> None:
        """
        Delete a category together with all of its allocations and its target

        Raises:
            CategoryNotFound: If the category does not exist
            ValidationError: If transactions are still assigned to it
        """
        category = self.get_category(category_id)
        in_use = self.store.list_transactions_by_category(category_id)
        if in_use:
            raise ValidationError(
                f"Category '{category.name}' is used by {len(in_use)} transaction(s); "
                "recategorise them first"
            )

        allocations = self.store.list_allocations_for_category(category_id)
        ops = [WriteOp.delete(Collection.ALLOCATIONS, a.key) for a in allocations]
        target = self.store.get_target(category_id)
        if target is not None:
            ops.append(WriteOp.delete(Collection.TARGETS, category_id))
        ops.append(WriteOp.delete(Collection.CATEGORIES, category_id))
        self.store.batch_write(ops)

        for allocation in allocations:
            self.audit.record_delete(
                EntityType.BUDGET_ALLOCATION, allocation.key, allocation, category.name
            )
        if target is not None:
            self.audit.record_delete(EntityType.BUDGET_TARGET, category_id, target, category.name)
        self.audit.record_delete(EntityType.CATEGORY, category.id, category, category.name)
