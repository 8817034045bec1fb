"""Domain layer for payments: entities, enums, value objects and the allocation policy."""
