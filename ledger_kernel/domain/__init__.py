"""Domain layer - clock abstraction and immutable DTOs."""
