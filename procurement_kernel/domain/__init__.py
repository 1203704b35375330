"""Pure domain layer: status vocabulary, DTOs and the injectable clock."""
