"""Pure domain layer: clock, balance rules, DTOs, lifecycle definitions."""
