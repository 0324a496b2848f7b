"""Pure domain core: DTOs, clock, principal, validation and status derivation."""
