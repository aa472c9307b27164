"""Pure domain helpers: clock, request DTOs, numbering and balance arithmetic."""
