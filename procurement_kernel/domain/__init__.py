"""Pure domain primitives: clock, workflow value objects, caller context, items."""
