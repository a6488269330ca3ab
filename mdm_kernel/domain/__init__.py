"""Pure domain layer: values, workflow, field catalogue, scoring, payloads."""
