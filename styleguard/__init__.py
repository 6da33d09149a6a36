"""Static compliance checks for a Svelte/TypeScript style guide."""

__version__ = "0.3.0"
