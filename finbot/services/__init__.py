"""Cross-cutting services shared by the LLM and assistant modules."""
