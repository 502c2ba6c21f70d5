"""External collaborators: text generation, emotion labels and session storage."""
