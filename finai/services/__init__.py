"""Long-lived services: AI client, banking executor, alert board, background loops."""
