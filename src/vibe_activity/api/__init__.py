"""HTTP and WebSocket surface for hosts that run the engine out of process."""
