"""Charter reservation core: availability engine, optimistic state and offline queue."""
