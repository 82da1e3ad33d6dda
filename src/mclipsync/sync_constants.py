#!/usr/bin/env python3
"""Constants for discovery, polling, retry and supervision.

These are the defaults behind SyncConfig. Tests build their own SyncConfig
with shorter intervals instead of patching these values.
"""

# Highest display index probed for each backend kind (wayland-N and :N).
MAX_DISPLAY_INDEX: int = 255

# Delay in seconds between full polling passes of the watch loop.
POLL_INTERVAL: float = 0.2

# Delay in seconds between polls of a single endpoint's watch().
WATCH_INTERVAL: float = 1.0

# Timeout in seconds for a single backend get or set call.
BACKEND_TIMEOUT: float = 2.0

# Fixed delay in seconds before the governor retries the pipeline.
RETRY_BACKOFF: float = 1.0

# Failures further apart than this many seconds start a new failure session.
SESSION_GAP: float = 10.0

# Pain score above which the governor gives up.
PAIN_THRESHOLD: float = 100.0

# Scale applied to the failure rate (failures per second) in the pain score.
# At 100, two failures less than about 2 seconds apart exceed PAIN_THRESHOLD.
PAIN_RATE_SCALE: float = 100.0

# Maximum lifetime in seconds of a supervised child before it is terminated.
WATCHDOG_SECONDS: float = 600.0

# Delay in seconds between a child exiting and the next one being spawned.
RESPAWN_DELAY: float = 1.0

# Interval in seconds between zombie reaper passes.
REAP_INTERVAL: float = 1.0
