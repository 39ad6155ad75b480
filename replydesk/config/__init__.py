"""
Configuration module for the messaging assistant.

Key components:
- constants: application-wide constants such as model ids, audio formats,
  timings and every user-facing (pt-BR) string.
- logging_config: console and rotating-file logging for the named application logger.

Usage examples:
```python
from replydesk.config.constants import LOGGER_NAME, INPUT_SAMPLE_RATE
from replydesk.config.logging_config import configure_logging

logger = configure_logging()
logger.info("Application started")
```
"""

# Config module initialization
