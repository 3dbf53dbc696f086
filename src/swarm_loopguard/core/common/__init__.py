# Exceptions and logging utilities
